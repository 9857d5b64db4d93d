import json
import os
import string
import sys
import time
import traceback

LogFileName = 'extension.log'


# noinspection PyMethodMayBeStatic
class Logger(object):
    """
    The handler's logging assumptions are:
    Every message is logged to self.file_path and echoed to self.console.
    Setting either to None skips that destination.  If verbose is enabled,
    messages sent through log_if_verbose are logged as well, otherwise they
    are dropped.  Error messages are normal log messages with the
    'ERROR:' prefix added.
    """

    def __init__(self, file_path, console, verbose=False):
        """
        Construct an instance of Logger.
        """
        self.file_path = file_path
        self.console = console
        self.verbose = verbose

    def _printable(self, message):
        message = ''.join(x for x in message if x in string.printable)
        return message.encode('ascii', 'ignore').decode('ascii', 'ignore')

    def write_to_file(self, message):
        """
        Write 'message' to logfile.
        """
        if self.file_path:
            try:
                with open(self.file_path, "a") as F:
                    F.write(self._printable(message) + "\n")
            except (IOError, OSError):
                pass

    def write_to_console(self, message):
        """
        Write 'message' to the console stream.
        """
        if self.console:
            try:
                self.console.write(self._printable(message) + "\n")
                self.console.flush()
            except (IOError, OSError, ValueError):
                pass

    def log(self, message):
        """
        Standard Log function.
        Logs to self.file_path, and console
        """
        self.log_with_prefix("", message)

    def log_if_verbose(self, message):
        """
        Only log 'message' if verbose is True.
        """
        if self.verbose:
            self.log_with_prefix("", message)

    def log_with_prefix(self, prefix, message):
        """
        Prefix each line of 'message' with current time+'prefix'.
        """
        log_prefix = self._get_log_prefix(prefix)
        for line in message.split('\n'):
            line = log_prefix + line
            self.write_to_file(line)
            self.write_to_console(line)

    def error_with_prefix(self, prefix, message):
        self.log_with_prefix("ERROR: " + str(prefix), message)

    def error(self, message):
        self.error_with_prefix("", message)

    def _get_log_prefix(self, prefix):
        """
        Generates the log prefix with timestamp+'prefix'.
        """
        t = time.localtime()
        t = "%04u/%02u/%02u %02u:%02u:%02u " % (t.tm_year, t.tm_mon, t.tm_mday, t.tm_hour, t.tm_min, t.tm_sec)
        return t + prefix


def format_pair(key, value):
    value = str(value)
    if value == '' or any(c in value for c in ' "=\t\n'):
        value = json.dumps(value)
    return '{0}={1}'.format(key, value)


class ExtensionLogger(object):
    """
    Key/value logger handed to every stage of a handler run.

    Pairs attached with with_context are repeated on every line, so the
    operation name only needs to be set once per process.
    """

    def __init__(self, sink, debug=False):
        self._sink = sink
        self._context = []
        self.debug = debug

    def with_context(self, key, value):
        self._context.append((key, value))
        return self

    def event(self, message):
        self._write(self._sink.log, [('event', message)])

    def verbose_event(self, message):
        self._write(self._sink.log_if_verbose, [('event', message)])

    def event_error(self, message, error):
        pairs = [('event', message), ('error', error)]
        if self.debug and sys.exc_info()[0] is not None:
            pairs.append(('trace', traceback.format_exc().strip()))
        self._write(self._sink.error, pairs)

    def custom_log(self, key, value):
        self._write(self._sink.log, [(key, value)])

    def _write(self, writer, pairs):
        writer(' '.join(format_pair(k, v) for k, v in self._context + pairs))


class NopLogger(ExtensionLogger):
    """ discards every line, meant to be used with tests """

    def __init__(self):
        super(NopLogger, self).__init__(Logger(None, None))

    def _write(self, writer, pairs):
        pass


def new_logger(log_folder, verbose=False, debug=False):
    sink = Logger(os.path.join(log_folder, LogFileName), sys.stdout, verbose=verbose or debug)
    return ExtensionLogger(sink, debug=debug)


def bootstrap_logger():
    # used before HandlerEnvironment.json tells us where the log folder is
    return ExtensionLogger(Logger(None, sys.stdout))
