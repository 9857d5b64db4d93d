import datetime
import json
import os
import pwd
import subprocess
import tempfile
import threading
import time
import uuid
import xml.sax.saxutils as xml_utils

import distro
import psutil

import LifecycleHandler.Utils.constants as constants


def change_owner(file_path, user):
    """
    Lookup user.  Attempt chown 'filepath' to 'user'.
    """
    p = None
    try:
        p = pwd.getpwnam(user)
    except KeyError:
        pass
    if p is not None:
        os.chown(file_path, p[2], p[3])


def create_dir(logger, dir_path, user, mode):
    """
    Create 'dir_path' (and parents) if it does not exist yet, then
    chown it to 'user'.  Returns None if the directory can't be created.
    """
    try:
        os.makedirs(dir_path, mode)
    except OSError as e:
        if not os.path.isdir(dir_path):
            logger.event_error('CreateDir: unable to create ' + dir_path, e)
            return None
    change_owner(dir_path, user)
    return 0


def get_file_contents(logger, file_path, as_bin=False):
    """
    Read and return contents of 'file_path'.
    """
    mode = 'r'
    if as_bin:
        mode += 'b'
    try:
        with open(file_path, mode) as F:
            return F.read()
    except (IOError, OSError) as e:
        logger.event_error('GetFileContents: reading from file ' + file_path, e)
        return None


def replace_file_with_contents_atomic(file_path, contents):
    """
    Write 'contents' to 'file_path' by creating a temp file in the same
    folder and renaming it over the original.  Errors are raised.
    """
    handle, temp = tempfile.mkstemp(dir=os.path.dirname(file_path))
    if isinstance(contents, str):
        contents = contents.encode('utf-8')
    try:
        os.write(handle, contents)
    finally:
        os.close(handle)
    try:
        os.rename(temp, file_path)
    except OSError:
        os.remove(temp)
        raise


def run_command_get_output(logger, cmd, cmd_input=None, chk_err=True):
    """
    Execute 'cmd' (an argument list, never a shell string), optionally
    sending 'cmd_input' bytes to STDIN.
    Returns return code and STDOUT, trapping expected exceptions.
    Reports failures to the log if chk_err parameter is True
    """
    logger.verbose_event('running ' + ' '.join(cmd))
    try:
        p = subprocess.Popen(cmd, shell=False, stdin=subprocess.PIPE, stdout=subprocess.PIPE,
                             stderr=subprocess.STDOUT)
        output, _ = p.communicate(cmd_input)
    except OSError as e:
        if chk_err:
            logger.event_error('CalledProcessError: ' + cmd[0], e)
        return e.errno, str(e)
    output = output.decode('latin-1')
    if p.returncode != 0 and chk_err:
        logger.event_error('CalledProcessError: ' + cmd[0] + ' exited with ' + str(p.returncode), output.strip())
    return p.returncode, output


def get_os_version():
    return '{0}:{1}'.format(distro.id(), distro.version())


class WALAEvent(object):
    def __init__(self):
        self.providerId = ""
        self.eventId = 1
        self.OpcodeName = ""
        self.KeywordName = ""
        self.TaskName = ""
        self.TenantName = ""
        self.RoleName = ""
        self.RoleInstanceName = ""
        self.ContainerId = ""
        self.ExecutionMode = "IAAS"
        self.OSVersion = get_os_version()
        self.GAVersion = ""
        self.RAM = int(psutil.virtual_memory().total // (1024 * 1024))
        self.Processors = psutil.cpu_count() or 0

    def to_xml(self):
        str_event_id = u'<Event id="{0}"/>'.format(self.eventId)
        str_provider_id = u'<Provider id="{0}"/>'.format(self.providerId)
        str_record_format = u'<Param Name="{0}" Value="{1}" T="{2}" />'
        str_record_no_quote_format = u'<Param Name="{0}" Value={1} T="{2}" />'
        str_mt_str = u'mt:wstr'
        str_mt_u_int64 = u'mt:uint64'
        str_mt_bool = u'mt:bool'
        str_mt_float = u'mt:float64'
        str_events_data = u""

        for att_name in self.__dict__:
            if att_name in ["eventId", "providerId"]:
                continue

            att_value = self.__dict__[att_name]
            # bool before int, bool is a subclass of int
            if isinstance(att_value, bool):
                str_events_data += str_record_format.format(att_name, att_value, str_mt_bool)
            elif isinstance(att_value, int):
                str_events_data += str_record_format.format(att_name, att_value, str_mt_u_int64)
            elif isinstance(att_value, str):
                att_value = xml_utils.quoteattr(att_value)
                str_events_data += str_record_no_quote_format.format(att_name, att_value, str_mt_str)
            elif isinstance(att_value, float):
                str_events_data += str_record_format.format(att_name, att_value, str_mt_float)
            else:
                raise TypeError("property {0}:{1} can't be converted to events data".format(
                    att_name, type(att_value)))

        return u"<Data>{0}{1}{2}</Data>".format(str_provider_id, str_event_id, str_events_data)

    def save(self, event_folder=None):
        return self._write_to_folder(event_folder, self.to_xml(), ".tld")

    def _write_to_folder(self, event_folder, data, ext):
        if event_folder is None:
            event_folder = constants.EventsDir
        if not os.path.exists(event_folder):
            os.makedirs(event_folder)
            os.chmod(event_folder, 0o700)
        if len(os.listdir(event_folder)) > constants.MaxPendingEvents:
            raise OSError("WriteToFolder: too many files under " + event_folder)

        filename = os.path.join(event_folder, str(int(time.time() * 1000000)))
        with open(filename + ".tmp", 'wb+') as h_file:
            h_file.write(data.encode("utf-8"))
        os.rename(filename + ".tmp", filename + ext)
        return filename + ext


class ExtensionEvent(WALAEvent):
    def __init__(self):
        WALAEvent.__init__(self)
        self.eventId = 1
        self.providerId = constants.ExtensionEventProviderId
        self.Name = ""
        self.Version = ""
        self.IsInternal = False
        self.Operation = ""
        self.OperationSuccess = True
        self.ExtensionType = ""
        self.Message = ""
        self.Duration = 0

    def to_json(self):
        """
        The guest agent picks these files up from the eventsFolder named in
        HandlerEnvironment.json.
        """
        if self.OperationSuccess:
            level = constants.EventLevel.Informational
        else:
            level = constants.EventLevel.Error
        return dict(Version=self.Version,
                    Timestamp=datetime.datetime.utcnow().isoformat(),
                    TaskName=self.Operation,
                    EventLevel=level,
                    Message=self.Message,
                    EventPid=str(os.getpid()),
                    EventTid=str(threading.get_ident()).zfill(8),
                    OperationId=str(uuid.uuid4()))

    def save(self, event_folder=None, as_json=False):
        if as_json:
            return self._write_to_folder(event_folder, json.dumps([self.to_json()]), ".json")
        return WALAEvent.save(self, event_folder)


def add_extension_event(logger, name, op, is_success, duration=0, version="1.0", message="", extension_type="",
                        is_internal=False, events_folder=None):
    event = ExtensionEvent()
    event.Name = name
    event.Version = version
    event.IsInternal = is_internal
    event.Operation = op
    event.OperationSuccess = is_success
    event.Message = message
    event.Duration = duration
    event.ExtensionType = extension_type
    try:
        return event.save(events_folder, as_json=events_folder is not None)
    except OSError as e:
        logger.event_error('failed to save telemetry event', e)
        return None
