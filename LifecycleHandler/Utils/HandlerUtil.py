#
# Handler library for Linux IaaS
#
# Copyright 2014 Microsoft Corporation
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


"""
JSON def:
HandlerEnvironment.json
[{
  "name": "ExampleHandlerLinux",
  "seqNo": "seqNo",
  "version": "1.0",
  "handlerEnvironment": {
    "logFolder": "<your log folder location>",
    "configFolder": "<your config folder location>",
    "statusFolder": "<your status folder location>",
    "eventsFolder": "<optional, your events folder location>"
  }
}]

Example ./config/1.settings
"{"runtimeSettings":[{"handlerSettings":{"protectedSettingsCertThumbprint":"1BE9A13AA1321C7C515EF109746998BAB6D86FD1","protectedSettings":
"MIIByAYJKoZIhvcNAQcDoIIBuTCCAbUCAQAxggFxMIIBbQIBADBVMEExPzA9BgoJkiaJk/IsZAEZFi9XaW5kb3dzIEF6dXJlIFNlcnZpY2UgTWFuYWdlbWVudCBmb3IgR+nhc6VHQTQpCiiV2zANBgkqhkiG9w0BAQEFAASCAQCKr09QKMGhwYe+O4/a8td+vpB4eTR+BQso84cV5KCAnD6iUIMcSYTrn9aveY6v6ykRLEw8GRKfri2d6tvVDggUrBqDwIgzejGTlCstcMJItWa8Je8gHZVSDfoN80AEOTws9Fp+wNXAbSuMJNb8EnpkpvigAWU2v6pGLEFvSKC0MCjDTkjpjqciGMcbe/r85RG3Zo21HLl0xNOpjDs/qqikc/ri43Y76E/Xv1vBSHEGMFprPy/Hwo3PqZCnulcbVzNnaXN3qi/kxV897xGMPPC3IrO7Nc++AT9qRLFI0841JLcLTlnoVG1okPzK9w6ttksDQmKBSHt3mfYV+skqs+EOMDsGCSqGSIb3DQEHATAUBggqhkiG9w0DBwQITgu0Nu3iFPuAGD6/QzKdtrnCI5425fIUy7LtpXJGmpWDUA==","publicSettings":{"port":"3000"}}}]}"

Example Status Report:
[{"version":"1.0","timestampUTC":"2014-05-29T04:20:13Z","status":{"name":"Chef Extension Handler","operation":"chef-client-run","status":"success","code":0,"formattedMessage":{"lang":"en-US","message":"Chef-client run success"}}}]

"""

import base64
import binascii
import json
import os
import os.path
import re
import time
from os.path import join

import LifecycleHandler.Utils.constants as constants
import LifecycleHandler.Utils.extensionutils as ext_utils

DateTimeFormat = "%Y-%m-%dT%H:%M:%SZ"
SeqNoEnvironmentVar = 'ConfigSequenceNumber'
SettingsFilePattern = re.compile(r'^(\d+)\.settings$')


class HandlerUtilError(Exception):
    pass


class HandlerEnvironmentError(HandlerUtilError):
    pass


class SequenceNumberError(HandlerUtilError):
    pass


class SettingsError(HandlerUtilError):
    pass


class HandlerEnvironment(object):
    def __init__(self, name, version, log_folder, config_folder, status_folder,
                 events_folder=None):
        self.name = name
        self.version = version
        self.log_folder = log_folder
        self.config_folder = config_folder
        self.status_folder = status_folder
        self.events_folder = events_folder

    @staticmethod
    def parse(handler_env):
        if isinstance(handler_env, list):
            if len(handler_env) == 0:
                raise HandlerEnvironmentError("handler environment is an empty list")
            handler_env = handler_env[0]
        if not isinstance(handler_env, dict):
            raise HandlerEnvironmentError("handler environment is not a JSON object")

        folders = handler_env.get('handlerEnvironment')
        if not isinstance(folders, dict):
            raise HandlerEnvironmentError("handlerEnvironment section is missing")
        for key in ('logFolder', 'configFolder', 'statusFolder'):
            if not folders.get(key):
                raise HandlerEnvironmentError("handlerEnvironment." + key + " is missing")

        return HandlerEnvironment(name=handler_env.get('name', ''),
                                  version=str(handler_env.get('version', '1.0')),
                                  log_folder=folders['logFolder'],
                                  config_folder=folders['configFolder'],
                                  status_folder=folders['statusFolder'],
                                  events_folder=folders.get('eventsFolder'))


def get_handler_env(handler_env_file):
    # According to the extension handler spec, it is always in the ./ directory
    if not os.path.isfile(handler_env_file):
        raise HandlerEnvironmentError("Unable to locate " + handler_env_file)
    try:
        with open(handler_env_file, 'r') as f:
            handler_env = json.load(f)
    except (IOError, OSError) as e:
        raise HandlerEnvironmentError("Unable to read {0}: {1}".format(handler_env_file, e))
    except ValueError as e:
        raise HandlerEnvironmentError("JSON error processing {0}: {1}".format(handler_env_file, e))
    return HandlerEnvironment.parse(handler_env)


def find_seq_num(config_folder):
    """
    The agent exports the sequence number through the environment; older
    agents don't, in which case the newest N.settings file decides.
    """
    seq_from_env = os.environ.get(SeqNoEnvironmentVar)
    if seq_from_env is not None:
        try:
            return int(seq_from_env)
        except ValueError:
            pass

    try:
        files = os.listdir(config_folder)
    except OSError as e:
        raise SequenceNumberError("Can't list config folder {0}: {1}".format(config_folder, e))

    seq_nums = []
    for f in files:
        match = SettingsFilePattern.match(f)
        if match:
            seq_nums.append(int(match.group(1)))
    if not seq_nums:
        raise SequenceNumberError("Can't find out seqnum from {0}, not enough files.".format(config_folder))
    return max(seq_nums)


def get_most_recent_seq(mrseq_file):
    if os.path.isfile(mrseq_file):
        try:
            with open(mrseq_file, 'r') as f:
                seq = f.read().strip()
            return int(seq)
        except (IOError, OSError, ValueError):
            pass
    return -1


def set_most_recent_seq(mrseq_file, seq):
    with open(mrseq_file, 'w') as f:
        f.write(str(seq))


class HandlerUtility:
    def __init__(self, logger, handler_env):
        self._logger = logger
        self.handler_env = handler_env

    def get_status_file(self, seq_no):
        return join(self.handler_env.status_folder, str(seq_no) + '.status')

    def get_settings_file(self, seq_no):
        return join(self.handler_env.config_folder, str(seq_no) + '.settings')

    def _decrypt_protected_settings(self, protected_settings, thumb):
        cert = join(constants.LibDir, thumb + '.crt')
        pkey = join(constants.LibDir, thumb + '.prv')
        try:
            encrypted = base64.b64decode(protected_settings)
        except (binascii.Error, TypeError) as e:
            raise SettingsError("protectedSettings is not valid base64: {0}".format(e))

        code, cleartxt = ext_utils.run_command_get_output(
            self._logger,
            [constants.Openssl, 'smime', '-inform', 'DER', '-decrypt', '-recip', cert, '-inkey', pkey],
            cmd_input=encrypted)
        if code != 0:
            raise SettingsError("OpenSSL decode error using thumbprint " + thumb)
        try:
            return json.loads(cleartxt)
        except ValueError:
            raise SettingsError("JSON exception decoding protected settings")

    def _parse_config(self, ctxt):
        try:
            config = json.loads(ctxt)
        except ValueError as e:
            raise SettingsError("JSON error processing settings: {0}".format(e))

        try:
            handler_settings = config['runtimeSettings'][0]['handlerSettings']
        except (KeyError, IndexError, TypeError):
            raise SettingsError("settings have no runtimeSettings[0].handlerSettings")

        protected_settings = handler_settings.get('protectedSettings')
        thumb = handler_settings.get('protectedSettingsCertThumbprint')
        if protected_settings is not None and thumb is not None and not isinstance(protected_settings, dict):
            handler_settings['protectedSettings'] = self._decrypt_protected_settings(protected_settings, thumb)
            self._logger.event('config decoded correctly')
        return config

    def get_handler_settings(self, seq_no):
        settings_file = self.get_settings_file(seq_no)
        self._logger.verbose_event('setting file path is ' + settings_file)
        ctxt = ext_utils.get_file_contents(self._logger, settings_file)
        if ctxt is None:
            raise SettingsError('Unable to read ' + settings_file)
        if not ctxt.strip():
            # the agent writes an empty settings file when the extension has no configuration
            return {}
        return self._parse_config(ctxt)['runtimeSettings'][0]['handlerSettings']

    def do_status_report(self, seq_no, operation, status, status_code, message):
        self._logger.event("status report: {0},{1},{2},{3}".format(operation, status, status_code, message))
        tstamp = time.strftime(DateTimeFormat, time.gmtime())
        stat = [{
            "version": self.handler_env.version,
            "timestampUTC": tstamp,
            "status": {
                "name": self.handler_env.name,
                "operation": operation,
                "status": status,
                "code": status_code,
                "formattedMessage": {
                    "lang": "en-US",
                    "message": message
                }
            }
        }]
        ext_utils.replace_file_with_contents_atomic(self.get_status_file(seq_no), json.dumps(stat))
