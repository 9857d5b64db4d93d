#!/usr/bin/env python
#
# Lifecycle Handler extension
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


import json
import os
import shutil
import tempfile
import unittest

import mock

from LifecycleHandler.Utils import HandlerUtil
from LifecycleHandler.Utils.logger import NopLogger

HANDLER_ENV = [{
    "name": "LifecycleHandlerForLinux",
    "seqNo": "0",
    "version": "1.0",
    "handlerEnvironment": {
        "logFolder": "/var/log/azure/LifecycleHandlerForLinux/1.0",
        "configFolder": "/var/lib/waagent/LifecycleHandlerForLinux-1.0/config",
        "statusFolder": "/var/lib/waagent/LifecycleHandlerForLinux-1.0/status",
        "heartbeatFile": "/var/lib/waagent/LifecycleHandlerForLinux-1.0/heartbeat.log"
    }
}]


class TestHandlerEnvironment(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.env_file = os.path.join(self.tmp, 'HandlerEnvironment.json')

    def tearDown(self):
        shutil.rmtree(self.tmp)

    def test_parse_list(self):
        env = HandlerUtil.HandlerEnvironment.parse(HANDLER_ENV)
        self.assertEqual('LifecycleHandlerForLinux', env.name)
        self.assertEqual('/var/log/azure/LifecycleHandlerForLinux/1.0', env.log_folder)
        self.assertEqual('/var/lib/waagent/LifecycleHandlerForLinux-1.0/config', env.config_folder)
        self.assertIsNone(env.events_folder)

    def test_parse_bare_object(self):
        handler_env = dict(HANDLER_ENV[0])
        handler_env['handlerEnvironment'] = dict(HANDLER_ENV[0]['handlerEnvironment'], eventsFolder='/tmp/events')
        env = HandlerUtil.HandlerEnvironment.parse(handler_env)
        self.assertEqual('/tmp/events', env.events_folder)

    def test_parse_missing_folder(self):
        handler_env = dict(HANDLER_ENV[0], handlerEnvironment={'logFolder': '/tmp'})
        self.assertRaises(HandlerUtil.HandlerEnvironmentError, HandlerUtil.HandlerEnvironment.parse, handler_env)
        self.assertRaises(HandlerUtil.HandlerEnvironmentError, HandlerUtil.HandlerEnvironment.parse, [])

    def test_get_handler_env(self):
        with open(self.env_file, 'w') as f:
            json.dump(HANDLER_ENV, f)
        env = HandlerUtil.get_handler_env(self.env_file)
        self.assertEqual('1.0', env.version)

    def test_get_handler_env_errors(self):
        self.assertRaises(HandlerUtil.HandlerEnvironmentError, HandlerUtil.get_handler_env, self.env_file)
        with open(self.env_file, 'w') as f:
            f.write('[{"name": ')
        self.assertRaises(HandlerUtil.HandlerEnvironmentError, HandlerUtil.get_handler_env, self.env_file)


class TestSequenceNumber(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp)

    def touch(self, name):
        with open(os.path.join(self.tmp, name), 'w') as f:
            f.write('')

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_largest_settings_file(self):
        for name in ('0.settings', '2.settings', '10.settings', 'abc.settings', '11.status'):
            self.touch(name)
        self.assertEqual(10, HandlerUtil.find_seq_num(self.tmp))

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_no_settings_files(self):
        self.touch('HandlerState')
        self.assertRaises(HandlerUtil.SequenceNumberError, HandlerUtil.find_seq_num, self.tmp)
        self.assertRaises(HandlerUtil.SequenceNumberError, HandlerUtil.find_seq_num,
                          os.path.join(self.tmp, 'missing'))

    def test_environment_variable_wins(self):
        self.touch('1.settings')
        with mock.patch.dict(os.environ, {'ConfigSequenceNumber': '7'}):
            self.assertEqual(7, HandlerUtil.find_seq_num(self.tmp))
        with mock.patch.dict(os.environ, {'ConfigSequenceNumber': 'seven'}):
            self.assertEqual(1, HandlerUtil.find_seq_num(self.tmp))

    def test_most_recent_seq(self):
        mrseq = os.path.join(self.tmp, 'mrseq')
        self.assertEqual(-1, HandlerUtil.get_most_recent_seq(mrseq))
        HandlerUtil.set_most_recent_seq(mrseq, 3)
        self.assertEqual(3, HandlerUtil.get_most_recent_seq(mrseq))
        with open(mrseq, 'w') as f:
            f.write('garbage')
        self.assertEqual(-1, HandlerUtil.get_most_recent_seq(mrseq))


class TestHandlerUtility(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.env = HandlerUtil.HandlerEnvironment('LifecycleHandlerForLinux', '1.0', self.tmp, self.tmp, self.tmp)
        self.hutil = HandlerUtil.HandlerUtility(NopLogger(), self.env)

    def tearDown(self):
        shutil.rmtree(self.tmp)

    def write_settings(self, seq_no, contents):
        with open(self.hutil.get_settings_file(seq_no), 'w') as f:
            f.write(contents)

    def test_do_status_report(self):
        self.hutil.do_status_report(2, 'Enable', 'error', 53, 'disk full')
        with open(os.path.join(self.tmp, '2.status')) as f:
            stat = json.load(f)
        self.assertEqual(1, len(stat))
        self.assertEqual('1.0', stat[0]['version'])
        self.assertIn('timestampUTC', stat[0])
        self.assertEqual({'name': 'LifecycleHandlerForLinux', 'operation': 'Enable', 'status': 'error', 'code': 53,
                          'formattedMessage': {'lang': 'en-US', 'message': 'disk full'}}, stat[0]['status'])
        self.assertEqual(['2.status'], os.listdir(self.tmp))

    def test_handler_settings(self):
        self.write_settings(1, json.dumps({'runtimeSettings': [
            {'handlerSettings': {'publicSettings': {'port': '3000'}}}]}))
        settings = self.hutil.get_handler_settings(1)
        self.assertEqual({'port': '3000'}, settings['publicSettings'])
        self.assertNotIn('protectedSettings', settings)

    def test_empty_settings(self):
        self.write_settings(0, '')
        self.assertEqual({}, self.hutil.get_handler_settings(0))

    def test_bad_settings(self):
        self.assertRaises(HandlerUtil.SettingsError, self.hutil.get_handler_settings, 9)
        self.write_settings(1, '{"runtimeSettings": ')
        self.assertRaises(HandlerUtil.SettingsError, self.hutil.get_handler_settings, 1)
        self.write_settings(2, '{"runtimeSettings": []}')
        self.assertRaises(HandlerUtil.SettingsError, self.hutil.get_handler_settings, 2)

    @mock.patch('LifecycleHandler.Utils.extensionutils.run_command_get_output',
                return_value=(0, '{"password": "secret"}'))
    def test_protected_settings_decrypted(self, run_command):
        self.write_settings(1, json.dumps({'runtimeSettings': [{'handlerSettings': {
            'protectedSettingsCertThumbprint': 'ABCD', 'protectedSettings': 'aGVsbG8='}}]}))
        self.assertEqual({'password': 'secret'}, self.hutil.get_handler_settings(1)['protectedSettings'])
        cmd = run_command.call_args[0][1]
        self.assertEqual('openssl', cmd[0])
        self.assertIn('/var/lib/waagent/ABCD.crt', cmd)
        self.assertIn('/var/lib/waagent/ABCD.prv', cmd)
        self.assertEqual(b'hello', run_command.call_args[1]['cmd_input'])

    @mock.patch('LifecycleHandler.Utils.extensionutils.run_command_get_output', return_value=(1, 'bad decrypt'))
    def test_protected_settings_decrypt_failure(self, run_command):
        self.write_settings(1, json.dumps({'runtimeSettings': [{'handlerSettings': {
            'protectedSettingsCertThumbprint': 'ABCD', 'protectedSettings': 'aGVsbG8='}}]}))
        self.assertRaises(HandlerUtil.SettingsError, self.hutil.get_handler_settings, 1)


if __name__ == '__main__':
    unittest.main()
