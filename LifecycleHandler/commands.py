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

import shutil
import sys
from collections import namedtuple

from LifecycleHandler.Common import CommonVariables
from LifecycleHandler.Utils import HandlerUtil
from LifecycleHandler.Utils import extensionutils as ext_utils
from LifecycleHandler.Utils.constants import WALAEventOperation

# pre(logger, seq_num) and execute(logger, hutil, seq_num) signal failure by raising
Command = namedtuple('Command', ['name', 'operation', 'pre', 'execute', 'fail_exit_code'])


def install(logger, hutil, seq_num):
    logger.event('creating data dir ' + CommonVariables.data_dir)
    if ext_utils.create_dir(logger, CommonVariables.data_dir, 'root', 0o755) is None:
        raise OSError('failed to create data dir ' + CommonVariables.data_dir)
    logger.event('installed')


def uninstall(logger, hutil, seq_num):
    logger.event('removing data dir ' + CommonVariables.data_dir)
    try:
        shutil.rmtree(CommonVariables.data_dir)
    except FileNotFoundError:
        logger.event('data dir already removed')
    logger.event('uninstalled')


def enable_pre(logger, seq_num):
    """
    Exit if this sequence number (a snapshot of the configuration) was
    already processed, otherwise remember it before enable runs.
    """
    mrseq_file = CommonVariables.most_recent_seq_file
    last_seq = HandlerUtil.get_most_recent_seq(mrseq_file)
    if seq_num <= last_seq:
        logger.event("Current sequence number, {0}, is not greater than the sequence number of the most "
                     "recent executed configuration, {1}. Exiting...".format(seq_num, last_seq))
        sys.exit(CommonVariables.success)
    HandlerUtil.set_most_recent_seq(mrseq_file, seq_num)
    logger.event("set most recent sequence number to {0}".format(seq_num))


def enable(logger, hutil, seq_num):
    settings = hutil.get_handler_settings(seq_num)
    public_settings = settings.get('publicSettings') or {}
    if not isinstance(public_settings, dict):
        raise HandlerUtil.SettingsError('publicSettings must be a JSON object')
    logger.event('public settings: ' + ', '.join(sorted(public_settings)))
    if settings.get('protectedSettings'):
        logger.event('protected settings present')
    logger.event('enabled')


def noop(logger, hutil, seq_num):
    logger.event('noop')


cmds = {
    'install': Command('install', WALAEventOperation.Install, None, install,
                       CommonVariables.install_failed),
    'enable': Command('enable', WALAEventOperation.Enable, enable_pre, enable,
                      CommonVariables.enable_failed),
    'update': Command('update', WALAEventOperation.Update, None, noop,
                      CommonVariables.update_failed),
    'disable': Command('disable', WALAEventOperation.Disable, None, noop,
                       CommonVariables.disable_failed),
    'uninstall': Command('uninstall', WALAEventOperation.UnInstall, None, uninstall,
                         CommonVariables.uninstall_failed),
}
