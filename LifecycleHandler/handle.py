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

import argparse
import os
import sys

from LifecycleHandler.Common import CommonVariables
from LifecycleHandler.commands import cmds
from LifecycleHandler.Utils import HandlerUtil
from LifecycleHandler.Utils import extensionutils as ext_utils
from LifecycleHandler.Utils import logger


def main(argv=None):
    """
    Main method
    Load the handler environment, parse out the command from the arguments,
    run it and report status and telemetry on the way out.
    """
    try:
        handler_env = HandlerUtil.get_handler_env(CommonVariables.handler_environment_file)
    except HandlerUtil.HandlerEnvironmentError as e:
        logger.bootstrap_logger().event_error('failed to parse handlerEnv', e)
        sys.exit(CommonVariables.failure)

    args = parse_args(argv)
    lg = logger.new_logger(handler_env.log_folder, verbose=args.verbose, debug=args.debug)

    cmd = parse_cmd(args.command)
    lg.with_context('operation', cmd.name)
    lg.custom_log('command', cmd.name)

    dispatch(lg, HandlerUtil.HandlerUtility(lg, handler_env), cmd)


def dispatch(lg, hutil, cmd):
    handler_env = hutil.handler_env
    seq_num = -1
    try:
        seq_num = HandlerUtil.find_seq_num(handler_env.config_folder)
    except HandlerUtil.SequenceNumberError as e:
        lg.event_error('failed to find sequence number', e)
        # install may run before the agent hands out any settings
        if cmd.name != 'install':
            sys.exit(cmd.fail_exit_code)
    lg.event('seqNum: ' + str(seq_num))

    # check sub-command preconditions, if any, before executing
    lg.event('start operation')
    if cmd.pre is not None:
        lg.event('pre-check')
        try:
            cmd.pre(lg, seq_num)
        except Exception as e:
            lg.event_error('pre-check failed', e)
            telemetry(lg, handler_env, cmd.operation, cmd.name + ' pre-check failed: ' + str(e), False, 0)
            sys.exit(cmd.fail_exit_code)

    lg.event('reporting status')
    report_status(lg, hutil, seq_num, CommonVariables.extension_transitioning_status, cmd, 'Transitioning')

    try:
        cmd.execute(lg, hutil, seq_num)
    except Exception as e:
        lg.event_error('command failed', e)
        report_status(lg, hutil, seq_num, CommonVariables.extension_error_status, cmd, str(e))
        telemetry(lg, handler_env, cmd.operation, cmd.name + ' failed: ' + str(e), False, 0)
        sys.exit(cmd.fail_exit_code)

    report_status(lg, hutil, seq_num, CommonVariables.extension_success_status, cmd, '')
    telemetry(lg, handler_env, cmd.operation, cmd.name + ' succeeded', True, 0)
    lg.event(cmd.name + ' end')
    sys.exit(CommonVariables.success)


def report_status(lg, hutil, seq_num, status, cmd, message):
    if status == CommonVariables.extension_error_status:
        code = cmd.fail_exit_code
    else:
        code = CommonVariables.success
    try:
        hutil.do_status_report(seq_num, cmd.operation, status, code, message)
    except (IOError, OSError) as e:
        lg.event_error('failed to save handler status', e)


def telemetry(lg, handler_env, scenario, message, is_success, code):
    ext_utils.add_extension_event(lg,
                                  name=handler_env.name or CommonVariables.extension_name,
                                  op=scenario,
                                  is_success=is_success,
                                  duration=code,
                                  version=CommonVariables.extension_version,
                                  message=message,
                                  extension_type=CommonVariables.extension_type,
                                  events_folder=handler_env.events_folder)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog=prog_name(), description=CommonVariables.extension_description,
                                     add_help=False, allow_abbrev=False)
    parser.add_argument('-verbose', action='store_true', help='Return a detailed report')
    parser.add_argument('-debug', action='store_true', help='Return a debug report')
    parser.add_argument('command', nargs='*')
    args, unknown = parser.parse_known_args(argv)
    if unknown:
        print('Unknown flags: {0}'.format(' '.join(unknown)))
        print_usage()
        sys.exit(CommonVariables.invalid_command)
    return args


def parse_cmd(args):
    """
    Look at the positional arguments and return the matching command.
    If it is invalid, print the usage and an error message and exit with
    the invalid command code.
    """
    if len(args) != 1:
        if len(args) < 1:
            print('Not enough arguments, {0}'.format(len(args)))
            print(args)
        else:
            print('Too many arguments')
        print_usage()
        sys.exit(CommonVariables.invalid_command)

    # ensure arguments passed are all lower case
    cmd = cmds.get(args[0].lower())
    if cmd is None:
        print_usage()
        print('Incorrect command: "{0}"'.format(args[0]))
        sys.exit(CommonVariables.invalid_command)
    return cmd


def print_usage():
    print('Usage: {0} {1}'.format(prog_name(), ' | '.join(cmds)))
    print('Optional flags: verbose | debug')


def prog_name():
    return os.path.basename(sys.argv[0]) or 'handle.py'


if __name__ == '__main__':
    main()
