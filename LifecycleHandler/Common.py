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


class CommonVariables:
    extension_name = 'LifecycleHandlerForLinux'
    extension_version = "1.0.0"
    extension_type = extension_name
    extension_label = 'Azure Lifecycle Handler Extension for Linux IaaS'
    extension_description = extension_label

    """
    exit code definitions
    """
    success = 0
    failure = 1
    invalid_command = 2

    # 52 and 53 follow the marketplace table: missing dependency, configuration error
    install_failed = 52
    enable_failed = 53
    update_failed = 3
    disable_failed = 4
    uninstall_failed = 5

    """
    status related
    """
    extension_transitioning_status = 'transitioning'
    extension_success_status = 'success'
    extension_error_status = 'error'

    """
    files and folders
    """
    handler_environment_file = './HandlerEnvironment.json'
    most_recent_seq_file = 'mrseq'
    log_file_name = 'extension.log'
    data_dir = '/var/lib/waagent/' + extension_name

