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

from psutil import AccessDenied, NoSuchProcess, Process


process = Process()


def process_identity():
    '''The (pid, create time) pair identifying the current process.'''
    return process.pid, process.create_time()


def process_alive(pid, create_time=None):
    '''
    Check whether the process identified by pid (and, if given, its create
    time, to rule out reuse of the pid) still exists on this host.
    '''
    try:
        proc = Process(pid)
        if create_time is not None and abs(proc.create_time() - create_time) > 1e-3:
            return False
        return proc.is_running()
    except NoSuchProcess:
        return False
    except AccessDenied:
        return True
