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

'''
The ``mlprocess.execute`` package runs the tasks of a plan: workers claim
batches of :class:`task records <mlprocess.plan.record.TaskRecord>` from the
:class:`Scheduler <mlprocess.plan.scheduler.Scheduler>`, create
:class:`Tasks <mlprocess.execute.task.Task>` for them through the
:data:`registry <mlprocess.execute.task.registry>` and perform them.
'''

from mlprocess.util.conf import Float, Int, String


threads = Int(1, desc='The number of worker threads per process.')
instances = Int(1, desc='The number of worker processes expected to run the scenario '
                        '(only used to determine the parallelization of tasks).')
suspend_time = Float(30.0, desc='Seconds a worker waits before asking for tasks again '
                                'when all pending tasks are in progress or waiting.')
suspend_jitter = Float(10.0, desc='Maximum random number of seconds added to suspend_time.')
workdir = String('', desc='The directory against which data specifications are resolved '
                          '(the current directory if empty).')


from mlprocess.execute import builtins  # noqa: registers the built-in tasks
