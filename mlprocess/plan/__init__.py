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
The ``mlprocess.plan`` package compiles a scenario into a plan of
:class:`task records <mlprocess.plan.record.TaskRecord>`, expands wildcard
patterns in their data specifications and keeps the plan in a file shared
(under an exclusive lock) by all worker processes.
'''

from mlprocess.util import conf


retrieve_count = conf.Int(10, desc='The number of tasks claimed by a worker per plan access.')

compress = conf.Bool(True, desc='Compress the plan file with lz4.')

lock_timeout = conf.Float(-1, desc='Seconds to wait for the plan lock, a negative value '
                                   'waits indefinitely.')

reclaim = conf.Bool(True, desc='Return tasks claimed by dead processes on the local host '
                               'to the pending state.')

splitter = conf.String('split', desc='The algorithm of the tasks generated to split working '
                                     'data sets for parallelization.')

merger = conf.String('merge', desc='The algorithm of the tasks generated to merge the '
                                   'results of parallelized tasks.')

plan_suffix = conf.String('.todo', desc='Suffix of the plan file, appended to the scenario path.')

reset_suffix = conf.String('.reset', desc='Suffix of the reset request file.')

status_suffix = conf.String('.status', desc='Suffix of the status dump.')
