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

from collections import namedtuple
from enum import Enum
import copy

from mlprocess.plan import patterns
from mlprocess.util.strings import format_parameters


EXPANSION_MARK = '#'


class Status(Enum):
    WAITING = 'waiting'
    PENDING = 'pending'
    IN_PROGRESS = 'in progress'
    DONE = 'done'
    FAILED = 'failed'

    def __str__(self):
        return self.name


Lease = namedtuple('Lease', 'worker host pid create_time claimed_on')



class TaskRecord(object):
    '''
    The persistent description of a unit of work in the plan.

    Dependencies are kept as sets of task ids: ``prerequisites`` holds the
    ids of the tasks which must be done before this one, ``dependents`` the
    ids of the tasks waiting on it. The plan maintains both directions.
    '''

    def __init__(self, task_id, algorithm, parameters=None, inputs=(), outputs=()):
        self.id = task_id
        self.algorithm = algorithm
        self.parameters = dict(parameters or {})
        self.inputs = list(inputs)
        self.outputs = list(outputs)
        self.status = Status.PENDING
        self.rank = -1
        self.prerequisites = set()
        self.dependents = set()
        # values bound to the pattern variables by expansion
        self.replacements = {}
        self.lease = None
        self.failure = None
        # the definition as compiled, survives in-place rewriting and cloning
        self.source = self.definition()


    @property
    def lineage(self):
        '''The id of the task as compiled, without expansion suffixes.'''
        return self.id.split(EXPANSION_MARK, 1)[0]


    @property
    def pattern_replacement(self):
        _, _, suffix = self.id.partition(EXPANSION_MARK)
        return suffix.replace(EXPANSION_MARK, patterns.JOIN_CHAR)


    def definition(self):
        return (self.id, self.algorithm, tuple(sorted(self.parameters.items())),
                tuple(self.inputs), tuple(self.outputs))


    def same_definition(self, other):
        return self.source[1:] == other.source[1:]


    def input_classes(self):
        return patterns.classes(self.inputs)


    def output_classes(self):
        return patterns.classes(self.outputs)


    def clone(self, suffix, replacements, inputs, outputs):
        '''
        Create a copy with id ``<id>#<suffix>`` and the given data specs. Edges
        are not copied, the expander mirrors them.
        '''
        clone = copy.copy(self)
        clone.id = self.id + EXPANSION_MARK + suffix
        clone.parameters = copy.deepcopy(self.parameters)
        clone.inputs = list(inputs)
        clone.outputs = list(outputs)
        clone.prerequisites = set()
        clone.dependents = set()
        clone.replacements = dict(self.replacements)
        clone.replacements.update(replacements)
        clone.lease = None
        clone.failure = None
        return clone


    def describe(self):
        lines = ['%s [%s] rank %s' % (self.id, self.status, self.rank),
                 '  algorithm:  %s' % self.algorithm]
        if self.parameters:
            lines.append('  parameters: %s' % format_parameters(self.parameters))
        if self.prerequisites:
            lines.append('  depends on: %s' % ', '.join(sorted(self.prerequisites)))
        lines.append('  inputs:     %s' % ', '.join(self.inputs))
        lines.append('  outputs:    %s' % ', '.join(self.outputs))
        if self.lease:
            lines.append('  claimed by: %s (pid %s)' % (self.lease.worker, self.lease.pid))
        if self.failure:
            lines.append('  failure:    %s' % self.failure)
        return '\n'.join(lines)


    def __repr__(self):
        return '<TaskRecord %s %s>' % (self.id, self.status)
