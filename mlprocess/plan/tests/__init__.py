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

from unittest.case import TestCase
import os
import tempfile
import textwrap

from mlprocess.plan.graph import Plan
from mlprocess.plan.occurrences import Occurrences
from mlprocess.plan.record import TaskRecord


def task(task_id, inputs=(), outputs=(), algorithm='copy', parameters=None):
    return TaskRecord(task_id, algorithm, parameters, inputs, outputs)


def make_plan(*records):
    '''A sorted plan of the records, linked by the data they share.'''
    occurrences = Occurrences()
    for record in records:
        occurrences.add(record)
    for producer, consumer in occurrences.edges():
        Plan.link(producer, consumer)
    plan = Plan(records)
    plan.sort()
    plan.refresh_statuses()
    return plan



class PlanTest(TestCase):
    '''Base class for tests which need a working directory.'''

    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.workdir = self._tmpdir.name


    def tearDown(self):
        self._tmpdir.cleanup()


    def touch(self, *names, content=''):
        for name in names:
            path = os.path.join(self.workdir, name)
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, 'w') as f:
                f.write(content or name + '\n')


    def write_scenario(self, text, name='scenario.xml'):
        path = os.path.join(self.workdir, name)
        with open(path, 'w') as f:
            f.write(textwrap.dedent(text).strip())
        return path


    def assertTopological(self, plan):
        plan.check()
        for record in plan:
            for prerequisite in plan.prerequisites(record):
                self.assertLess(prerequisite.rank, record.rank)


    def ids(self, records):
        return [r.id for r in records]
