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

import logging

from mlprocess.plan.record import Status
import mlprocess


logger = logging.getLogger(__name__)


class Scheduler(object):
    '''
    Hands out batches of tasks from a :class:`PlanStore
    <mlprocess.plan.store.PlanStore>` and reports their outcome.
    '''

    def __init__(self, store, retrieve_count=None, worker_id=None):
        self.store = store
        self.retrieve_count = retrieve_count or mlprocess.conf['mlprocess.plan.retrieve_count']
        self.worker_id = worker_id


    def next_batch(self):
        '''
        The next batch of task records, an empty list if all work is done.
        Raises SchedulingException if the caller should retry later.
        '''
        return self.store.get_next_pending_tasks(self.retrieve_count, self.worker_id)


    def done(self, tasks):
        if tasks:
            self.store.update_statuses(tasks, Status.DONE)


    def failed(self, task, exc):
        self.store.update_statuses([task], Status.FAILED, exc)


    def put_back(self, tasks):
        if tasks:
            self.store.update_statuses(tasks, Status.PENDING)


    def report(self, batch, completed, failing=None, failure=None):
        '''
        Report the outcome of a batch: the first completed tasks are done,
        the failing task (if any) failed and the remaining tasks are put
        back.
        '''
        updates = [(task.id, Status.DONE, None) for task in batch[:completed]]
        if failing is not None:
            updates.append((failing.id, Status.FAILED, failure))
            remaining = batch[completed + 1:]
        else:
            remaining = batch[completed:]
        updates.extend((task.id, Status.PENDING, None) for task in remaining)
        if updates:
            self.store.apply(updates)


    def __repr__(self):
        return '<Scheduler %s %s>' % (self.worker_id, self.store.scenario)
