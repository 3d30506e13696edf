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

from operator import attrgetter
import heapq
import logging

from sortedcontainers import SortedKeyList

from mlprocess.plan.exceptions import DataException, PlanException
from mlprocess.plan.occurrences import Occurrences
from mlprocess.plan.record import Status
from mlprocess.util.strings import fold_strings


logger = logging.getLogger(__name__)


class Plan(object):
    '''
    The arena of task records in topological order.

    ``tasks`` maps the id of every live record (i.e. not done) to the record,
    ``order`` keeps the live records sorted by rank. Records which are done
    are moved to ``finished``, records replaced by their expansions are kept
    in ``expanded``; both are only consulted when a reset is requested.
    ``cursor`` is the rank of the last claimed record.
    '''

    def __init__(self, records=()):
        self.tasks = {}
        self.order = SortedKeyList(key=attrgetter('rank'))
        self.finished = {}
        self.expanded = {}
        self.cursor = -1
        for record in records:
            self.tasks[record.id] = record


    def __len__(self):
        return len(self.tasks)

    def __iter__(self):
        return iter(self.order)

    def __contains__(self, task_id):
        return task_id in self.tasks

    def __getitem__(self, task_id):
        return self.tasks[task_id]


    def add(self, record):
        self.tasks[record.id] = record
        self.order.add(record)


    def remove(self, record):
        self.order.remove(record)
        del self.tasks[record.id]


    @staticmethod
    def link(prerequisite, dependent):
        prerequisite.dependents.add(dependent.id)
        dependent.prerequisites.add(prerequisite.id)


    @staticmethod
    def unlink(prerequisite, dependent):
        prerequisite.dependents.discard(dependent.id)
        dependent.prerequisites.discard(prerequisite.id)


    def _lookup(self, task_id, extra=None):
        if extra and task_id in extra:
            return extra[task_id]
        return self.tasks.get(task_id)


    def prerequisites(self, record, extra=None):
        found = (self._lookup(i, extra) for i in record.prerequisites)
        return sorted((r for r in found if r is not None), key=attrgetter('rank', 'id'))


    def dependents(self, record, extra=None):
        found = (self._lookup(i, extra) for i in record.dependents)
        return sorted((r for r in found if r is not None), key=attrgetter('rank', 'id'))


    def isolate(self, record, extra=None):
        '''Remove all edges of the record (on both sides).'''
        for prerequisite in self.prerequisites(record, extra):
            self.unlink(prerequisite, record)
        for dependent in self.dependents(record, extra):
            self.unlink(record, dependent)
        record.prerequisites.clear()
        record.dependents.clear()


    def sort(self):
        '''
        Assign topological ranks (Kahn's algorithm, ties broken by the current
        order) and rebuild the order. Raises ``LOOP_DEPENDENCY`` if the
        dependencies contain a cycle.
        '''
        records = list(self.tasks.values())
        position = {r.id: idx for idx, r in enumerate(records)}
        indegree = {r.id: sum(1 for p in r.prerequisites if p in self.tasks) for r in records}

        ready = [(position[r.id], r.id) for r in records if not indegree[r.id]]
        heapq.heapify(ready)
        ranked = []
        while ready:
            _, task_id = heapq.heappop(ready)
            record = self.tasks[task_id]
            record.rank = len(ranked)
            ranked.append(record)
            for dependent_id in record.dependents:
                if dependent_id not in indegree:
                    continue
                indegree[dependent_id] -= 1
                if not indegree[dependent_id]:
                    heapq.heappush(ready, (position[dependent_id], dependent_id))

        if len(ranked) != len(records):
            cyclic = [r.id for r in records if indegree[r.id]]
            raise DataException(DataException.LOOP_DEPENDENCY, fold_strings(cyclic))

        self.order = SortedKeyList(ranked, key=attrgetter('rank'))


    def refresh_statuses(self, records=None):
        '''Set WAITING or PENDING depending on live prerequisites.'''
        for record in (self.order if records is None else records):
            if record.status in (Status.WAITING, Status.PENDING):
                record.status = Status.WAITING if record.prerequisites else Status.PENDING


    def rebuild_edges(self):
        '''Replace all edges with those implied by the data the live records share.'''
        occurrences = Occurrences(strict=False)
        for record in self.tasks.values():
            record.prerequisites.clear()
            record.dependents.clear()
            occurrences.add(record)
        for producer, consumer in occurrences.edges():
            self.link(producer, consumer)


    def splice(self, to_remove, to_add):
        '''
        Apply an expansion: drop the expanded originals (which must have been
        isolated) and insert their clones. Clones carry the rank of their
        original, so they land right after the records of lower or equal rank.
        '''
        for record in to_remove:
            self.remove(record)
            self.expanded[record.id] = record
        for record in to_add:
            self.tasks[record.id] = record
            self.order.add(record)


    def update_status(self, record, status, failure=None, lease=None):
        '''
        Update the status of a record. A record that is DONE is isolated,
        removed and archived; dependents without remaining prerequisites are
        promoted to PENDING. Returns the promoted records.
        '''
        promoted = []
        record.lease = lease if status is Status.IN_PROGRESS else None
        record.failure = failure if status is Status.FAILED else None

        if status is Status.DONE:
            dependents = self.dependents(record)
            self.isolate(record)
            self.remove(record)
            record.status = Status.DONE
            self.finished[record.id] = record
            for dependent in dependents:
                if dependent.status is Status.WAITING and not dependent.prerequisites:
                    dependent.status = Status.PENDING
                    promoted.append(dependent)
        elif status is Status.PENDING and record.prerequisites:
            record.status = Status.WAITING
        else:
            record.status = status

        if promoted:
            logger.debug('%s done, promoted %s', record.id,
                         fold_strings((r.id for r in promoted), split='#'))
        return promoted


    def with_status(self, *statuses):
        return [r for r in self.order if r.status in statuses]


    def check(self):
        '''Verify that all edges are mutual, point to live records and respect the ranks.'''
        for record in self.order:
            for prerequisite_id in record.prerequisites:
                prerequisite = self.tasks.get(prerequisite_id)
                if prerequisite is None or record.id not in prerequisite.dependents:
                    raise PlanException(PlanException.INVALID_PLAN,
                                        'Dangling dependency %s -> %s' % (prerequisite_id, record.id))
                if prerequisite.rank >= record.rank:
                    raise PlanException(PlanException.INVALID_PLAN,
                                        'Rank of %s not before %s' % (prerequisite_id, record.id))
            for dependent_id in record.dependents:
                dependent = self.tasks.get(dependent_id)
                if dependent is None or record.id not in dependent.prerequisites:
                    raise PlanException(PlanException.INVALID_PLAN,
                                        'Dangling dependent %s -> %s' % (record.id, dependent_id))
        if len(self.order) != len(self.tasks):
            raise PlanException(PlanException.INVALID_PLAN, 'Order and task index differ')


    def __getstate__(self):
        return {
            'order': list(self.order),
            'finished': self.finished,
            'expanded': self.expanded,
            'cursor': self.cursor,
        }


    def __setstate__(self, state):
        self.order = SortedKeyList(state['order'], key=attrgetter('rank'))
        self.tasks = {r.id: r for r in self.order}
        self.finished = state['finished']
        self.expanded = state['expanded']
        self.cursor = state['cursor']


    def __repr__(self):
        return '<Plan %s live, %s done>' % (len(self.tasks), len(self.finished))
