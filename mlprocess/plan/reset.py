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
Merging a freshly compiled plan with the previous one on a reset request.

The previous plan is taken as a snapshot of all records it ever held (live,
done and expanded). Records selected by the request (by id prefix, or
because their definition changed) are dropped from the snapshot together
with everything depending on them; the remaining records keep their status.
'''

from collections import defaultdict, deque
from operator import attrgetter
import logging

from mlprocess.plan.graph import Plan
from mlprocess.plan.patterns import any_overlap
from mlprocess.plan.record import EXPANSION_MARK, Status
from mlprocess.util.strings import fold_strings


logger = logging.getLogger(__name__)


CHANGED = '#'
ALL = '!'
STOP = '$'


def parse_request(text):
    '''
    Parse the content of a reset request file into one of CHANGED, ALL,
    STOP, a tuple of id prefixes or None if there is nothing to reset.
    '''
    text = (text or '').strip()
    if not text:
        return None
    if text in (CHANGED, ALL, STOP):
        return text
    prefixes = tuple(p.strip() for p in text.split(',') if p.strip())
    return prefixes or None


def snapshot_of(plan):
    snapshot = dict(plan.expanded)
    snapshot.update(plan.finished)
    snapshot.update(plan.tasks)
    return snapshot


def origin(task_id, fresh):
    '''
    The id of the record in fresh the given id descends from, found by
    stripping expansion suffixes. None if there is no such record.
    '''
    while task_id not in fresh and EXPANSION_MARK in task_id:
        task_id = task_id.rsplit(EXPANSION_MARK, 1)[0]
    return task_id if task_id in fresh else None


def lineages(snapshot, fresh):
    '''Map the ids of fresh records to the ids of the records descending from them.'''
    found = defaultdict(list)
    for task_id in snapshot:
        root = origin(task_id, fresh)
        if root is not None:
            found[root].append(task_id)
    return found


def changed_ids(snapshot, fresh):
    '''The ids of fresh records which are new or defined differently.'''
    return {task_id for task_id, record in fresh.items()
            if task_id not in snapshot or not snapshot[task_id].same_definition(record)}


def select_reset(snapshot, prefixes=(), fresh=None, changed=()):
    '''
    Select the ids of the records in snapshot to reset: those with an id
    starting with one of the prefixes, those descending from a changed fresh
    record and, transitively, everything depending on them. Dependence
    follows the (live) edges in the snapshot and, for records which lost
    their edges when done, the edges of the fresh plan, limited to records
    consuming the data produced.
    '''
    fresh = fresh or {}
    descendants = lineages(snapshot, fresh)

    queue = deque()
    prefixes = tuple(prefixes or ())
    if prefixes:
        queue.extend(task_id for task_id in snapshot if task_id.startswith(prefixes))
    for task_id in changed:
        queue.extend(descendants.get(task_id, ()))

    selected = set()
    while queue:
        task_id = queue.popleft()
        if task_id in selected:
            continue
        selected.add(task_id)
        record = snapshot[task_id]
        queue.extend(dep for dep in record.dependents if dep in snapshot)

        root = origin(task_id, fresh)
        if root is None:
            continue
        for dependent_id in fresh[root].dependents:
            queue.extend(member for member in descendants.get(dependent_id, ())
                         if any_overlap(record.outputs, snapshot[member].inputs))

    return selected


def _restart(record):
    record.status = Status.PENDING
    record.lease = None
    record.failure = None


def merge_reset(prior, fresh, prefixes=()):
    '''
    Merge the prior plan into the fresh (sorted) plan. With no prefixes only
    changed records (and their dependents) are reset. Returns the merged
    plan, sorted and with its statuses refreshed.
    '''
    snapshot = snapshot_of(prior)
    changed = changed_ids(snapshot, fresh.tasks)
    selected = select_reset(snapshot, prefixes, fresh.tasks, changed)
    descendants = lineages(snapshot, fresh.tasks)

    merged = Plan()
    refreshed = set()
    restarted = []
    for record in fresh.order:
        replaced = record.id in prior.expanded
        if record.id in changed \
                or (replaced and (record.id in selected or record.prerequisites & refreshed)):
            # compiled anew, expanded again when claimed
            refreshed.add(record.id)
            merged.tasks[record.id] = record
            continue

        if replaced:
            merged.expanded[record.id] = prior.expanded[record.id]
        members = sorted((snapshot[m] for m in descendants[record.id] if m not in prior.expanded),
                         key=attrgetter('rank'))
        for member in members:
            if member.id in selected:
                _restart(member)
                restarted.append(member.id)
                merged.tasks[member.id] = member
            elif member.status is Status.DONE:
                merged.finished[member.id] = member
            else:
                merged.tasks[member.id] = member

    merged.rebuild_edges()
    merged.sort()
    merged.refresh_statuses()

    if refreshed or restarted:
        logger.info('Reset %s', fold_strings(sorted(refreshed) + restarted, split=EXPANSION_MARK))
    return merged
