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
The plan file shared by all worker processes.

Every operation of the :class:`PlanStore` which reads or modifies the plan
holds an exclusive lock on the plan (a ``filelock.FileLock`` on
``<plan file>.lock``) from reading the plan until it is written back. The
plan is created from the scenario on first use. A reset request (see
:mod:`mlprocess.plan.reset`) is applied before tasks are handed out.
'''

from collections import deque
from contextlib import contextmanager
import logging
import os.path
import pickle
import socket
import threading
import time

from filelock import FileLock, Timeout
from tblib import pickling_support
import lz4.block

from mlprocess.plan.exceptions import DataException, PlanException, PlanInterrupted, \
    SchedulingException, TaskException
from mlprocess.plan.expander import TaskExpander
from mlprocess.plan.graph import Plan
from mlprocess.plan.patterns import has_pattern
from mlprocess.plan.record import Lease, Status
from mlprocess.plan.reset import ALL, CHANGED, STOP, merge_reset, parse_request
from mlprocess.plan.scenario import ScenarioCompiler
from mlprocess.util.collection import ensure_collection
from mlprocess.util.fs import atomic_write, read_file
from mlprocess.util.psutil import process_alive, process_identity
from mlprocess.util.strings import fold_strings
import mlprocess


logger = logging.getLogger(__name__)


RAW = b'P'
LZ4 = b'Z'


def encode_plan(plan, compress=True):
    data = pickle.dumps(plan, protocol=pickle.HIGHEST_PROTOCOL)
    if compress:
        return LZ4 + lz4.block.compress(data)
    return RAW + data


def decode_plan(data):
    header, body = data[:1], data[1:]
    try:
        if header == LZ4:
            body = lz4.block.decompress(body)
        elif header != RAW:
            raise PlanException(PlanException.INVALID_PLAN, 'Unknown plan header %r' % header)
        plan = pickle.loads(body)
    except PlanException:
        raise
    except Exception as exc:
        raise PlanException(PlanException.INVALID_PLAN, str(exc)) from exc
    if not isinstance(plan, Plan):
        raise PlanException(PlanException.INVALID_PLAN, 'Not a plan: %s' % type(plan).__name__)
    return plan


def needs_expansion(record):
    return any(has_pattern(spec) for spec in record.inputs) \
        or any(has_pattern(spec) for spec in record.outputs)



class PlanStore(object):
    '''
    Access to the plan of a scenario. The plan, reset request and status dump
    files are placed next to the scenario. Thread safe; all threads of a
    process should share one store.
    '''

    def __init__(self, scenario, workdir=None, max_workers=1, registry=None):
        self.scenario = scenario
        self.workdir = workdir
        self.plan_file = scenario + mlprocess.conf['mlprocess.plan.plan_suffix']
        self.reset_file = scenario + mlprocess.conf['mlprocess.plan.reset_suffix']
        self.status_file = scenario + mlprocess.conf['mlprocess.plan.status_suffix']
        self.compress = mlprocess.conf['mlprocess.plan.compress']
        self.lock_timeout = mlprocess.conf['mlprocess.plan.lock_timeout']
        self.reclaim = mlprocess.conf['mlprocess.plan.reclaim']
        self.compiler = ScenarioCompiler(max_workers, registry)
        self._rlock = threading.RLock()
        self._file_lock = None


    def open(self):
        if self._file_lock is None:
            self._file_lock = FileLock(self.plan_file + '.lock', timeout=self.lock_timeout)
        return self


    def close(self):
        self._file_lock = None


    def __enter__(self):
        return self.open()


    def __exit__(self, *exc):
        self.close()


    @contextmanager
    def locked(self):
        if self._file_lock is None:
            raise PlanException(PlanException.IO_ERROR, 'The plan store of %s is not open'
                                % self.scenario)
        with self._rlock:
            try:
                self._file_lock.acquire()
            except Timeout as exc:
                raise PlanException(PlanException.LOCK_TIMEOUT, self.plan_file) from exc
            except OSError as exc:
                raise PlanException(PlanException.IO_ERROR, str(exc)) from exc
            try:
                yield
            finally:
                self._file_lock.release()


    def _compile(self):
        try:
            plan = Plan(self.compiler.compile_file(self.scenario))
            plan.sort()
            plan.refresh_statuses()
        except DataException as exc:
            raise PlanException(PlanException.INVALID_SCENARIO, str(exc)) from exc
        except OSError as exc:
            raise PlanException(PlanException.IO_ERROR, str(exc)) from exc
        return plan


    def _load(self):
        try:
            data = read_file(self.plan_file)
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise PlanException(PlanException.IO_ERROR, str(exc)) from exc
        if not data:
            return None
        plan = decode_plan(data)
        plan.check()
        return plan


    def _save(self, plan):
        try:
            atomic_write(self.plan_file, encode_plan(plan, self.compress))
            self._write_status(plan)
        except OSError as exc:
            raise PlanException(PlanException.IO_ERROR, str(exc)) from exc


    def _write_status(self, plan):
        lines = ['# %s: %s live, %s done, %s expanded'
                 % (self.scenario, len(plan.tasks), len(plan.finished), len(plan.expanded)), '']
        for record in plan:
            lines.append(record.describe())
            lines.append('')
        if plan.finished:
            lines.append('# done: %s' % fold_strings(plan.finished, split='#'))
        atomic_write(self.status_file, '\n'.join(lines) + '\n', mode='w')


    def _read_reset(self):
        try:
            return read_file(self.reset_file, 'r')
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise PlanException(PlanException.IO_ERROR, str(exc)) from exc


    def _truncate_reset(self):
        try:
            with open(self.reset_file, 'w'):
                pass
        except OSError as exc:
            raise PlanException(PlanException.IO_ERROR, str(exc)) from exc


    def _apply_reset(self, plan):
        '''
        Apply the reset request, if any. Returns the plan and whether a request
        was applied (the request file is truncated once the plan is saved).
        '''
        request = parse_request(self._read_reset())
        if request is None:
            return plan, False
        if request == STOP:
            raise PlanInterrupted(detail='Stop requested in %s' % self.reset_file)

        fresh = self._compile()
        if request == ALL or plan is None:
            logger.info('Resetting all tasks of %s', self.scenario)
            return fresh, True
        prefixes = () if request == CHANGED else request
        try:
            return merge_reset(plan, fresh, prefixes), True
        except DataException as exc:
            raise PlanException(PlanException.INVALID_SCENARIO, str(exc)) from exc


    def _prepare(self):
        '''Load the plan, create it if it doesn't exist yet and apply any reset request.'''
        plan = self._load()
        if plan is None:
            logger.info('Creating the plan for %s', self.scenario)
            plan = self._compile()
        return self._apply_reset(plan)


    def _reclaim(self, plan):
        host = socket.gethostname()
        for record in plan.with_status(Status.IN_PROGRESS):
            lease = record.lease
            if lease is None or lease.host != host:
                continue
            if not process_alive(lease.pid, lease.create_time):
                logger.warning('Reclaiming %s claimed by %s, process %s is gone',
                               record.id, lease.worker, lease.pid)
                plan.update_status(record, Status.PENDING)


    def _fail(self, plan, record, exc):
        if exc is not None:
            pickling_support.install(exc)
            try:
                pickle.dumps(exc)
            except Exception:
                logger.debug('Failure of %s can not be pickled', record.id, exc_info=True)
                exc = TaskException(TaskException.FAILED, record.id, str(exc))
        plan.update_status(record, Status.FAILED, failure=exc)


    def _expand(self, plan, record):
        '''
        Expand the record and splice the result into the plan. Returns the
        pending records created. A record which can't be expanded means the
        scenario is invalid; the plan is left as it was stored.
        '''
        expander = TaskExpander(plan, record, self.workdir)
        try:
            to_remove, to_add = expander.expand()
        except TaskException as exc:
            raise PlanException(PlanException.INVALID_SCENARIO, str(exc)) from exc
        plan.splice(to_remove, to_add)
        plan.refresh_statuses(to_add)
        return [r for r in to_add if r.status is Status.PENDING]


    def _claim(self, plan, count, worker_id):
        start = plan.order.bisect_key_right(plan.cursor)
        order = list(plan.order)
        candidates = deque(r.id for r in order[start:] + order[:start])

        pid, create_time = process_identity()
        host = socket.gethostname()
        claimed = []
        while candidates and len(claimed) < count:
            record = plan.tasks.get(candidates.popleft())
            if record is None or record.status is not Status.PENDING:
                continue
            if needs_expansion(record):
                created = self._expand(plan, record)
                if record.id not in plan.tasks or record.status is not Status.PENDING:
                    candidates.extendleft(r.id for r in reversed(created))
                    continue
            lease = Lease(worker_id, host, pid, create_time, time.time())
            plan.update_status(record, Status.IN_PROGRESS, lease=lease)
            plan.cursor = record.rank
            claimed.append(record)
        return claimed


    def get_next_pending_tasks(self, count=None, worker_id=None):
        '''
        Claim up to count PENDING tasks (round robin from the last claim),
        expanding them as needed. Returns an empty list if there is nothing
        left to do; raises SchedulingException if nothing is pending now but
        tasks in progress may unblock waiting ones. Raises PlanException
        (INVALID_SCENARIO) if a task can't be expanded; nothing is saved then.
        '''
        count = count or mlprocess.conf['mlprocess.plan.retrieve_count']
        with self.locked():
            plan, reset = self._prepare()
            if self.reclaim:
                self._reclaim(plan)
            claimed = self._claim(plan, count, worker_id)
            wait = not claimed and bool(plan.with_status(Status.WAITING)) \
                and bool(plan.with_status(Status.IN_PROGRESS))
            self._save(plan)
            if reset:
                self._truncate_reset()

        if wait:
            raise SchedulingException()
        if claimed:
            logger.debug('%s claimed %s', worker_id, fold_strings((r.id for r in claimed), split='#'))
        return claimed


    def apply(self, updates):
        '''Apply (task id, status, failure) updates in one locked write.'''
        with self.locked():
            plan = self._load()
            if plan is None:
                raise PlanException(PlanException.INVALID_PLAN, 'No plan in %s' % self.plan_file)
            for task_id, status, failure in updates:
                record = plan.tasks.get(task_id)
                if record is None:
                    raise PlanException(PlanException.INVALID_PLAN, 'Unknown task %s' % task_id)
                if status is Status.FAILED:
                    self._fail(plan, record, failure)
                else:
                    plan.update_status(record, status)
            self._save(plan)


    def update_statuses(self, tasks, status, failure=None):
        '''Set the status of the given tasks (records or ids).'''
        self.apply([(getattr(task, 'id', task), status, failure)
                    for task in ensure_collection(tasks)])


    def write_reset(self, request):
        '''Write a reset request; an empty request clears a pending one.'''
        request = request.strip()
        with self.locked():
            try:
                atomic_write(self.reset_file, request + '\n' if request else '', mode='w')
            except OSError as exc:
                raise PlanException(PlanException.IO_ERROR, str(exc)) from exc
        if request:
            logger.info('Requested reset %r for %s', request, self.scenario)
        else:
            logger.info('Cleared the reset request for %s', self.scenario)


    def dump_status(self):
        with self.locked():
            plan = self._load()
            if plan is not None:
                try:
                    self._write_status(plan)
                except OSError as exc:
                    raise PlanException(PlanException.IO_ERROR, str(exc)) from exc
        return plan


    def parse_only(self):
        '''Compile and sort the scenario without touching the plan file.'''
        return self._compile()


    def exists(self):
        return os.path.exists(self.plan_file) and os.path.getsize(self.plan_file) > 0


    def __repr__(self):
        return '<PlanStore %s>' % self.plan_file
