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

import argparse
import logging
import random
import signal
import socket
import sys
import threading
import time

from cytoolz import concat

from mlprocess.execute.task import registry as default_registry
from mlprocess.plan.exceptions import DataException, PlanException, PlanInterrupted, \
    SchedulingException, TaskException
from mlprocess.plan.scheduler import Scheduler
from mlprocess.plan.store import PlanStore
from mlprocess.util import log
from mlprocess.util.threads import dump_threads
import mlprocess


logger = logging.getLogger(__name__)


def worker_id(n):
    return '%s@%s' % (n, socket.gethostname())



class Worker(object):
    '''
    Claims batches of tasks from the scheduler and performs them in order
    until there is nothing left to do, the plan store fails or stop is set.
    '''

    def __init__(self, scheduler, worker_id, registry=None, workdir=None, stop=None,
                 suspend_time=None, suspend_jitter=None):
        self.scheduler = scheduler
        self.id = worker_id
        self.registry = registry or default_registry
        self.workdir = workdir
        self.stop = stop or threading.Event()
        if suspend_time is None:
            suspend_time = mlprocess.conf['mlprocess.execute.suspend_time']
        if suspend_jitter is None:
            suspend_jitter = mlprocess.conf['mlprocess.execute.suspend_jitter']
        self.suspend_time = suspend_time
        self.suspend_jitter = suspend_jitter
        self.performed = 0
        self.failed = 0
        self.error = None


    def run(self):
        logger.info('Worker %s started', self.id)
        while not self.stop.is_set():
            try:
                batch = self.scheduler.next_batch()
            except SchedulingException:
                delay = self.suspend_time + random.uniform(0, self.suspend_jitter)
                logger.debug('Worker %s waiting %.1f seconds for tasks in progress', self.id, delay)
                self.stop.wait(delay)
                continue
            if not batch:
                logger.info('Worker %s finished, %s tasks performed, %s failed',
                            self.id, self.performed, self.failed)
                return
            self.execute(batch)
        logger.info('Worker %s stopped', self.id)


    def serve(self):
        '''Run until done, recording a fatal error instead of raising it.'''
        try:
            self.run()
        except PlanInterrupted as exc:
            logger.warning('Worker %s interrupted: %s', self.id, exc)
            self.error = exc
        except PlanException as exc:
            logger.error('Worker %s failed: %s', self.id, exc)
            self.error = exc
        except Exception as exc:
            logger.exception('Worker %s failed unexpectedly', self.id)
            self.error = exc


    def execute(self, batch):
        '''
        Perform the tasks of the batch in order. Stops at the first failure:
        the tasks before it are done, the tasks after it are put back.
        '''
        for idx, record in enumerate(batch):
            if self.stop.is_set():
                self.scheduler.report(batch, idx)
                return
            try:
                self.perform(record)
            except TaskException as exc:
                self.failed += 1
                logger.error('Task %s failed: %s', record.id, exc,
                             exc_info=logger.isEnabledFor(logging.DEBUG))
                self.scheduler.report(batch, idx, record, exc)
                return
            self.performed += 1
        self.scheduler.report(batch, len(batch))


    def perform(self, record):
        try:
            task = self.registry.create(record, self.workdir)
        except DataException as exc:
            raise TaskException(TaskException.FAILED, record.id, str(exc)) from exc

        logger.info('Worker %s performing %s', self.id, record.id)
        start = time.time()
        try:
            task.perform()
        except Exception as exc:
            raise TaskException(TaskException.FAILED, record.id,
                                '%s: %s' % (type(exc).__name__, exc)) from exc
        logger.debug('Task %s done in %.2f s', record.id, time.time() - start)


    def __repr__(self):
        return '<Worker %s>' % self.id



argparser = argparse.ArgumentParser(add_help=False)
argparser.add_argument('scenario', help='The scenario (XML) to process.')
argparser.add_argument('-t', '--threads', type=int,
                       help='The number of worker threads.')
argparser.add_argument('-i', '--instances', type=int,
                       help='The number of worker processes running the scenario.')
argparser.add_argument('-v', '--verbosity', type=int, default=0,
                       help='0 for warnings, 1 for info, 2 for debug, 3 for trace messages.')
argparser.add_argument('-d', '--workdir',
                       help='The directory data specifications are relative to.')
argparser.add_argument('-c', '--retrieve-count', dest='retrieve_count', type=int,
                       help='The number of tasks claimed per plan access.')
argparser.add_argument('-r', '--reset', metavar='SPEC',
                       help='Request a reset: "#" for changed tasks, "!" for all tasks, "$" to '
                            'stop all workers or comma separated task id prefixes; an empty '
                            'request clears a pending one.')
argparser.add_argument('--run', action='store_true',
                       help='Run workers after requesting a reset.')
argparser.add_argument('-p', '--parse-only', dest='parse_only', action='store_true',
                       help='Compile the scenario, print the plan and exit.')
argparser.add_argument('--conf', nargs='*', action='append', default=[],
                       help='Configuration in "key=value" format.')


def update_config(args):
    conf = mlprocess.conf
    conf.update(*concat(args.conf))

    if args.threads:
        conf['mlprocess.execute.threads'] = args.threads
    if args.instances:
        conf['mlprocess.execute.instances'] = args.instances
    if args.workdir:
        conf['mlprocess.execute.workdir'] = args.workdir
    if args.retrieve_count:
        conf['mlprocess.plan.retrieve_count'] = args.retrieve_count


def run_workers(store, threads, workdir=None, stop=None, registry=None):
    '''
    Run the given number of worker threads on the store until they're done.
    Returns the workers.
    '''
    stop = stop or threading.Event()
    workers = [Worker(Scheduler(store, worker_id=worker_id(n)), worker_id(n),
                      registry, workdir, stop)
               for n in range(1, threads + 1)]
    pool = [threading.Thread(target=worker.serve, name='worker-%s' % n, daemon=True)
            for n, worker in enumerate(workers, 1)]
    for thread in pool:
        thread.start()
    for thread in pool:
        while thread.is_alive():
            thread.join(1)
    return workers


def _install_signal_handlers(stop):
    if threading.current_thread() is not threading.main_thread():
        return

    def stop_handler(sig, frame):
        logger.warning('Received signal %s, stopping after the current task', sig)
        stop.set()

    signal.signal(signal.SIGTERM, stop_handler)
    signal.signal(signal.SIGINT, stop_handler)
    signal.signal(signal.SIGUSR1, dump_threads)


def main(args=None):
    args = argparse.ArgumentParser(prog='mlprocess', parents=[argparser]).parse_args(args)
    log.configure(args.verbosity)
    update_config(args)

    conf = mlprocess.conf
    threads = conf['mlprocess.execute.threads']
    instances = conf['mlprocess.execute.instances']
    workdir = conf['mlprocess.execute.workdir'] or None

    store = PlanStore(args.scenario, workdir, threads * instances, default_registry)
    try:
        with store:
            if args.parse_only:
                for record in store.parse_only():
                    print(record.describe())
                return 0

            if args.reset is not None:
                store.write_reset(args.reset)
                if not args.run:
                    return 0

            stop = threading.Event()
            _install_signal_handlers(stop)
            workers = run_workers(store, threads, workdir, stop)
    except PlanException as exc:
        logger.error('%s', exc)
        return 1

    return 1 if any(worker.error is not None for worker in workers) else 0



if __name__ == '__main__':
    sys.exit(main())
