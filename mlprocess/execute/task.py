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

import importlib
import logging
import os.path
import threading

from mlprocess.plan.exceptions import DataException


logger = logging.getLogger(__name__)


DATASET_PREFIX = 'dataset:'
FEATURE_PREFIX = 'feature:'


def resolve(spec, workdir=None):
    '''
    The path of a data specification: files are taken relative to workdir,
    ``dataset:X`` is stored in ``X.data`` and ``feature:F@X`` in ``X.F.feat``.
    '''
    workdir = workdir or ''
    if spec.startswith(DATASET_PREFIX):
        return os.path.join(workdir, spec[len(DATASET_PREFIX):] + '.data')
    elif spec.startswith(FEATURE_PREFIX):
        name, _, dataset = spec[len(FEATURE_PREFIX):].partition('@')
        return os.path.join(workdir, '%s.%s.feat' % (dataset, name))
    return os.path.join(workdir, spec)



class Task(object):
    '''
    A unit of work created from a task record. Subclasses implement
    :meth:`perform`, reading from ``inputs`` and writing to ``outputs``
    (paths resolved against the working directory).
    '''

    def __init__(self, record, workdir=None):
        self.record = record
        self.id = record.id
        self.workdir = workdir
        self.parameters = dict(record.parameters)
        self.inputs = [resolve(spec, workdir) for spec in record.inputs]
        self.outputs = [resolve(spec, workdir) for spec in record.outputs]


    def perform(self):
        raise NotImplementedError()


    def __repr__(self):
        return '<%s %s>' % (self.__class__.__name__, self.id)



class Registry(object):
    '''
    Maps algorithm names to task factories. Names of the form
    ``module:Class`` are imported on first use.
    '''

    def __init__(self):
        self.factories = {}
        self._lock = threading.Lock()


    def register(self, name, factory=None):
        '''Register a factory, usable as a class decorator: ``@register('split')``.'''
        def decorator(factory):
            self.factories[name] = factory
            return factory
        if factory is not None:
            return decorator(factory)
        return decorator


    def _import(self, name):
        module, _, attr = name.partition(':')
        try:
            factory = getattr(importlib.import_module(module), attr)
        except (ImportError, AttributeError) as exc:
            raise DataException(DataException.UNKNOWN_ALGORITHM, name) from exc
        if not (isinstance(factory, type) and issubclass(factory, Task)):
            raise DataException(DataException.UNKNOWN_ALGORITHM, '%s is not a Task' % name)
        return factory


    def resolve(self, name):
        with self._lock:
            factory = self.factories.get(name)
            if factory is None and name and ':' in name:
                factory = self.factories[name] = self._import(name)
        if factory is None:
            raise DataException(DataException.UNKNOWN_ALGORITHM, name)
        return factory


    def __contains__(self, name):
        try:
            self.resolve(name)
        except DataException:
            return False
        return True


    def create(self, record, workdir=None):
        return self.resolve(record.algorithm)(record, workdir)


    def names(self):
        return sorted(self.factories)


    def __repr__(self):
        return '<Registry %s>' % ', '.join(self.names())



registry = Registry()
register = registry.register
