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

from mlprocess.execute.builtins import Copy, Merge, Split
from mlprocess.execute.task import Registry, Task, registry, resolve
from mlprocess.plan.exceptions import DataException
from mlprocess.plan.record import TaskRecord


class ResolveTest(TestCase):
    def test_resolve(self):
        self.assertEqual(resolve('dataset:corpus', '/work'), '/work/corpus.data')
        self.assertEqual(resolve('dataset:corpus.part2'), 'corpus.part2.data')
        self.assertEqual(resolve('feature:len@corpus', '/work'), '/work/corpus.len.feat')
        self.assertEqual(resolve('out/a.txt', '/work'), '/work/out/a.txt')
        self.assertEqual(resolve('/abs/a.txt', '/work'), '/abs/a.txt')
        self.assertEqual(resolve('a.txt'), 'a.txt')



class RegistryTest(TestCase):
    def test_builtins(self):
        self.assertEqual(registry.resolve('split'), Split)
        self.assertEqual(registry.resolve('merge'), Merge)
        self.assertIn('copy', registry)
        self.assertIn('copy', registry.names())


    def test_register(self):
        tasks = Registry()

        @tasks.register('noop')
        class Noop(Task):
            def perform(self):
                pass

        tasks.register('copy', Copy)
        self.assertEqual(tasks.names(), ['copy', 'noop'])

        record = TaskRecord('t', 'noop', {'a': '1'}, ['dataset:x'], ['y.txt'])
        task = tasks.create(record, '/work')
        self.assertIsInstance(task, Noop)
        self.assertEqual(task.id, 't')
        self.assertEqual(task.parameters, {'a': '1'})
        self.assertEqual(task.inputs, ['/work/x.data'])
        self.assertEqual(task.outputs, ['/work/y.txt'])


    def test_import(self):
        tasks = Registry()
        self.assertEqual(tasks.resolve('mlprocess.execute.builtins:Copy'), Copy)
        self.assertIn('mlprocess.execute.builtins:Copy', tasks.names())

        for name in ('mlprocess.execute.task:resolve', 'mlprocess.no_such_module:Task',
                     'mlprocess.execute.builtins:NoSuchTask', 'unknown', ''):
            with self.assertRaises(DataException) as ctx:
                tasks.resolve(name)
            self.assertEqual(ctx.exception.code, DataException.UNKNOWN_ALGORITHM)
            self.assertNotIn(name, tasks)


    def test_abstract(self):
        task = Task(TaskRecord('t', 'abstract'))
        with self.assertRaises(NotImplementedError):
            task.perform()
