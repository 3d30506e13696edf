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

from mlprocess.plan.exceptions import TaskException
from mlprocess.plan.patterns import DOUBLE, SINGLE, TRIPLE, FilePattern, assign_patterns, \
    classes, joined, occurrence_pattern, overlaps, tokens
from mlprocess.plan.tests import PlanTest


class TokensTest(PlanTest):
    def test_tokens(self):
        self.assertEqual(tokens('in-*.txt'), ['*'])
        self.assertEqual(tokens('in-$1-$2.txt'), ['$1', '$2'])
        self.assertEqual(tokens('dir/in-**.txt'), ['**'])
        self.assertEqual(tokens('in.txt'), [])
        self.assertEqual(tokens('dataset:*'), [])


    def test_ambiguous(self):
        for spec in ('dir*/in.txt', 'a*b*c', 'in-****.txt', 'in-$1-$1.txt'):
            with self.assertRaises(TaskException) as ctx:
                tokens(spec)
            self.assertEqual(ctx.exception.code, TaskException.PATTERN_SPECS)


    def test_classes(self):
        self.assertEqual(classes(['a-*.txt', 'b-$2.txt']), {SINGLE})
        self.assertEqual(classes(['a-**.txt', 'b-$0.txt']), {DOUBLE})
        self.assertEqual(classes(['a-***.txt', 'b.txt']), {TRIPLE})
        self.assertEqual(classes(['b.txt', 'dataset:x']), set())


    def test_overlaps(self):
        self.assertEqual(occurrence_pattern('out-$1-**.txt'), 'out-*-*.txt')
        self.assertTrue(overlaps('out-*.txt', 'out-$1.txt'))
        self.assertTrue(overlaps('out-*.txt', 'out-a.txt'))
        self.assertTrue(overlaps('out-a.txt', 'out-**.txt'))
        self.assertFalse(overlaps('out-*.txt', 'in-a.txt'))
        self.assertFalse(overlaps('dir/out-*.txt', 'out-a.txt'))
        self.assertFalse(overlaps('*.txt', 'reports/summary.txt'))
        self.assertFalse(overlaps('reports/*.txt', 'summary.txt'))
        self.assertTrue(overlaps('reports/*.txt', 'reports/summary.txt'))
        self.assertTrue(overlaps('./out-*.txt', 'out-a.txt'))
        self.assertTrue(overlaps('./out.txt', 'out.txt'))
        self.assertFalse(overlaps('out-*.txt', 'res-*.txt'))
        self.assertTrue(overlaps('dataset:x', 'dataset:x'))
        self.assertFalse(overlaps('dataset:*', 'dataset:x'))


    def test_joined(self):
        self.assertEqual(joined({2: 'b', 1: 'a'}), 'a_b')



class FilePatternTest(PlanTest):
    def test_match(self):
        pattern = FilePattern('data/in-$2-*.txt')
        self.assertEqual(pattern.variables, [2, 1])
        self.assertEqual(pattern.match('in-x-y.txt'), {2: 'x', 1: 'y'})
        self.assertIsNone(pattern.match('in-x.txt'))
        self.assertIsNone(pattern.match('in--y.txt'))
        self.assertEqual(pattern.match_path('data/in-x-y.txt'), {2: 'x', 1: 'y'})
        self.assertEqual(pattern.match_path('./data/in-x-y.txt'), {2: 'x', 1: 'y'})
        self.assertIsNone(pattern.match_path('in-x-y.txt'))


    def test_substitute(self):
        pattern = FilePattern('out-$2-*.txt')
        self.assertEqual(pattern.substitute({1: 'a', 2: 'b'}), 'out-b-a.txt')
        self.assertEqual(pattern.substitute({2: 'b'}), 'out-b-*.txt')
        self.assertEqual(FilePattern('out-*.txt').substitute({1: 'a', 2: 'b'}, star='a_b'),
                         'out-a_b.txt')


    def test_find_matches(self):
        self.touch('in-a.txt', 'in-b.txt', 'other.txt', 'sub/in-c.txt')
        self.assertEqual(FilePattern('in-*.txt').find_matches(self.workdir), {1: {'a', 'b'}})
        self.assertEqual(FilePattern('sub/in-*.txt').find_matches(self.workdir), {1: {'c'}})
        self.assertEqual(FilePattern('in-**.txt').listing(self.workdir), ['in-a.txt', 'in-b.txt'])
        self.assertEqual(FilePattern('sub/in-**.txt').listing(self.workdir), ['sub/in-c.txt'])


    def test_no_files(self):
        self.touch('in-a.txt')
        for spec in ('out-*.txt', 'missing/in-*.txt', 'in-a.txt/in-*.txt'):
            with self.assertRaises(TaskException) as ctx:
                FilePattern(spec).find_matches(self.workdir)
            self.assertEqual(ctx.exception.code, TaskException.NO_FILES)
        with self.assertRaises(TaskException):
            FilePattern('out-**.txt').listing(self.workdir)


    def test_assign_patterns(self):
        compiled = assign_patterns(['a-***.txt', 'b-***.txt', 'c.txt'])
        self.assertEqual([p.variables for p in compiled[:2]], [[1], [2]])
        self.assertIsNone(compiled[2])

        compiled = assign_patterns(['a-*.txt', 'b-***.txt', 'c-$2-***.txt'])
        self.assertEqual([p.variables for p in compiled], [[1], [3], [2, 4]])
        self.assertEqual(compiled[2].substitute({2: 'x', 4: 'y'}), 'c-x-y.txt')

        with self.assertRaises(TaskException):
            FilePattern('a-***.txt')
        with self.assertRaises(TaskException):
            assign_patterns(['a-$%s-***.txt' % n for n in range(1, 10)])
