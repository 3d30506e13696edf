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
import textwrap

from mlprocess.execute.task import registry
from mlprocess.plan.exceptions import DataException
from mlprocess.plan.scenario import ScenarioCompiler


BASIC = '''
<process>
  <manipulation id="prep">
    <algorithm class="copy"/>
    <input><file name="raw.txt"/></input>
    <output><dataSet id="corpus"/><dataSet id="heldout"/></output>
  </manipulation>
  <computation id="train">
    <algorithm class="classify" parameters="c=1 kernel=rbf"/>
    <train><dataSet id="corpus"/></train>
    <eval><dataSet id="heldout"/></eval>
    <output><file name="model.bin"/></output>
  </computation>
</process>
'''


class ScenarioTest(TestCase):
    def compile(self, text, **kwargs):
        compiler = ScenarioCompiler(**kwargs)
        records = compiler.compile_string(textwrap.dedent(text).strip(), 'scenario.xml')
        return {r.id: r for r in records}


    def assertInvalid(self, text, code, line=None, **kwargs):
        with self.assertRaises(DataException) as ctx:
            self.compile(text, **kwargs)
        self.assertEqual(ctx.exception.code, code)
        self.assertIn('file: "scenario.xml"', ctx.exception.location)
        if line is not None:
            self.assertIn('line: %s,' % line, ctx.exception.location)
        return ctx.exception


    def test_basic(self):
        records = self.compile(BASIC)
        self.assertEqual(list(records), ['prep', 'train'])
        prep, train = records['prep'], records['train']
        self.assertEqual(prep.algorithm, 'copy')
        self.assertEqual(prep.inputs, ['raw.txt'])
        self.assertEqual(prep.outputs, ['dataset:corpus', 'dataset:heldout'])
        self.assertEqual(train.parameters, {'c': '1', 'kernel': 'rbf'})
        self.assertEqual(train.inputs, ['dataset:corpus', 'dataset:heldout'])
        self.assertEqual(train.outputs, ['model.bin'])
        self.assertEqual(prep.dependents, {'train'})
        self.assertEqual(train.prerequisites, {'prep'})


    def test_replication(self):
        records = self.compile('''
            <process>
              <manipulation id="prep">
                <algorithm class="copy"/>
                <output><dataSet id="a"/><dataSet id="b"/></output>
                <created><feature id="len" dataSet="a"/></created>
              </manipulation>
              <computation id="cv">
                <algorithm class="classify"/>
                <train><dataSet id="a"/><dataSet id="b"/></train>
                <eval><file name="ea.arff"/><file name="eb.arff"/></eval>
                <input><feature id="len"/></input>
                <output><feature id="pred"/></output>
              </computation>
              <evaluation id="score">
                <algorithm class="score"/>
                <data><dataSet id="a"/><dataSet id="b"/></data>
                <output><file name="ra.txt"/><file name="rb.txt"/></output>
              </evaluation>
            </process>
        ''')
        self.assertEqual(list(records), ['prep', 'cv#1', 'cv#2', 'score#1', 'score#2'])
        self.assertEqual(records['prep'].outputs,
                         ['dataset:a', 'dataset:b', 'feature:len@a'])
        self.assertEqual(records['cv#1'].inputs, ['dataset:a', 'ea.arff', 'feature:len@a'])
        self.assertEqual(records['cv#2'].inputs, ['dataset:b', 'eb.arff', 'feature:len@b'])
        self.assertEqual(records['cv#2'].outputs, ['feature:pred@b'])
        self.assertEqual(records['score#1'].outputs, ['ra.txt'])
        self.assertEqual(records['score#2'].outputs, ['rb.txt'])
        self.assertEqual(records['cv#1'].prerequisites, {'prep'})
        self.assertEqual(records['cv#2'].prerequisites, {'prep'})
        self.assertEqual(records['prep'].dependents, {'cv#1', 'cv#2', 'score#1', 'score#2'})


    def test_parallelization(self):
        text = BASIC.replace('<computation id="train">',
                             '<computation id="train" parallelizable="true">')
        records = self.compile(text, max_workers=2)
        self.assertEqual(list(records), ['prep', 'train#split-train', 'train#split-eval',
                                         'train#part1', 'train#part2', 'train#merge'])
        split = records['train#split-train']
        self.assertEqual(split.algorithm, 'split')
        self.assertEqual(split.inputs, ['dataset:corpus'])
        self.assertEqual(split.outputs, ['dataset:corpus.part1', 'dataset:corpus.part2'])
        part = records['train#part2']
        self.assertEqual(part.algorithm, 'classify')
        self.assertEqual(part.inputs, ['dataset:corpus.part2', 'dataset:heldout.part2'])
        self.assertEqual(part.outputs, ['model.bin.part2'])
        merge = records['train#merge']
        self.assertEqual(merge.algorithm, 'merge')
        self.assertEqual(merge.inputs, ['model.bin.part1', 'model.bin.part2'])
        self.assertEqual(merge.outputs, ['model.bin'])
        self.assertEqual(merge.prerequisites, {'train#part1', 'train#part2'})
        self.assertEqual(part.prerequisites, {'train#split-train', 'train#split-eval'})

        # a single worker does not split
        self.assertEqual(list(self.compile(text)), ['prep', 'train'])


    def test_parallelize_on_files(self):
        text = BASIC.replace('<computation id="train">',
                             '<computation id="train" parallelizable="true">') \
                    .replace('<eval><dataSet id="heldout"/></eval>',
                             '<eval><file name="heldout.arff"/></eval>')
        self.assertInvalid(text, DataException.CANNOT_PARALLELIZE_ON_FILES, max_workers=4)


    def test_nested_task(self):
        self.assertInvalid('''
            <process>
              <manipulation id="a">
                <computation id="b">
                </computation>
              </manipulation>
            </process>
        ''', DataException.NESTED_TASKS, line=3)


    def test_unknown_element(self):
        self.assertInvalid('''
            <process>
              <manipulation id="a">
                <algorithm class="copy"/>
                <parameters/>
              </manipulation>
            </process>
        ''', DataException.UNKNOWN_ELEMENT, line=4)


    def test_duplicate_id(self):
        self.assertInvalid('''
            <process>
              <manipulation id="a">
                <algorithm class="copy"/>
                <output><file name="a.txt"/></output>
              </manipulation>
              <manipulation id="a">
                <algorithm class="copy"/>
                <output><file name="b.txt"/></output>
              </manipulation>
            </process>
        ''', DataException.DUPLICATE_ID, line=6)


    def test_expansion_mark_in_id(self):
        self.assertInvalid('<process><manipulation id="a#1"/></process>',
                           DataException.INVALID_SCENARIO, line=1)


    def test_missing_algorithm(self):
        exc = self.assertInvalid('''
            <process>
              <manipulation id="a">
                <output><file name="a.txt"/></output>
              </manipulation>
            </process>
        ''', DataException.MISSING_ALGORITHM, line=2)
        self.assertIn('line: 2', str(exc))


    def test_missing_section(self):
        self.assertInvalid('''
            <process>
              <computation id="a">
                <algorithm class="classify"/>
                <train><file name="train.arff"/></train>
              </computation>
            </process>
        ''', DataException.MISSING_SECTION)


    def test_trailing_characters(self):
        self.assertInvalid('''
            <process>
              <manipulation id="a">
                <algorithm class="copy"/>
                oops
              </manipulation>
            </process>
        ''', DataException.TRAILING_CHARACTERS)


    def test_invalid_pattern(self):
        self.assertInvalid('''
            <process>
              <manipulation id="a">
                <algorithm class="copy"/>
                <output><dataSet id="x-*"/></output>
              </manipulation>
            </process>
        ''', DataException.INVALID_PATTERN, line=4)
        self.assertInvalid('''
            <process>
              <manipulation id="a">
                <algorithm class="copy"/>
                <input><file name="in-*-$1-*.txt"/></input>
              </manipulation>
            </process>
        ''', DataException.INVALID_PATTERN, line=4)


    def test_duplicate_output(self):
        self.assertInvalid('''
            <process>
              <manipulation id="a">
                <algorithm class="copy"/>
                <output><dataSet id="x"/></output>
              </manipulation>
              <manipulation id="b">
                <algorithm class="copy"/>
                <output><dataSet id="x"/></output>
              </manipulation>
            </process>
        ''', DataException.DUPLICATE_OUTPUT, line=9)


    def test_never_produced(self):
        exc = self.assertInvalid('''
            <process>
              <evaluation id="a">
                <algorithm class="score"/>
                <data><dataSet id="missing"/></data>
              </evaluation>
            </process>
        ''', DataException.DATA_SET_NEVER_PRODUCED)
        self.assertIn('dataset:missing', exc.detail)


    def test_malformed(self):
        self.assertInvalid('''
            <process>
              <manipulation id="a">
            </process>
        ''', DataException.INVALID_SCENARIO, line=3)
        self.assertInvalid('<process>', DataException.INVALID_SCENARIO)
        self.assertInvalid('<scenario/>', DataException.INVALID_SCENARIO)


    def test_unknown_algorithm(self):
        self.assertEqual(len(self.compile(BASIC.replace('classify', 'copy'), registry=registry)), 2)
        self.assertInvalid(BASIC, DataException.UNKNOWN_ALGORITHM, line=12, registry=registry)
