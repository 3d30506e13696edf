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
Compilation of a scenario (an XML description of computation, manipulation
and evaluation tasks) into task records.

A scenario looks like::

    <process>
      <manipulation id="prep">
        <algorithm class="copy"/>
        <input><file name="raw-*.txt"/></input>
        <output><dataSet id="corpus"/><file name="clean-*.txt"/></output>
      </manipulation>
      <computation id="train" parallelizable="true">
        <algorithm class="classify" parameters="c=1 kernel=rbf"/>
        <train><dataSet id="corpus"/></train>
        <eval><file name="heldout.arff"/></eval>
        <output><file name="model-*.bin"/></output>
      </computation>
    </process>

A section with several working data sets (``train``, ``devel``, ``eval``
or ``data``) is replicated per data set, a parallelizable section is split
further into a splitter task per working data set, part tasks and a merger
task. The dependencies between the records follow from the data they
produce and consume.
'''

from collections import namedtuple
from math import ceil
import io
import logging
import xml.sax

from mlprocess.plan.exceptions import DataException, TaskException
from mlprocess.plan.graph import Plan
from mlprocess.plan.occurrences import Occurrences
from mlprocess.plan.patterns import tokens
from mlprocess.plan.record import EXPANSION_MARK, TaskRecord
from mlprocess.util.strings import parse_parameters
import mlprocess


logger = logging.getLogger(__name__)


PROCESS = 'process'
ALGORITHM = 'algorithm'

TASK_KINDS = ('computation', 'manipulation', 'evaluation')

SOURCE_KINDS = {
    'dataSet': 'dataset',
    'feature': 'feature',
    'file': 'file',
}

WORKING_SECTIONS = ('train', 'devel', 'eval', 'data')

SECTIONS = {
    'computation': ('train', 'devel', 'eval', 'input', 'output'),
    'evaluation': ('data', 'input', 'output'),
    'manipulation': ('input', 'output', 'needed', 'created'),
}

ALL_SECTIONS = frozenset(name for names in SECTIONS.values() for name in names)


def _location(name, line, column):
    return 'file: "%s", line: %s, column: %s' % (name, line, column)


def _true(value):
    return (value or '').strip().lower() in ('true', '1', 'yes')



class Source(namedtuple('Source', 'kind name dataset')):
    '''
    A data source of a section: a data set, a feature (of an explicit data
    set or, if dataset is None, of the working data set of the replica) or
    a file.
    '''

    def spec(self, binding=None):
        if self.kind == 'dataset':
            return 'dataset:' + self.name
        elif self.kind == 'feature':
            return 'feature:%s@%s' % (self.name, self.dataset or binding)
        return self.name



class TaskSection(object):
    '''A task section of the scenario as it is being parsed.'''

    def __init__(self, kind, task_id, parallelizable, location):
        self.kind = kind
        self.id = task_id
        self.parallelizable = parallelizable
        self.location = location
        self.algorithm = None
        self.parameters = {}
        self.sections = {}
        self.open_section = None


    def error(self, code, detail=None):
        return DataException(code, detail, self.location)


    def set_algorithm(self, name, parameters, parallelizable):
        if self.algorithm is not None:
            raise DataException(DataException.ALGORITHM_SET, self.id)
        if not name:
            raise DataException(DataException.MISSING_ALGORITHM, 'No class given for %s' % self.id)
        self.algorithm = name
        self.parameters = parse_parameters(parameters)
        self.parallelizable = self.parallelizable or parallelizable


    def open(self, name):
        if self.open_section is not None:
            raise DataException(DataException.NESTED_DATA_SECTIONS,
                                '<%s> inside <%s>' % (name, self.open_section))
        if name not in SECTIONS[self.kind]:
            raise DataException(DataException.UNKNOWN_ELEMENT,
                                '<%s> is not allowed in a %s task' % (name, self.kind))
        if name in self.sections:
            raise DataException(DataException.DUPLICATE_SECTION, '<%s>' % name)
        self.sections[name] = []
        self.open_section = name


    def close(self, name):
        if self.open_section != name:
            raise DataException(DataException.UNKNOWN_ELEMENT,
                                '</%s> does not close <%s>' % (name, self.open_section))
        self.open_section = None


    def add(self, source):
        if self.open_section is None:
            raise DataException(DataException.INVALID_DATA_TYPE,
                                'Data source outside of a data section')
        if self.open_section in WORKING_SECTIONS and source.kind == 'feature':
            raise DataException(DataException.INVALID_DATA_TYPE,
                                'Features cannot be working data sets')
        if self.kind == 'manipulation' and source.kind == 'feature' and not source.dataset:
            raise DataException(DataException.INVALID_DATA_TYPE,
                                'Feature %s needs a data set in a manipulation task' % source.name)
        self.sections[self.open_section].append(source)


    def check(self):
        if self.algorithm is None:
            raise self.error(DataException.MISSING_ALGORITHM, self.id)
        if self.kind == 'computation':
            for name in ('train', 'eval'):
                if not self.sections.get(name):
                    raise self.error(DataException.MISSING_SECTION, '<%s> in %s' % (name, self.id))
            sizes = {len(self.sections[name]) for name in ('train', 'devel', 'eval')
                     if name in self.sections}
            if len(sizes) > 1:
                raise self.error(DataException.SECTION_SIZES, self.id)
        elif self.kind == 'evaluation':
            if not self.sections.get('data'):
                raise self.error(DataException.MISSING_SECTION, '<data> in %s' % self.id)
        elif self.parallelizable:
            raise self.error(DataException.CANNOT_PARALLELIZE,
                             'Manipulation task %s' % self.id)


    def count(self):
        '''The number of replicas, i.e. working data sets per role.'''
        for name in WORKING_SECTIONS:
            if self.sections.get(name):
                return len(self.sections[name])
        return 1


    def working(self, idx):
        '''The (role, source) pairs of the working data sets of replica idx.'''
        return [(name, self.sections[name][idx]) for name in WORKING_SECTIONS
                if self.sections.get(name)]


    def inputs(self):
        return self.sections.get('input', []) + self.sections.get('needed', [])


    def outputs(self, idx):
        outputs = self.sections.get('output', []) + self.sections.get('created', [])
        count = self.count()
        if self.kind == 'evaluation' and count > 1 and len(outputs) == count:
            return [outputs[idx]]
        return outputs


    def __repr__(self):
        return '<TaskSection %s %s>' % (self.kind, self.id)



class ScenarioHandler(xml.sax.handler.ContentHandler):
    def __init__(self, compiler, name):
        super().__init__()
        self.compiler = compiler
        self.name = name
        self.locator = None
        self.opened = False
        self.closed = False
        self.current = None
        self.ids = set()
        self.records = []
        self.occurrences = Occurrences()


    def location(self):
        if self.locator is None:
            return _location(self.name, None, None)
        return _location(self.name, self.locator.getLineNumber(), self.locator.getColumnNumber())


    def setDocumentLocator(self, locator):
        self.locator = locator


    def startElement(self, name, attrs):
        try:
            self._start(name, attrs)
        except DataException as exc:
            if exc.location:
                raise
            raise DataException(exc.code, exc.detail, self.location()) from exc


    def endElement(self, name):
        try:
            self._end(name)
        except DataException as exc:
            if exc.location:
                raise
            raise DataException(exc.code, exc.detail, self.location()) from exc


    def characters(self, content):
        if content.strip():
            raise DataException(DataException.TRAILING_CHARACTERS, repr(content.strip()),
                                self.location())


    def endDocument(self):
        if not self.closed:
            raise DataException(DataException.INVALID_SCENARIO, '<process> is not closed',
                                self.location())


    def _start(self, name, attrs):
        if self.closed:
            raise DataException(DataException.INVALID_SCENARIO, 'Elements past the end of input')
        if name == PROCESS:
            if self.opened:
                raise DataException(DataException.INVALID_SCENARIO,
                                    'Only one <process> is allowed')
            self.opened = True
            return
        if not self.opened:
            raise DataException(DataException.INVALID_SCENARIO,
                                'The root element must be <process>')

        if name in TASK_KINDS:
            if self.current is not None:
                raise DataException(DataException.NESTED_TASKS,
                                    '<%s> inside %s' % (name, self.current.id))
            task_id = attrs.get('id')
            if not task_id:
                raise DataException(DataException.INVALID_SCENARIO, 'Task id missing')
            if EXPANSION_MARK in task_id:
                raise DataException(DataException.INVALID_SCENARIO,
                                    'Task id %r contains %r' % (task_id, EXPANSION_MARK))
            if task_id in self.ids:
                raise DataException(DataException.DUPLICATE_ID, task_id)
            self.ids.add(task_id)
            self.current = TaskSection(name, task_id, _true(attrs.get('parallelizable')),
                                       self.location())
            return

        if self.current is None:
            raise DataException(DataException.UNKNOWN_ELEMENT,
                                '<%s> outside of a task' % name)

        if name == ALGORITHM:
            self.current.set_algorithm(attrs.get('class'), attrs.get('parameters'),
                                       _true(attrs.get('parallelizable')))
        elif name in ALL_SECTIONS:
            self.current.open(name)
        elif name in SOURCE_KINDS:
            self.current.add(self._source(name, attrs))
        else:
            raise DataException(DataException.UNKNOWN_ELEMENT, '<%s>' % name)


    def _source(self, element, attrs):
        kind = SOURCE_KINDS[element]
        name = attrs.get('name' if kind == 'file' else 'id')
        if not name:
            raise DataException(DataException.INVALID_DATA_TYPE,
                                '<%s> without %s' % (element, 'name' if kind == 'file' else 'id'))
        dataset = attrs.get('dataSet') if kind == 'feature' else None
        try:
            found = tokens(name)
        except TaskException as exc:
            raise DataException(DataException.INVALID_PATTERN, exc.detail) from exc
        if found and kind != 'file':
            raise DataException(DataException.INVALID_PATTERN,
                                'Patterns are only allowed in file names: %r' % name)
        return Source(kind, name, dataset)


    def _end(self, name):
        if name == PROCESS:
            if self.current is not None:
                raise DataException(DataException.INVALID_SCENARIO,
                                    'Cannot close <process> inside task %s' % self.current.id)
            self.closed = True
        elif name in TASK_KINDS:
            section = self.current
            if section.kind != name:
                raise DataException(DataException.UNKNOWN_ELEMENT,
                                    '</%s> does not close <%s>' % (name, section.kind))
            if section.open_section is not None:
                raise DataException(DataException.UNKNOWN_ELEMENT,
                                    '<%s> is not closed' % section.open_section)
            section.check()
            for record in self.compiler.section_records(section):
                self.compiler.check_algorithm(record.algorithm)
                self.occurrences.add(record)
                self.records.append(record)
            self.current = None
        elif name in ALL_SECTIONS:
            self.current.close(name)
        elif name not in SOURCE_KINDS and name != ALGORITHM:
            raise DataException(DataException.UNKNOWN_ELEMENT, '</%s>' % name)


    def finish(self):
        missing = self.occurrences.never_produced('dataset:')
        if missing:
            raise DataException(DataException.DATA_SET_NEVER_PRODUCED, ', '.join(missing),
                                'file: "%s"' % self.name)
        for producer, consumer in self.occurrences.edges():
            Plan.link(producer, consumer)
        return self.records



class ScenarioCompiler(object):
    '''
    Compiles scenarios into (unsorted) task records with their dependencies
    linked. Parallelizable tasks are split up to max_workers parts. If a
    registry is given, unknown algorithms are rejected.
    '''

    def __init__(self, max_workers=1, registry=None, splitter=None, merger=None):
        self.max_workers = max(1, max_workers)
        self.registry = registry
        self.splitter = splitter or mlprocess.conf['mlprocess.plan.splitter']
        self.merger = merger or mlprocess.conf['mlprocess.plan.merger']
        self.splitters = {}


    def compile_file(self, path):
        with open(path, 'rb') as f:
            return self._parse(f, path)


    def compile_string(self, text, name='<string>'):
        if isinstance(text, str):
            text = text.encode('utf-8')
        return self._parse(io.BytesIO(text), name)


    def _parse(self, source, name):
        self.splitters = {}
        handler = ScenarioHandler(self, name)
        parser = xml.sax.make_parser()
        parser.setContentHandler(handler)
        try:
            parser.parse(source)
        except xml.sax.SAXParseException as exc:
            raise DataException(DataException.INVALID_SCENARIO, exc.getMessage(),
                                _location(name, exc.getLineNumber(), exc.getColumnNumber())) from exc
        records = handler.finish()
        logger.info('Compiled %s tasks from %s', len(records), name)
        return records


    def check_algorithm(self, algorithm):
        if self.registry is not None and algorithm not in self.registry:
            raise DataException(DataException.UNKNOWN_ALGORITHM, algorithm)


    def section_records(self, section):
        count = section.count()
        max_parallel = int(ceil(self.max_workers / count))
        for idx in range(count):
            replica_id = section.id if count == 1 else '%s%s%d' % (section.id, EXPANSION_MARK, idx + 1)
            working = section.working(idx)
            binding = working[0][1].name if working else None
            if section.parallelizable and max_parallel > 1:
                yield from self._parallelize(section, replica_id, idx, working, max_parallel)
            else:
                sources = [ws for _, ws in working] + section.inputs()
                yield TaskRecord(replica_id, section.algorithm, section.parameters,
                                 [s.spec(binding) for s in sources],
                                 [s.spec(binding) for s in section.outputs(idx)])


    def _parallelize(self, section, replica_id, idx, working, max_parallel):
        for role, ws in working:
            if ws.kind != 'dataset':
                raise section.error(DataException.CANNOT_PARALLELIZE_ON_FILES,
                                    '%s of %s' % (ws.name, replica_id))

        parts = range(1, max_parallel + 1)
        working_names = {ws.name for _, ws in working}
        binding = working[0][1].name

        for role, ws in working:
            key = (ws.name, max_parallel)
            if key not in self.splitters:
                splitter = TaskRecord('%s%ssplit-%s' % (replica_id, EXPANSION_MARK, role),
                                      self.splitter, {}, [ws.spec()],
                                      ['dataset:%s.part%d' % (ws.name, k) for k in parts])
                self.splitters[key] = splitter
                yield splitter

        def part_input(source, k):
            if source.kind == 'dataset' and source.name in working_names:
                return 'dataset:%s.part%d' % (source.name, k)
            if source.kind == 'feature' and (source.dataset or binding) in working_names:
                return 'feature:%s@%s.part%d' % (source.name, source.dataset or binding, k)
            return source.spec(binding)

        def part_output(source, k):
            if source.kind == 'dataset':
                return 'dataset:%s.part%d' % (source.name, k)
            if source.kind == 'feature':
                return 'feature:%s@%s.part%d' % (source.name, binding, k)
            return '%s.part%d' % (source.name, k)

        sources = [ws for _, ws in working] + section.inputs()
        outputs = section.outputs(idx)
        for k in parts:
            yield TaskRecord('%s%spart%d' % (replica_id, EXPANSION_MARK, k),
                             section.algorithm, section.parameters,
                             [part_input(s, k) for s in sources],
                             [part_output(s, k) for s in outputs])

        yield TaskRecord('%s%smerge' % (replica_id, EXPANSION_MARK), self.merger, {},
                         [part_output(s, k) for s in outputs for k in parts],
                         [s.spec(binding) for s in outputs])
