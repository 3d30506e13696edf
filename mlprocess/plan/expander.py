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
Expansion of task records with wildcard patterns in their inputs.

A task with ``*`` (or ``$N`` or ``***``) inputs is cloned once per value (or
combination of values) found on disk. The values are substituted into the
inputs and outputs of the clones and the expansion is propagated to the
dependents which consume those outputs and to the prerequisites which
produce the inputs, so that every clone ends up depending on exactly the
clones which produce its data. A task with ``**`` inputs is rewritten in
place: the pattern is replaced by all matching files.

The expander does not change the order of the plan, it returns the records
to remove and the clones to add so the plan can be spliced in one step.
'''

from operator import attrgetter
import logging

from mlprocess.plan.exceptions import TaskException
from mlprocess.plan.patterns import SINGLE, DOUBLE, TRIPLE, FilePattern, any_overlap, \
    assign_patterns, has_pattern, joined, overlaps, token_class, tokens
from mlprocess.plan.record import Status
from mlprocess.util.strings import fold_strings


logger = logging.getLogger(__name__)


EXPANDABLE = (Status.WAITING, Status.PENDING)


def _pattern_specs(detail):
    return TaskException(TaskException.PATTERN_SPECS, detail=detail)


def _resolved(record):
    '''Whether no expanding (single or cartesian) input patterns remain.'''
    return not (record.input_classes() & {SINGLE, TRIPLE})


def _substitute_outputs(record):
    star = joined(record.replacements)
    outputs = []
    for spec in record.outputs:
        found = tokens(spec)
        if found and not any(token_class(t) == DOUBLE for t in found):
            spec = FilePattern(spec).substitute(record.replacements, star=star)
        outputs.append(spec)
    return outputs



class TaskExpander(object):
    def __init__(self, plan, task, workdir=None):
        self.plan = plan
        self.task = task
        self.workdir = workdir
        # original id -> original record, for all records replaced by clones
        self.originals = {}
        # original id -> clones
        self.expansions = {}
        # clone id -> clone
        self.created = {}
        # (record, inputs) of the records of which the inputs were rewritten
        self.rewritten = []


    def expand(self):
        '''
        Expand the task. Returns ``(to_remove, to_add)``: the originals which
        were replaced (without any edges left) and all clones sorted by rank.
        Records rewritten in place are changed directly.
        '''
        try:
            self._expand()
        except TaskException as exc:
            self.rollback()
            if exc.task_id is None:
                raise TaskException(exc.code, self.task.id, exc.detail) from exc
            raise

        to_remove = list(self.originals.values())
        to_add = sorted(self.created.values(), key=attrgetter('rank'))
        if to_add:
            logger.debug('Expanded %s into %s', fold_strings(self.originals, split='#'),
                         fold_strings((c.id for c in to_add), split='#'))
        return to_remove, to_add


    def rollback(self):
        '''Undo the edges to the clones created and the inputs rewritten so far.'''
        for clone in self.created.values():
            for prerequisite_id in clone.prerequisites:
                prerequisite = self.plan.tasks.get(prerequisite_id)
                if prerequisite is not None:
                    prerequisite.dependents.discard(clone.id)
            for dependent_id in clone.dependents:
                dependent = self.plan.tasks.get(dependent_id)
                if dependent is not None:
                    dependent.prerequisites.discard(clone.id)
        for record, inputs in reversed(self.rewritten):
            record.inputs = inputs
        self.originals.clear()
        self.expansions.clear()
        self.created.clear()
        self.rewritten.clear()


    def _expand(self):
        task = self.task
        in_classes = task.input_classes()
        out_classes = task.output_classes()

        if DOUBLE in in_classes and len(in_classes) > 1:
            raise _pattern_specs('Listing patterns cannot be combined with other input patterns')
        if DOUBLE in out_classes and len(out_classes) > 1:
            raise _pattern_specs('Listing patterns cannot be combined with other output patterns')
        if TRIPLE in out_classes:
            raise _pattern_specs('Cartesian patterns are not allowed in outputs')

        if not in_classes:
            if out_classes - {DOUBLE}:
                raise _pattern_specs('Outputs have patterns but the inputs do not')
            return

        if in_classes == {DOUBLE}:
            if out_classes - {DOUBLE}:
                raise _pattern_specs('Outputs of a task with listing inputs cannot be expanded')
            self._expand_listing(task)
            return

        if any(not has_pattern(spec) for spec in task.outputs):
            raise _pattern_specs('All outputs must have patterns if the inputs have them')

        self._register(task, self._expand_inputs(task))
        if out_classes == {SINGLE}:
            self._expand_outputs_and_deps(task)
        self._finish()


    def _get(self, task_id):
        return self.created.get(task_id) or self.plan.tasks.get(task_id)


    def _expand_listing(self, task):
        inputs = []
        for spec in task.inputs:
            if has_pattern(spec):
                inputs.extend(FilePattern(spec).listing(self.workdir))
            else:
                inputs.append(spec)
        logger.trace('Listed %s inputs for %s', len(inputs), task.id)
        task.inputs = inputs


    def _expand_inputs(self, task):
        compiled = assign_patterns(task.inputs)

        values_of = {}
        for pattern in compiled:
            if not pattern:
                continue
            for var, values in pattern.find_matches(self.workdir).items():
                if var in values_of:
                    values_of[var] &= values
                else:
                    values_of[var] = set(values)

        combinations = [{}]
        for var in sorted(values_of):
            values = values_of[var]
            if not values:
                raise TaskException(TaskException.NO_FILES,
                                    detail='No common values for pattern variable %s' % var)
            combinations = [{**combination, var: value}
                            for combination in combinations
                            for value in sorted(values)]

        return [self._clone(task, values, compiled) for values in combinations]


    def _clone(self, record, values, compiled=None):
        if compiled is None:
            compiled = assign_patterns(record.inputs)
        inputs = [pattern.substitute(values) if pattern else spec
                  for spec, pattern in zip(record.inputs, compiled)]
        suffix = '#'.join(values[var] for var in sorted(values))
        clone = record.clone(suffix, values, inputs, record.outputs)
        if _resolved(clone):
            clone.outputs = _substitute_outputs(clone)
        return clone


    def _register(self, original, clones):
        '''Record the expansion of original and mirror its edges onto the clones.'''
        self.originals[original.id] = original
        self.expansions[original.id] = clones
        for clone in clones:
            if clone.id in self.created or clone.id in self.plan.tasks:
                raise _pattern_specs('Expansion of %s yields %s twice' % (original.id, clone.id))
            self.created[clone.id] = clone
        for prerequisite_id in list(original.prerequisites):
            prerequisite = self._get(prerequisite_id)
            for clone in clones:
                self.plan.link(prerequisite, clone)
        for dependent_id in list(original.dependents):
            dependent = self._get(dependent_id)
            for clone in clones:
                self.plan.link(clone, dependent)


    def _expand_outputs_and_deps(self, record):
        for dependent in self.plan.dependents(record, self.created):
            if dependent.id in self.created or dependent.id in self.expansions:
                continue
            if dependent.status in EXPANDABLE and dependent.input_classes() == {SINGLE}:
                self._expand_dependent(record, dependent)

        for prerequisite in self.plan.prerequisites(record, self.created):
            if prerequisite.id in self.created or prerequisite.id in self.expansions:
                continue
            if prerequisite.status in EXPANDABLE and prerequisite.output_classes() == {SINGLE}:
                self._expand_prerequisite(prerequisite, record)


    def _match(self, pairs, compiled, concrete):
        '''
        Match the concrete specs against the patterns for the (pattern index,
        concrete index) pairs. Returns the variable values or None if they
        conflict or nothing matches.
        '''
        values = {}
        for pattern_idx, concrete_idx in pairs:
            found = compiled[pattern_idx].match_path(concrete[concrete_idx])
            if found is None:
                return None
            for var, value in found.items():
                if values.setdefault(var, value) != value:
                    return None
        return values or None


    def _expand_dependent(self, record, dependent):
        '''
        Expand a dependent per clone of record, binding its variables to the
        outputs of the clone it consumes. A dependent without output patterns
        aggregates: its inputs are rewritten to the outputs of all clones.
        '''
        clones = self.expansions[record.id]
        pairs = [(i, j)
                 for i, spec in enumerate(dependent.inputs) if has_pattern(spec)
                 for j, output in enumerate(record.outputs) if overlaps(spec, output)]
        if not pairs:
            return

        if not any(has_pattern(spec) for spec in dependent.outputs):
            inputs = []
            for i, spec in enumerate(dependent.inputs):
                consumed = [j for pattern_idx, j in pairs if pattern_idx == i]
                if consumed:
                    inputs.extend(clone.outputs[j] for clone in clones for j in consumed)
                else:
                    inputs.append(spec)
            logger.trace('Rewrote inputs of %s to the outputs of %s', dependent.id, record.id)
            self.rewritten.append((dependent, dependent.inputs))
            dependent.inputs = inputs
            return

        if any(not has_pattern(spec) for spec in dependent.outputs) \
                or dependent.output_classes() != {SINGLE}:
            # left as is, its own expansion reports the inconsistency
            return

        compiled = assign_patterns(dependent.inputs)
        expanded = {}
        for clone in clones:
            values = self._match(pairs, compiled, clone.outputs)
            if values is None:
                continue
            key = tuple(sorted(values.items()))
            if key not in expanded:
                expanded[key] = self._clone(dependent, values, compiled)

        if not expanded:
            raise _pattern_specs('Could not expand dependent task %s' % dependent.id)

        dependent_clones = list(expanded.values())
        self._register(dependent, dependent_clones)
        if all(_resolved(clone) for clone in dependent_clones):
            self._expand_outputs_and_deps(dependent)


    def _expand_prerequisite(self, prerequisite, record):
        '''
        Expand a prerequisite with output patterns per clone of record,
        binding its variables to the inputs of the clone which consume them.
        '''
        if any(not has_pattern(spec) for spec in prerequisite.outputs):
            raise _pattern_specs('All outputs of %s must have patterns' % prerequisite.id)

        original = self.originals[record.id]
        out_compiled = [FilePattern(spec) for spec in prerequisite.outputs]
        pairs = [(j, i)
                 for i, spec in enumerate(original.inputs)
                 for j, output in enumerate(prerequisite.outputs) if overlaps(spec, output)]
        if not pairs:
            return

        in_compiled = assign_patterns(prerequisite.inputs)
        needed = {var for pattern in in_compiled if pattern for var in pattern.variables}

        expanded = {}
        for clone in self.expansions[record.id]:
            values = self._match(pairs, out_compiled, clone.inputs)
            if values is None:
                continue
            if needed - set(values):
                raise _pattern_specs('Could not expand prerequisite task %s completely'
                                     % prerequisite.id)
            values = {var: values[var] for var in needed}
            key = tuple(sorted(values.items()))
            if key not in expanded:
                expanded[key] = self._clone(prerequisite, values, in_compiled)

        if not expanded:
            raise _pattern_specs('Could not expand prerequisite task %s' % prerequisite.id)

        self._register(prerequisite, list(expanded.values()))
        self._expand_outputs_and_deps(prerequisite)


    def _finish(self):
        '''
        Keep only the edges of the clones which connect producers with
        consumers of the same data and detach the originals.
        '''
        for clone in self.created.values():
            for prerequisite in self.plan.prerequisites(clone, self.created):
                if prerequisite.id not in self.originals \
                        and not any_overlap(prerequisite.outputs, clone.inputs):
                    self.plan.unlink(prerequisite, clone)
            for dependent in self.plan.dependents(clone, self.created):
                if dependent.id not in self.originals \
                        and not any_overlap(clone.outputs, dependent.inputs):
                    self.plan.unlink(clone, dependent)

        for original in self.originals.values():
            self.plan.isolate(original, self.created)
