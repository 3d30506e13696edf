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
Tasks every scenario can use. ``split`` and ``merge`` are the default
algorithms of the tasks generated to parallelize a task.
'''

from contextlib import ExitStack
import logging
import shutil

from mlprocess.execute.task import Task, register
from mlprocess.util.collection import batch
from mlprocess.util.fs import ensure_dir


logger = logging.getLogger(__name__)


def _open_outputs(stack, outputs):
    files = []
    for output in outputs:
        ensure_dir(output)
        files.append(stack.enter_context(open(output, 'w')))
    return files



@register('split')
class Split(Task):
    '''Distribute the lines of the inputs round-robin over the outputs.'''

    def perform(self):
        if not self.outputs:
            raise ValueError('Nothing to split %s into' % self.inputs)
        with ExitStack() as stack:
            outputs = _open_outputs(stack, self.outputs)
            idx = 0
            for path in self.inputs:
                with open(path) as lines:
                    for line in lines:
                        outputs[idx % len(outputs)].write(line)
                        idx += 1
        logger.debug('Split %s lines of %s into %s parts', idx, self.id, len(self.outputs))



@register('merge')
class Merge(Task):
    '''
    Concatenate the inputs into the output. With several outputs the inputs
    are divided evenly into consecutive groups, one per output.
    '''

    def perform(self):
        if not self.inputs or not self.outputs or len(self.inputs) % len(self.outputs):
            raise ValueError('Cannot merge %s inputs into %s outputs'
                             % (len(self.inputs), len(self.outputs)))
        size = len(self.inputs) // len(self.outputs)
        for output, group in zip(self.outputs, batch(self.inputs, size)):
            ensure_dir(output)
            with open(output, 'wb') as dst:
                for path in group:
                    with open(path, 'rb') as src:
                        shutil.copyfileobj(src, dst)



@register('copy')
class Copy(Task):
    def perform(self):
        if len(self.inputs) != len(self.outputs):
            raise ValueError('Cannot copy %s inputs to %s outputs'
                             % (len(self.inputs), len(self.outputs)))
        for src, dst in zip(self.inputs, self.outputs):
            ensure_dir(dst)
            shutil.copyfile(src, dst)
