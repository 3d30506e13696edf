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

import logging
import os
import sys
import textwrap
import threading
import traceback


logger = logging.getLogger(__name__)


def format_threads():
    threads = list(threading.enumerate())
    frames = sys._current_frames()

    lines = ['Threads (%s) of process %s' % (len(threads), os.getpid())]
    for idx, thread in enumerate(threads, 1):
        stack = frames.get(thread.ident)
        if stack is None:
            continue
        lines.append(' %s id=%s name=%s (%s%s)' %
                     (idx, thread.ident, thread.name, type(thread).__name__,
                      (', daemon' if thread.daemon else '')))
        stack = ''.join(traceback.format_list(traceback.extract_stack(stack)))
        lines.append(textwrap.indent(stack, '  ').rstrip())
    return '\n'.join(lines)


def dump_threads(*args, **kwargs):
    '''Log the stacks of all threads, usable as a signal handler.'''
    logger.warning(format_threads())
