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

from itertools import takewhile
import shlex


def _allequal(seq):
    return len(set(seq)) <= 1


def fold_strings(strings, split=None):
    '''
    Fold a collection of strings with a common prefix into a compact
    representation for log messages, e.g. ``task#[a, b, c]``.
    '''
    if split is not None:
        strings = [s.split(split) for s in strings]
    else:
        strings = list(strings)

    if len(strings) == 0:
        return ''
    elif len(strings) == 1:
        return strings[0] if split is None else split.join(strings[0])

    strings.sort()
    r = [i[0] for i in takewhile(_allequal, zip(*strings))]
    if not r:
        return ', '.join(s if split is None else split.join(s) for s in strings)

    if split is not None:
        prefix = split.join(r) + split
        strings = [split.join(s) for s in strings]
    else:
        prefix = ''.join(r)
    postfix = ', '.join(s[len(prefix):] for s in strings)
    if postfix.strip(', '):
        return '%s[%s]' % (prefix, postfix)
    return prefix


def parse_parameters(text):
    '''
    Parse a whitespace separated, shell quoted list of name=value pairs.
    A bare name is taken as name="".
    '''
    params = {}
    for token in shlex.split(text or ''):
        name, _, value = token.partition('=')
        params[name] = value
    return params


def format_parameters(params):
    return ' '.join('%s=%s' % (k, shlex.quote(v)) if v else k
                    for k, v in sorted(params.items()))
