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
Wildcard patterns in data specifications.

The file name part of a specification may contain:

* ``*``: variable 1, shared by all inputs of a task which use it; the task
  is cloned once per value found for it in every such input.
* ``$1`` .. ``$9``: numbered variables, shared like ``*``; distinct
  variables combine into a cartesian product.
* ``***``: a variable private to the input it appears in, so several of
  them combine into a cartesian product.
* ``**`` or ``$0``: the listing variable; all matching files become inputs
  of the same task.

In outputs ``$N`` stands for the value of variable N and ``*`` for the
values of all variables of the task joined by ``_``.
'''

from functools import lru_cache
import os.path
import re

from mlprocess.plan.exceptions import TaskException
from mlprocess.util.fs import listfiles


SINGLE = 1
DOUBLE = 2
TRIPLE = 3

LISTING = 0
MAX_VARIABLE = 9

LOGICAL_PREFIXES = ('dataset:', 'feature:')

JOIN_CHAR = '_'

_TOKEN = re.compile(r'\*+|\$\d')


def is_logical(spec):
    return spec.startswith(LOGICAL_PREFIXES)


def tokens(spec):
    '''
    The wildcard tokens in the file name part of spec. Raises
    ``PATTERN_SPECS`` for ambiguous patterns.
    '''
    if is_logical(spec):
        return []
    head, tail = os.path.split(spec)
    if _TOKEN.search(head):
        raise TaskException(TaskException.PATTERN_SPECS,
                            detail='Wildcards in directory names are not supported: %r' % spec)
    found = _TOKEN.findall(tail)
    stars = [t for t in found if t[0] == '*']
    if len(stars) > 1 or any(len(t) > 3 for t in stars):
        raise TaskException(TaskException.PATTERN_SPECS, detail='Ambiguous pattern %r' % spec)
    dollars = [t for t in found if t[0] == '$']
    if len(set(dollars)) != len(dollars):
        raise TaskException(TaskException.PATTERN_SPECS, detail='Repeated variable in %r' % spec)
    return found


def token_class(token):
    if token in ('**', '$0'):
        return DOUBLE
    elif token == '***':
        return TRIPLE
    else:
        return SINGLE


def classes(specs):
    '''The set of pattern classes occurring in the specs.'''
    return {token_class(t) for spec in specs for t in tokens(spec)}


def has_pattern(spec):
    return bool(tokens(spec))


def joined(values):
    return JOIN_CHAR.join(values[var] for var in sorted(values))


def occurrence_pattern(spec):
    '''Normalize all wildcard tokens to ``*`` (for matching producers with consumers).'''
    if is_logical(spec):
        return spec
    return _TOKEN.sub('*', spec)


@lru_cache(4096)
def _occurrence_regex(filename):
    return re.compile('([^/]+)'.join(re.escape(part) for part in filename.split('*')))


def _split(spec):
    dirname, filename = os.path.split(spec)
    return os.path.normpath(dirname or '.'), filename


def overlaps(a, b):
    '''
    Whether two specifications may denote the same data: they are in the same
    directory and their file names are equal after normalization or one is a
    concrete file name matched by the other.
    '''
    if is_logical(a) or is_logical(b):
        return a == b
    a, b = occurrence_pattern(a), occurrence_pattern(b)
    if a == b:
        return True
    (a_dir, a_name), (b_dir, b_name) = _split(a), _split(b)
    if a_dir != b_dir:
        return False
    if a_name == b_name:
        return True
    a_pattern, b_pattern = '*' in a_name, '*' in b_name
    if a_pattern and not b_pattern:
        return _occurrence_regex(a_name).fullmatch(b_name) is not None
    elif b_pattern and not a_pattern:
        return _occurrence_regex(b_name).fullmatch(a_name) is not None
    return False


def any_overlap(specs, others):
    return any(overlaps(a, b) for a in specs for b in others)



class FilePattern(object):
    '''
    A compiled data specification. ``variables`` lists the variable numbers
    of the wildcard tokens in order of appearance.
    '''

    def __init__(self, spec, triple_var=None):
        self.spec = spec
        self.dirname, self.filename = os.path.split(spec)
        self.tokens = tokens(spec)
        self.variables = []

        parts = []
        pos = 0
        for match in _TOKEN.finditer(self.filename):
            var = self._variable(match.group(), triple_var)
            if var in self.variables:
                raise TaskException(TaskException.PATTERN_SPECS,
                                    detail='Variable %s used twice in %r' % (var, spec))
            self.variables.append(var)
            parts.append(re.escape(self.filename[pos:match.start()]))
            parts.append('(.+)')
            pos = match.end()
        parts.append(re.escape(self.filename[pos:]))
        self.regex = re.compile(''.join(parts))


    def _variable(self, token, triple_var):
        if token == '*':
            return 1
        elif token == '**':
            return LISTING
        elif token == '***':
            if triple_var is None:
                raise TaskException(TaskException.PATTERN_SPECS,
                                    detail='Cartesian pattern not allowed in %r' % self.spec)
            return triple_var
        else:
            return int(token[1])


    def __bool__(self):
        return bool(self.variables)


    def match(self, filename):
        '''Match a file name; returns {variable: value} or None.'''
        m = self.regex.fullmatch(filename)
        if m is None:
            return None
        return dict(zip(self.variables, m.groups()))


    def match_path(self, path):
        '''Match a path including its directory.'''
        dirname, filename = os.path.split(path)
        if os.path.normpath(dirname or '.') != os.path.normpath(self.dirname or '.'):
            return None
        return self.match(filename)


    def substitute(self, values, star=None):
        '''
        Replace the tokens of bound variables by their values. If star is
        given, a ``*`` token is replaced by it regardless of variable 1.
        '''
        def replace(match):
            token = match.group()
            if token == '*' and star is not None:
                return star
            var = self._variable(token, self._triple_var_of(token))
            return values.get(var, token)

        return os.path.join(self.dirname, _TOKEN.sub(replace, self.filename))


    def _triple_var_of(self, token):
        if token != '***':
            return None
        return self.variables[self.tokens.index('***')]


    def _listdir(self, workdir):
        path = os.path.join(workdir or '', self.dirname) or '.'
        try:
            return listfiles(path)
        except FileNotFoundError:
            raise TaskException(TaskException.NO_FILES, detail='Directory %r not found' % path)
        except NotADirectoryError:
            raise TaskException(TaskException.NO_FILES, detail='%r is not a directory' % path)


    def find_matches(self, workdir=None):
        '''
        The values found for each variable of the pattern among the files
        of its directory, as {variable: {values}}.
        '''
        found = {var: set() for var in self.variables}
        for filename in self._listdir(workdir):
            values = self.match(filename)
            if values:
                for var, value in values.items():
                    found[var].add(value)
        for var, values in found.items():
            if not values:
                raise TaskException(TaskException.NO_FILES,
                                    detail='No files match %r' % self.spec)
        return found


    def listing(self, workdir=None):
        '''The sorted paths (in the form of the spec) of all matching files.'''
        files = [os.path.join(self.dirname, f) for f in self._listdir(workdir) if self.match(f)]
        if not files:
            raise TaskException(TaskException.NO_FILES, detail='No files match %r' % self.spec)
        return files


    def __repr__(self):
        return '<FilePattern %r %s>' % (self.spec, self.variables)



def assign_patterns(specs):
    '''
    Compile the specs of a task's inputs, giving each ``***`` its own
    variable: the lowest number not used explicitly by the specs. Returns a
    list with a FilePattern per spec or None for specs without patterns.
    '''
    spec_tokens = [tokens(spec) for spec in specs]
    used = set()
    for found in spec_tokens:
        for token in found:
            if token == '*':
                used.add(1)
            elif token[0] == '$':
                used.add(int(token[1]))
    free = (var for var in range(1, MAX_VARIABLE + 1) if var not in used)

    compiled = []
    for spec, found in zip(specs, spec_tokens):
        if not found:
            compiled.append(None)
            continue
        triple_var = None
        if '***' in found:
            triple_var = next(free, None)
            if triple_var is None:
                raise TaskException(TaskException.PATTERN_SPECS,
                                    detail='Too many pattern variables in %r' % (specs,))
        compiled.append(FilePattern(spec, triple_var))
    return compiled
