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

import os.path
import tempfile

from mlprocess.util.exceptions import catch


def listfiles(path):
    '''The names of the regular files in path, sorted.'''
    return sorted(entry.name for entry in os.scandir(path) if entry.is_file())


def read_file(filename, mode='rb'):
    with open(filename, mode) as file:
        return file.read()


def atomic_write(filename, data, mode='wb'):
    '''
    Write data to a temporary file next to filename and rename it into
    place, so readers see either the old or the new contents.
    '''
    dirname = os.path.dirname(os.path.abspath(filename))
    fd, tmp = tempfile.mkstemp(prefix='.' + os.path.basename(filename) + '.', dir=dirname)
    try:
        with os.fdopen(fd, mode) as file:
            file.write(data)
            file.flush()
            os.fsync(file.fileno())
        os.replace(tmp, filename)
    except BaseException:
        with catch(OSError):
            os.unlink(tmp)
        raise


def ensure_dir(filename):
    dirname = os.path.dirname(filename)
    if dirname:
        os.makedirs(dirname, exist_ok=True)
