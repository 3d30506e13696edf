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

from collections.abc import Iterable, Sized


def batch(sequence, size):
    '''
    Yield consecutive slices of at most size elements from the sequence.
    '''
    for start in range(0, len(sequence), size):
        yield sequence[start:start + size]


def is_stable_iterable(obj):
    '''
    Determine if an obj is a stable iterable (a sized collection), excluding
    string/bytes like objects.
    '''
    return isinstance(obj, Iterable) and isinstance(obj, Sized) \
        and not isinstance(obj, (str, bytes, bytearray))


def ensure_collection(obj):
    if isinstance(obj, (str, bytes, bytearray)):
        return [obj]
    return obj if is_stable_iterable(obj) else list(obj)
