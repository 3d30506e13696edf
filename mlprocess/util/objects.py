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


class LazyObject(object):
    '''
    A placeholder which turns itself into the object created by ``factory``
    on first use, e.g. ``conf = LazyObject(Config)`` reads the configuration
    files only when the first setting is requested.
    '''

    def __init__(self, factory, attrs=None):
        self._factory = factory
        self._attrs = attrs or {}


    def _materialize(self):
        factory = object.__getattribute__(self, '_factory')
        obj = factory()
        if obj is None:
            raise RuntimeError('Unable to create lazy object from %s' % factory)
        self.__class__ = obj.__class__
        self.__dict__.clear()
        self.__dict__.update(obj.__dict__)


    def __getitem__(self, name):
        object.__getattribute__(self, '_materialize')()
        return self[name]


    def __setitem__(self, name, value):
        object.__getattribute__(self, '_materialize')()
        self[name] = value


    def __getattribute__(self, name):
        attrs = object.__getattribute__(self, '_attrs')
        if name in attrs:
            return attrs[name]
        object.__getattribute__(self, '_materialize')()
        return object.__getattribute__(self, name)
