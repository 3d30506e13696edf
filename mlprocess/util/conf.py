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
Layered configuration.

Settings are declared as module attributes, e.g.::

    retrieve_count = conf.Int(10, desc='...')

in ``mlprocess/plan/__init__.py`` and are looked up by their dotted path
``mlprocess.plan.retrieve_count``. Values are taken from (in increasing
order of precedence) ``~/.mlprocess.ini``, ``./.mlprocess.ini``, the
``MLPROCESS_CONF`` environment variable (shell quoted ``key=value`` pairs)
and values set explicitly on the :class:`Config` object.
'''

from configparser import ConfigParser
from functools import lru_cache
import importlib
import os
import shlex
import sys


MLPROCESS_ENV_KEY = 'MLPROCESS_CONF'
CONFIG_FILES = (
    '~/.mlprocess.ini',
    './.mlprocess.ini',
)

_NOT_SET = object()


class Config(object):
    def __init__(self, values=None, use_environment=True, files=CONFIG_FILES):
        self.values = {}

        if use_environment:
            self._read_files(files)
            self._read_environment()

        if values:
            self.values.update(values)


    def _read_files(self, files):
        config = ConfigParser()
        config.read([os.path.expanduser(f) for f in files])
        for section in config.sections():
            for key, value in config[section].items():
                self.values['%s.%s' % (section, key)] = value


    def _read_environment(self):
        for option in shlex.split(os.environ.get(MLPROCESS_ENV_KEY, '')):
            key, sep, value = option.partition('=')
            if not sep:
                raise RuntimeError('%s not in key=value format in the %s environment variable'
                                   % (option, MLPROCESS_ENV_KEY))
            self.values[key] = value


    @lru_cache(1024)
    def _get_setting(self, key):
        module, *attr = key.rsplit('.', 1)
        if not attr:
            return None
        mod = sys.modules.get(module)
        if not mod:
            try:
                mod = importlib.import_module(module)
            except ImportError:
                return None
        setting = getattr(mod, attr[0], None)
        return setting if isinstance(setting, Setting) else None


    def get(self, key, fmt=None, default=_NOT_SET):
        setting = self._get_setting(key)
        value = self.values.get(key, _NOT_SET)
        if value is _NOT_SET:
            if default is _NOT_SET:
                default = setting.default if setting else None
            return None if default is _NOT_SET else default
        if fmt is None and setting:
            fmt = setting.fmt
        return fmt(value) if fmt else value


    def is_set(self, key):
        return key in self.values


    def set(self, key, value):
        self.values[key] = value
        return self


    def setdefault(self, key, value):
        return self.values.setdefault(key, value)


    def update(self, *args, **kwargs):
        '''
        Update the configuration with ``(key, value)`` tuples, ``"key=value"``
        strings and keyword arguments.
        '''
        for arg in args:
            if isinstance(arg, tuple):
                self.set(*arg)
            elif isinstance(arg, str):
                key, sep, value = arg.partition('=')
                if not sep:
                    raise ValueError('%r is not formatted as "key=value"' % arg)
                self.set(key.strip(), value.strip())
            else:
                raise ValueError('Unable to update configuration with %r' % (arg,))
        self.values.update(kwargs)


    __getitem__ = get
    __setitem__ = set


    def __repr__(self):
        return '<Conf %r>' % self.values


    def __reduce__(self):
        return Config, (self.values, False)



class Setting(object):
    default = None
    fmt = None
    desc = None

    def __init__(self, default=_NOT_SET, fmt=None, desc=None):
        self.default = None if default is _NOT_SET else default
        if default is not _NOT_SET and desc:
            desc += ' Defaults to %r.' % default
        self.desc = desc
        self.__doc__ = desc
        if fmt is not None:
            assert callable(fmt)
            self.fmt = fmt


class String(Setting):
    fmt = str


class Bool(Setting):
    def fmt(self, v):
        if type(v) is bool:
            return v
        else:
            return str(v).lower() in ('1', 'true', 'yes', 'on')


class Int(Setting):
    fmt = int


class Float(Setting):
    fmt = float
