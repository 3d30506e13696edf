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


TRACE = 5

VERBOSITY_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG, TRACE)

LOG_FORMAT = '%(asctime)s %(levelname)-7s %(threadName)s %(name)s: %(message)s'


def install_trace_logging():
    logging.TRACE = TRACE
    logging.addLevelName(TRACE, 'TRACE')

    def trace(self, message, *args, **kws):
        if self.isEnabledFor(TRACE):
            self._log(TRACE, message, args, **kws)

    logging.Logger.trace = trace


def verbosity_level(verbosity):
    '''Map a -v count (0 to 3, clipped) onto a log level.'''
    verbosity = max(0, min(verbosity or 0, len(VERBOSITY_LEVELS) - 1))
    return VERBOSITY_LEVELS[verbosity]


def configure(verbosity=0):
    '''
    Set up root logging for the command line unless a logging.conf was
    already applied (in which case the root logger has handlers).
    '''
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(min(root.level, verbosity_level(verbosity)))
    else:
        logging.basicConfig(level=verbosity_level(verbosity), format=LOG_FORMAT)
