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

from contextlib import contextmanager
import logging


logger = logging.getLogger(__name__)


@contextmanager
def catch(*ignore, log_level=logging.DEBUG):
    '''
    Log and suppress exceptions of the given types (or any exception if
    no types are given). Used on cleanup paths which must not mask an
    exception already in flight.
    '''
    try:
        yield
    except Exception as exc:
        if ignore and not isinstance(exc, ignore):
            raise
        logger.log(log_level, 'An exception occurred: %s', type(exc).__name__, exc_info=True)
