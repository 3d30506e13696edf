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
Exceptions raised while compiling, expanding, storing and scheduling a plan.

Every exception carries a ``code`` (one of the upper case constants of its
class) and an optional ``detail``. All constructor arguments are kept in
``args`` so the exceptions survive pickling (FAILED task records keep their
failure in the plan file).
'''


class MLProcessException(Exception):
    code = None
    detail = None

    def _context(self):
        return None

    def __str__(self):
        parts = [self.code]
        if self.detail:
            parts.append(str(self.detail))
        msg = ': '.join(parts)
        context = self._context()
        return '%s (%s)' % (msg, context) if context else msg



class DataException(MLProcessException):
    '''
    The scenario or the data dependencies it implies are invalid. ``location``
    points at the offending position of the scenario if known.
    '''
    INVALID_SCENARIO = 'Invalid scenario'
    NESTED_TASKS = 'Cannot nest tasks'
    NESTED_DATA_SECTIONS = 'Cannot nest data sections'
    UNKNOWN_ELEMENT = 'Unknown element'
    TRAILING_CHARACTERS = 'Trailing characters'
    DUPLICATE_ID = 'Duplicate task id'
    DUPLICATE_SECTION = 'Duplicate data section'
    MISSING_ALGORITHM = 'No algorithm has been set for the task'
    ALGORITHM_SET = 'The algorithm has already been set for the task'
    MISSING_SECTION = 'A compulsory data section is missing'
    SECTION_SIZES = 'The numbers of working data sets differ'
    INVALID_DATA_TYPE = 'Invalid data source for the section'
    INVALID_PATTERN = 'Invalid pattern'
    CANNOT_PARALLELIZE = 'The task cannot be parallelized'
    CANNOT_PARALLELIZE_ON_FILES = 'Cannot parallelize on files'
    DUPLICATE_OUTPUT = 'Duplicate output'
    DATA_SET_NEVER_PRODUCED = 'Data set never produced'
    LOOP_DEPENDENCY = 'Cyclic dependency'
    UNKNOWN_ALGORITHM = 'Unknown algorithm'

    def __init__(self, code, detail=None, location=None):
        super().__init__(code, detail, location)
        self.code = code
        self.detail = detail
        self.location = location

    def _context(self):
        return self.location



class TaskException(MLProcessException):
    '''
    A task could not be expanded (its patterns are inconsistent or match no
    files) or failed to perform.
    '''
    NO_FILES = 'No files found'
    PATTERN_SPECS = 'Incompatible pattern specifications'
    FAILED = 'Task failed'

    def __init__(self, code, task_id=None, detail=None):
        super().__init__(code, task_id, detail)
        self.code = code
        self.task_id = task_id
        self.detail = detail

    def _context(self):
        return ('task %s' % self.task_id) if self.task_id else None



class PlanException(MLProcessException):
    '''
    The plan could not be created, read or written. Fatal to the worker
    process which encounters it.
    '''
    IO_ERROR = 'I/O error'
    LOCK_TIMEOUT = 'Timed out acquiring the plan lock'
    INVALID_PLAN = 'Invalid plan'
    INVALID_SCENARIO = 'Invalid scenario'
    INTERRUPTED = 'Interrupted'

    def __init__(self, code, detail=None):
        super().__init__(code, detail)
        self.code = code
        self.detail = detail



class PlanInterrupted(PlanException):
    '''Raised when the reset request file asks all workers to stop.'''

    def __init__(self, code=PlanException.INTERRUPTED, detail=None):
        super().__init__(code, detail)



class SchedulingException(MLProcessException):
    '''
    Not an error: nothing can be claimed right now, but tasks in progress may
    unblock waiting ones. Retry later.
    '''
    ALL_IN_PROGRESS = 'All pending tasks are in progress or waiting'

    def __init__(self, code=ALL_IN_PROGRESS, detail=None):
        super().__init__(code, detail)
        self.code = code
        self.detail = detail
