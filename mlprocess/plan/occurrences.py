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

from collections import defaultdict
import logging

from mlprocess.plan.exceptions import DataException
from mlprocess.plan.patterns import occurrence_pattern, overlaps


logger = logging.getLogger(__name__)


class Occurrences(object):
    '''
    Index of the data sources produced and consumed by task records, keyed by
    their occurrence pattern. A data source may have at most one producer
    unless the index is created with ``strict=False``.
    '''

    def __init__(self, strict=True):
        self.strict = strict
        self.producers = defaultdict(list)
        self.consumers = defaultdict(list)


    def add(self, record):
        for spec in record.outputs:
            key = occurrence_pattern(spec)
            producers = self.producers[key]
            if self.strict and producers and producers[0] is not record:
                raise DataException(DataException.DUPLICATE_OUTPUT,
                                    '%r produced by %s and %s' % (spec, producers[0].id, record.id))
            if record not in producers:
                producers.append(record)
        for spec in record.inputs:
            consumers = self.consumers[occurrence_pattern(spec)]
            if record not in consumers:
                consumers.append(record)


    def never_produced(self, prefix='dataset:'):
        '''Consumed keys with the given prefix that no task produces.'''
        return sorted(key for key in self.consumers
                      if key.startswith(prefix) and not self.producers.get(key))


    def _producers_of(self, key, pattern_keys, concrete_keys):
        producers = list(self.producers.get(key, ()))
        if '*' in key:
            candidates = concrete_keys
        else:
            candidates = pattern_keys
        for other in candidates:
            if other != key and overlaps(key, other):
                producers.extend(self.producers[other])
        return producers


    def edges(self):
        '''Yield (producer, consumer) pairs, each pair once.'''
        produced = [key for key, producers in self.producers.items() if producers]
        pattern_keys = [key for key in produced if '*' in key]
        concrete_keys = [key for key in produced if '*' not in key]

        seen = set()
        for key, consumers in self.consumers.items():
            producers = self._producers_of(key, pattern_keys, concrete_keys)
            for producer in producers:
                for consumer in consumers:
                    if producer is consumer:
                        continue
                    pair = (producer.id, consumer.id)
                    if pair not in seen:
                        seen.add(pair)
                        yield producer, consumer
