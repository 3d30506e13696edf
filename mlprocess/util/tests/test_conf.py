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

from unittest import mock
from unittest.case import TestCase
import os.path
import pickle
import tempfile

from mlprocess.util.conf import Config, MLPROCESS_ENV_KEY


class ConfigTest(TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.ini = os.path.join(self.tmpdir.name, 'mlprocess.ini')
        with open(self.ini, 'w') as f:
            f.write('[mlprocess.plan]\nretrieve_count = 3\ncompress = off\n')


    def tearDown(self):
        self.tmpdir.cleanup()


    def test_defaults(self):
        conf = Config(use_environment=False)
        self.assertEqual(conf['mlprocess.plan.retrieve_count'], 10)
        self.assertEqual(conf['mlprocess.plan.compress'], True)
        self.assertEqual(conf['mlprocess.execute.suspend_time'], 30.0)
        self.assertIsNone(conf['mlprocess.plan.no_such_setting'])
        self.assertEqual(conf.get('mlprocess.plan.no_such_setting', default=1), 1)


    def test_files(self):
        with mock.patch.dict(os.environ, {MLPROCESS_ENV_KEY: ''}):
            conf = Config(files=(self.ini,))
        self.assertEqual(conf['mlprocess.plan.retrieve_count'], 3)
        self.assertEqual(conf['mlprocess.plan.compress'], False)


    def test_precedence(self):
        env = 'mlprocess.plan.retrieve_count=4 "mlprocess.execute.workdir=/some dir"'
        with mock.patch.dict(os.environ, {MLPROCESS_ENV_KEY: env}):
            conf = Config(files=(self.ini,))
        self.assertEqual(conf['mlprocess.plan.retrieve_count'], 4)
        self.assertEqual(conf['mlprocess.execute.workdir'], '/some dir')
        self.assertEqual(conf['mlprocess.plan.compress'], False)

        conf['mlprocess.plan.retrieve_count'] = '5'
        self.assertEqual(conf['mlprocess.plan.retrieve_count'], 5)


    def test_invalid_environment(self):
        with mock.patch.dict(os.environ, {MLPROCESS_ENV_KEY: 'no_value'}):
            with self.assertRaises(RuntimeError):
                Config(files=())


    def test_update(self):
        conf = Config(use_environment=False)
        conf.update('mlprocess.execute.threads=4', ('mlprocess.execute.instances', '2'))
        self.assertEqual(conf['mlprocess.execute.threads'], 4)
        self.assertEqual(conf['mlprocess.execute.instances'], 2)
        self.assertTrue(conf.is_set('mlprocess.execute.threads'))
        self.assertFalse(conf.is_set('mlprocess.execute.workdir'))
        with self.assertRaises(ValueError):
            conf.update('mlprocess.execute.threads')


    def test_bool(self):
        conf = Config({'mlprocess.plan.reclaim': 'no'}, use_environment=False)
        self.assertIs(conf['mlprocess.plan.reclaim'], False)
        conf['mlprocess.plan.reclaim'] = 'yes'
        self.assertIs(conf['mlprocess.plan.reclaim'], True)


    def test_pickle(self):
        conf = Config({'mlprocess.execute.threads': '7'}, use_environment=False)
        conf2 = pickle.loads(pickle.dumps(conf))
        self.assertEqual(conf2['mlprocess.execute.threads'], 7)
