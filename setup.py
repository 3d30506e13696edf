#!/usr/bin/env python

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


import os
import re

from setuptools import setup, find_packages


install_requires = [
    'sortedcontainers',
    'cytoolz',
    'psutil>=4.4',
    'tblib>=1.5',
    'lz4',
    'filelock>=3.0',
]


dev_requires = [
    'pytest',
    'pytest-cov',
    'flake8',
]


def get_version():
    with open(os.path.join('mlprocess', '__init__.py')) as f:
        version_info = re.search(r'__version_info__ = \(([\d, ]+)\)', f.read()).group(1)
    return '.'.join(v.strip() for v in version_info.split(','))


if __name__ == '__main__':
    setup(
        name='mlprocess',
        version=get_version(),
        description='Run machine learning scenarios as a persistent, restartable plan of tasks',
        long_description=open('README.rst').read(),

        packages=(
            find_packages()
        ),

        include_package_data=True,
        zip_safe=False,

        install_requires=install_requires,
        extras_require=dict(
            dev=dev_requires,
        ),

        entry_points=dict(
            console_scripts=[
                'mlprocess = mlprocess.execute.worker:main',
            ],
        ),

        classifiers=[
            'Development Status :: 3 - Alpha',
            'Intended Audience :: Developers',
            'Intended Audience :: Science/Research',
            'Operating System :: POSIX',
            'Programming Language :: Python',
            'Programming Language :: Python :: 3',
        ],
    )
