import logging.config
import os.path

from tblib import pickling_support

from mlprocess.util.conf import Config
from mlprocess.util.log import install_trace_logging
from mlprocess.util.objects import LazyObject


install_trace_logging()
pickling_support.install()


conf = LazyObject(Config)


if os.path.exists('logging.conf'):
    logging.config.fileConfig('logging.conf', disable_existing_loggers=False)


__version_info__ = (0, 3, 0)
__version__ = '.'.join(map(str, __version_info__))
