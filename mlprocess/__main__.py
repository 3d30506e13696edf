import sys

from mlprocess.execute.worker import main


sys.exit(main())
