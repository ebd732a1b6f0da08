import sys

from pysmartbus.cli import main

sys.exit(main())
