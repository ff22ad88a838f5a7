import sys

from daqmoni.cli import main

sys.exit(main())
