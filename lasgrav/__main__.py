import sys

from lasgrav.cli import main

sys.exit(main())
