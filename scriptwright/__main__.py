import sys

from scriptwright.cli import main

sys.exit(main())
