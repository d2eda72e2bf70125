import sys

from packme.cli import main

sys.exit(main())
