import sys

from genstruct.cli import main

sys.exit(main())
