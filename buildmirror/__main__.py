"""Run the build mirror CLI: python -m buildmirror"""

import sys

from buildmirror.cli import main

if __name__ == "__main__":
    sys.exit(main())
