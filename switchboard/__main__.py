"""Allow ``python -m switchboard``."""

import sys

from switchboard.src.main import main


if __name__ == "__main__":
    sys.exit(main())
