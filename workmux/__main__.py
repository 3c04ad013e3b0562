"""Allow running workmux with ``python -m workmux``."""

import sys

from workmux.cli.main import main

sys.exit(main())
