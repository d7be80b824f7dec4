"""Allow ``python -m bsdvm``."""

import sys

from bsdvm.cli import main

sys.exit(main())
