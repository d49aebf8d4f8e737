"""Allow ``python -m clustercmd``."""

import sys

from .runner import main

sys.exit(main())
