"""Allow ``python -m platformgen``."""

import sys

from .cli import main

sys.exit(main())
