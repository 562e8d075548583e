"""Allow ``python -m patchsync``."""

import sys

from .main import main

sys.exit(main())
