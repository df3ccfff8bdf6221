"""Entry point for ``python -m gateway.cogateway``."""

import sys

from gateway.cogateway.cli import main

sys.exit(main())
