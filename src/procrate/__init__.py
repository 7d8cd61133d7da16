"""procrate - sampling and rate derivation for Linux /proc counters."""

import logging

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
