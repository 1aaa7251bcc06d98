"""Entry point for ``python -m signvision``."""
import sys

from signvision.cli import main

sys.exit(main())
