#!/usr/bin/env python3
"""
SignVision - Stable sign tracking for assistive navigation.

Usage:
    python main.py --input session.jsonl [--config config/settings.yaml]
"""

import sys

from signvision.cli import main


if __name__ == "__main__":
    sys.exit(main())
