#!/usr/bin/env python3
"""Reminder scheduler controls. Usage: python scripts/notifications.py --help"""
import sys

from hydration.cli import main

if __name__ == "__main__":
    sys.exit(main())
