#!/usr/bin/env python3
"""Convenience runner for the adventure route planner.

Usage:
    python run.py --start 8.68,49.41 --end 8.95,49.62
"""
import logging
import sys

from adv_route.main import main

if __name__ == "__main__":
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=logging.INFO,
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )
    sys.exit(main())
