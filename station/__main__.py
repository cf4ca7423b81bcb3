#!/usr/bin/env python3
"""
Entry point for the Station server.

Run with: python -m station
"""

from gevent import monkey

monkey.patch_all()

from .api import start_api  # noqa: E402

if __name__ == '__main__':
    start_api()
