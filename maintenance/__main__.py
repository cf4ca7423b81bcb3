#!/usr/bin/env python3
"""
Entry point for the maintenance CLI.

Run with: python -m maintenance
"""

from .cli import cli

if __name__ == '__main__':
    cli()
