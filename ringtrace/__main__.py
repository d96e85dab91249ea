"""
ringtrace CLI Entry Point

This module allows running ringtrace as:
    python -m ringtrace [command] [options]
"""

from ringtrace.cli import cli

if __name__ == "__main__":
    cli()
