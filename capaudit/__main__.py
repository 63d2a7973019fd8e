"""
Entry point for running capaudit as a module.

Allows running as: python -m capaudit
"""

from capaudit.cli import cli_main

if __name__ == "__main__":
    cli_main()
