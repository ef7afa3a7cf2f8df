"""Main entry point when executing gpsinfo as a package.

This allows running the package using python -m gpsinfo.
"""

from gpsinfo.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
