"""
Command-line entry point (same as the ``ln-translate`` script)
"""
import sys

from ln_translator.cli import main


if __name__ == "__main__":
    sys.exit(main())
