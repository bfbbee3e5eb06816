"""
Entry point for running mnemonic as a module.

Usage:
    python -m mnemonic study
    python -m mnemonic stats
    python -m mnemonic --help
"""
from .cli import main

if __name__ == "__main__":
    main()
