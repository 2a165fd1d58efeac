"""
Entry point for running Memoria as a module.

Usage:
    python -m memoria decks
    python -m memoria study 1
    python -m memoria --help
"""
from .cli import main

if __name__ == "__main__":
    main()
