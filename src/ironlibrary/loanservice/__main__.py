"""Main entry point for ``python -m ironlibrary.loanservice``."""

from .cli import main

if __name__ == "__main__":
    main()
