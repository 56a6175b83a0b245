"""
Package entry point.

Allows running the application via:

    python -m icalnigma

This simply forwards execution to icalnigma.cli.main().
"""

from icalnigma.cli import main

if __name__ == "__main__":
    main()
