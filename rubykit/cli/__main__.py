"""
Entry point for running the rubykit CLI as a module.

Usage: python -m rubykit.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
