"""
Entry point for running the rubykit CLI as a module.

Usage: python -m rubykit [command] [options]
"""

from rubykit.cli.parser import main

if __name__ == "__main__":
    main()
