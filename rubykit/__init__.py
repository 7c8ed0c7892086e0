"""
rubykit - download, build and link against Ruby.
"""

__version__ = "0.1.0"
