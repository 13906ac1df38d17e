"""
granulewatch: watch a directory tree for complete, stable groups of granule
files and run a templated command pipeline for each one.
"""

__version__ = "0.1.0"
