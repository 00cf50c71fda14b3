# webdl/__init__.py
"""
webdl package initializer.
Defines package version; the crawler lives in :mod:`webdl.crawler`.
"""
__version__ = "0.1.0"
