"""
shelftag

Reconciles a Goodreads shelf with Libby catalog tags and builds an
availability browse view.
"""

__version__ = "0.1.0"
