"""lskysync - keep note image references in sync with a Lsky Pro image host."""

__version__ = "0.3.0"
