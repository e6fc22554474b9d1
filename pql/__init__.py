"""pql: a JQL-like query language for filtering ticket collections."""

__version__ = "0.3.0"
