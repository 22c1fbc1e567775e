"""
Library Ledger - Library management backend.

Serves books, users and the loan history over HTTP, with every collection
persisted to its own JSON document.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
