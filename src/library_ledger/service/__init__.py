"""Library service layer - FastAPI application and HTTP interfaces."""

from .app import create_library_app
from .config import LibraryConfig

__all__ = ["create_library_app", "LibraryConfig"]
