# Client module
from .api import LibraryClient
from .sync import LibrarySync

__all__ = ["LibraryClient", "LibrarySync"]
