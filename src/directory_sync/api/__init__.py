"""Directory API client."""

from .client import DirectoryClient
from .endpoints import DirectoryEndpoints

__all__ = ["DirectoryClient", "DirectoryEndpoints"]
