"""chartkit.repository — Chart repositories and their indexes."""

from chartkit.repository.index import Index, IndexEntry
from chartkit.repository.repository import ChartRepository
from chartkit.repository.catalog import RepositoryCatalog

__all__ = [
    "Index",
    "IndexEntry",
    "ChartRepository",
    "RepositoryCatalog",
]
