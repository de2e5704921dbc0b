from .file_store import FileStore
from .interfaces import Repository, Store, UnitOfWork

__all__ = ["FileStore", "Repository", "Store", "UnitOfWork"]
