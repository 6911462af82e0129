"""Template and generated document storage collaborators."""

from .base import FileRef, FolderRef, IDocumentStore, TemplateInfo, store_from_config
from .local import LocalDocumentStore

__all__ = [
    "FileRef",
    "FolderRef",
    "IDocumentStore",
    "LocalDocumentStore",
    "TemplateInfo",
    "store_from_config",
]
