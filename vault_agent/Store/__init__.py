# Store package
"""
Document-store boundary: the abstract store the agent core talks to, the
tagged ``Document``/``Folder`` entries it returns, frontmatter helpers, and a
filesystem-backed implementation.
"""

from .document_store import Document, DocumentStore, Folder, FolderListing, StoreEntry
from .filesystem_store import FilesystemDocumentStore
from .frontmatter import render_frontmatter, split_frontmatter

__all__ = [
    'Document',
    'DocumentStore',
    'Folder',
    'FolderListing',
    'StoreEntry',
    'FilesystemDocumentStore',
    'render_frontmatter',
    'split_frontmatter',
]
