# document_store.py
# Description: Abstract document store consumed by the session, history, migration and tool layers
#
# Imports
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from ..Utils.path_validation import normalize_path
#
#######################################################################################################################
#
# Classes:

@dataclass(frozen=True)
class Document:
    """A text document in the store. Paths are vault-relative with forward slashes."""
    path: str
    mtime: float = 0.0
    ctime: float = 0.0
    size: int = 0

    @property
    def name(self) -> str:
        """File name including extension."""
        return self.path.rsplit("/", 1)[-1]

    @property
    def basename(self) -> str:
        """File name without its extension."""
        name = self.name
        if "." in name:
            return name.rsplit(".", 1)[0]
        return name

    @property
    def extension(self) -> str:
        name = self.name
        if "." in name:
            return name.rsplit(".", 1)[1]
        return ""

    @property
    def parent(self) -> str:
        """Parent folder path, ``""`` for documents at the store root."""
        if "/" in self.path:
            return self.path.rsplit("/", 1)[0]
        return ""


@dataclass(frozen=True)
class Folder:
    """A folder in the store."""
    path: str

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def parent(self) -> str:
        if "/" in self.path:
            return self.path.rsplit("/", 1)[0]
        return ""


StoreEntry = Union[Document, Folder]


@dataclass
class FolderListing:
    """Direct children of a folder, as paths."""
    files: List[str] = field(default_factory=list)
    folders: List[str] = field(default_factory=list)


FrontmatterMutator = Callable[[Dict[str, Any]], None]


class DocumentStore(ABC):
    """
    Abstract boundary to the host document store.

    Not-found conditions on reads are reported by ``exists``/``get_entry``
    returning False/None; ``read`` on a missing document raises
    ``FileNotFoundError``. Writes raise ``OSError`` subclasses on failure.
    """

    @abstractmethod
    async def read(self, path: str) -> str:
        """Return the full text of a document."""
        pass

    @abstractmethod
    async def modify(self, path: str, content: str) -> None:
        """Replace the text of an existing document."""
        pass

    @abstractmethod
    async def create(self, path: str, content: str) -> Document:
        """Create a new document. Raises ``FileExistsError`` if it is already present."""
        pass

    async def write(self, path: str, content: str) -> None:
        """Create the document, or replace its text if it already exists."""
        if await self.exists(path):
            await self.modify(path, content)
        else:
            await self.create(path, content)

    @abstractmethod
    async def rename(self, path: str, new_path: str) -> None:
        """Move a document or folder. Raises ``FileExistsError`` if the target exists."""
        pass

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Delete a document, or a folder with everything under it."""
        pass

    @abstractmethod
    async def exists(self, path: str) -> bool:
        pass

    @abstractmethod
    async def get_entry(self, path: str) -> Optional[StoreEntry]:
        """Resolve a path to a ``Document``, a ``Folder`` or ``None``."""
        pass

    @abstractmethod
    async def list_folder(self, path: str) -> FolderListing:
        """List the direct children of a folder. Raises ``FileNotFoundError`` if absent."""
        pass

    @abstractmethod
    async def create_folder(self, path: str) -> None:
        """Create a folder and its parents. Existing folders are left alone."""
        pass

    @abstractmethod
    async def list_markdown_files(self) -> List[Document]:
        """Every ``.md`` document in the store."""
        pass

    @abstractmethod
    async def resolve_link(self, link_text: str, context_path: str = "") -> Optional[Document]:
        """Resolve a ``[[link]]`` token (or bare link text) to a document."""
        pass

    @abstractmethod
    async def link_text(self, path: str) -> str:
        """Shortest link text that resolves unambiguously to ``path``."""
        pass

    async def make_link(self, path: str) -> str:
        """The ``[[link]]`` token for ``path``."""
        return f"[[{await self.link_text(path)}]]"

    @abstractmethod
    async def read_frontmatter(self, path: str) -> Dict[str, Any]:
        """Parsed frontmatter of a document, ``{}`` if it has none."""
        pass

    @abstractmethod
    async def process_frontmatter(self, path: str, mutator: FrontmatterMutator) -> None:
        """
        Read-modify-write the frontmatter of a document.

        ``mutator`` receives the parsed mapping and edits it in place; the
        document body is preserved.
        """
        pass

    async def get_document(self, path: str) -> Optional[Document]:
        """Like ``get_entry`` but only returns documents."""
        entry = await self.get_entry(normalize_path(path))
        if isinstance(entry, Document):
            return entry
        return None

    async def ensure_folder(self, path: str) -> bool:
        """
        Create ``path`` if needed, reporting success instead of raising.

        Used where a missing folder is not yet fatal: the failure resurfaces
        when a later write into it is attempted.
        """
        try:
            await self.create_folder(path)
            return True
        except OSError as e:
            logger.warning(f"Could not create folder {path}: {e}")
            return False

#
# End of document_store.py
#######################################################################################################################
