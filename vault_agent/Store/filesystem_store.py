# filesystem_store.py
# Description: DocumentStore implementation backed by a directory on the local filesystem
#
# Imports
import asyncio
import os
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
#
# Third-Party Imports
import aiofiles
from loguru import logger
#
# Local Imports
from .document_store import Document, DocumentStore, Folder, FolderListing, FrontmatterMutator, StoreEntry
from .frontmatter import replace_frontmatter, split_frontmatter
from ..Utils.atomic_file_ops import atomic_write_text
from ..Utils.path_validation import normalize_path, validate_path
#
#######################################################################################################################
#
# Classes:

MARKDOWN_EXTENSION = ".md"


def strip_link_token(link_text: str) -> str:
    """
    Reduce a ``[[target#heading|alias]]`` token to ``target``.

    Bare link text is accepted unchanged (minus heading and alias).
    """
    text = link_text.strip()
    if text.startswith("[[") and text.endswith("]]"):
        text = text[2:-2]
    text = text.split("|", 1)[0]
    text = text.split("#", 1)[0]
    return text.strip()


class FilesystemDocumentStore(DocumentStore):
    """
    A vault rooted at a directory. Every path is vault-relative and is
    validated against the root before it touches the filesystem.
    """

    def __init__(self, root: Union[str, Path], encoding: str = "utf-8"):
        self.root = Path(root).resolve()
        self.encoding = encoding
        self.root.mkdir(parents=True, exist_ok=True)
        logger.debug(f"FilesystemDocumentStore rooted at {self.root}")

    def _abs(self, path: str) -> Path:
        return validate_path(normalize_path(path) or ".", self.root)

    def _rel(self, absolute: Path) -> str:
        return absolute.relative_to(self.root).as_posix()

    def _document_from_stat(self, path: str, stat_result: os.stat_result) -> Document:
        ctime = getattr(stat_result, "st_birthtime", stat_result.st_ctime)
        return Document(
            path=path,
            mtime=stat_result.st_mtime,
            ctime=ctime,
            size=stat_result.st_size,
        )

    async def read(self, path: str) -> str:
        target = self._abs(path)
        if not target.is_file():
            raise FileNotFoundError(f"Document not found: {path}")
        async with aiofiles.open(target, mode="r", encoding=self.encoding, newline="") as f:
            return await f.read()

    async def modify(self, path: str, content: str) -> None:
        target = self._abs(path)
        if not target.is_file():
            raise FileNotFoundError(f"Document not found: {path}")
        await asyncio.to_thread(atomic_write_text, target, content, self.encoding)

    async def create(self, path: str, content: str) -> Document:
        path = normalize_path(path)
        target = self._abs(path)
        if target.exists():
            raise FileExistsError(f"Document already exists: {path}")
        await asyncio.to_thread(atomic_write_text, target, content, self.encoding)
        logger.debug(f"Created document {path}")
        return self._document_from_stat(path, target.stat())

    async def rename(self, path: str, new_path: str) -> None:
        source = self._abs(path)
        destination = self._abs(new_path)
        if not source.exists():
            raise FileNotFoundError(f"Cannot rename missing path: {path}")
        if destination.exists():
            raise FileExistsError(f"Rename target already exists: {new_path}")

        def _move() -> None:
            destination.parent.mkdir(parents=True, exist_ok=True)
            os.rename(source, destination)

        await asyncio.to_thread(_move)
        logger.debug(f"Renamed {path} -> {new_path}")

    async def delete(self, path: str) -> None:
        target = self._abs(path)
        if target == self.root:
            raise PermissionError("Refusing to delete the vault root")
        if target.is_dir():
            await asyncio.to_thread(shutil.rmtree, target)
        elif target.exists():
            await asyncio.to_thread(target.unlink)
        else:
            raise FileNotFoundError(f"Cannot delete missing path: {path}")
        logger.debug(f"Deleted {path}")

    async def exists(self, path: str) -> bool:
        try:
            return self._abs(path).exists()
        except ValueError:
            return False

    async def get_entry(self, path: str) -> Optional[StoreEntry]:
        path = normalize_path(path)
        try:
            target = self._abs(path)
        except ValueError:
            return None
        if target.is_dir():
            return Folder(path=path)
        if target.is_file():
            return self._document_from_stat(path, target.stat())
        return None

    async def list_folder(self, path: str) -> FolderListing:
        target = self._abs(path)
        if not target.is_dir():
            raise FileNotFoundError(f"Folder not found: {path}")

        listing = FolderListing()
        for child in sorted(target.iterdir()):
            if child.is_dir():
                listing.folders.append(self._rel(child))
            elif child.is_file():
                listing.files.append(self._rel(child))
        return listing

    async def create_folder(self, path: str) -> None:
        target = self._abs(path)
        if target.is_file():
            raise FileExistsError(f"A document already exists at {path}")
        await asyncio.to_thread(target.mkdir, parents=True, exist_ok=True)

    def _walk_markdown(self) -> List[Document]:
        documents = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            # Hidden folders (.git, .obsidian, ...) are not part of the vault
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for filename in sorted(filenames):
                if not filename.endswith(MARKDOWN_EXTENSION) or filename.startswith("."):
                    continue
                absolute = Path(dirpath) / filename
                documents.append(self._document_from_stat(self._rel(absolute), absolute.stat()))
        return documents

    async def list_markdown_files(self) -> List[Document]:
        return await asyncio.to_thread(self._walk_markdown)

    async def link_text(self, path: str) -> str:
        path = normalize_path(path)
        document = Document(path=path)
        if document.extension != "md":
            return path

        others = [
            d for d in await self.list_markdown_files()
            if d.basename == document.basename and d.path != path
        ]
        if not others:
            return document.basename
        return path[:-len(MARKDOWN_EXTENSION)]

    async def resolve_link(self, link_text: str, context_path: str = "") -> Optional[Document]:
        target = normalize_path(strip_link_token(link_text))
        if not target:
            return None

        candidates = [target] if target.endswith(MARKDOWN_EXTENSION) else [f"{target}{MARKDOWN_EXTENSION}", target]

        # Exact vault path
        for candidate in candidates:
            document = await self.get_document(candidate)
            if document:
                return document

        # Relative to the referring document's folder
        context_folder = Document(path=normalize_path(context_path)).parent if context_path else ""
        if context_folder:
            for candidate in candidates:
                document = await self.get_document(f"{context_folder}/{candidate}")
                if document:
                    return document

        # Anywhere in the vault by name or path suffix, shortest path wins
        wanted = target[:-len(MARKDOWN_EXTENSION)] if target.endswith(MARKDOWN_EXTENSION) else target
        matches = []
        for document in await self.list_markdown_files():
            without_extension = document.path[:-len(MARKDOWN_EXTENSION)]
            if without_extension == wanted or without_extension.endswith(f"/{wanted}"):
                matches.append(document)
        if not matches:
            logger.debug(f"Unresolved link: {link_text}")
            return None
        matches.sort(key=lambda d: (len(d.path), d.path))
        return matches[0]

    async def read_frontmatter(self, path: str) -> Dict[str, Any]:
        frontmatter, _ = split_frontmatter(await self.read(path))
        return frontmatter

    async def process_frontmatter(self, path: str, mutator: FrontmatterMutator) -> None:
        text = await self.read(path)
        frontmatter, _ = split_frontmatter(text, strict=True)
        mutator(frontmatter)
        await self.modify(path, replace_frontmatter(text, frontmatter))

#
# End of filesystem_store.py
#######################################################################################################################
