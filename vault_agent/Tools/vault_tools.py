# vault_tools.py
# Description: Tools that read and change documents in the vault
#
"""
Vault Tools
-----------

Read-only tools (``read_file``, ``list_files``, ``search_files``) and vault
operations (``write_file``, ``create_folder``, ``delete_file``,
``move_file``) over a ``DocumentStore``.

Paths may be given as a vault path, a bare note name, or a ``[[link]]``.
The plugin state folder and hidden folders are invisible to every tool.
"""

import re
from typing import Any, Dict, List, Optional, Tuple
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from .tool_base import Tool, ToolExecutionContext, ToolResult
from .tool_registry import ToolRegistry
from ..config import AgentSettings
from ..Sessions.session_models import DestructiveAction, DocumentRef, ToolCategory
from ..Store.document_store import Document, DocumentStore, Folder
from ..Store.filesystem_store import strip_link_token
from ..Utils.path_validation import is_within_folder, normalize_path
#
#######################################################################################################################
#
# Functions:

DEFAULT_SEARCH_LIMIT = 50
PREVIEW_LENGTH = 200
MAX_SUGGESTIONS = 5

_WIKILINK = re.compile(r"\[\[([^\]|#]+)(?:[#|][^\]]*)?\]\]")


def is_excluded_path(path: str, settings: AgentSettings) -> bool:
    """True for the plugin state folder and anything under a hidden folder."""
    path = normalize_path(path)
    if is_within_folder(path, settings.history_folder):
        return True
    return any(part.startswith(".") for part in path.split("/") if part)


def _parent_folder(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ""


async def resolve_path_to_file(
    store: DocumentStore,
    path: str,
    include_suggestions: bool = False,
) -> Tuple[Optional[Document], List[str]]:
    """
    Find the document a user-supplied path means.

    Tries the exact path, the path with and without ``.md``, link
    resolution, then a case-insensitive match. Folders never match.

    Returns:
        (document or None, suggestions when nothing matched)
    """
    normalized = normalize_path(strip_link_token(path))

    candidates = [normalized]
    if normalized.endswith(".md"):
        candidates.append(normalized[:-3])
    else:
        candidates.append(f"{normalized}.md")
    for candidate in candidates:
        document = await store.get_document(candidate)
        if document is not None:
            return document, []

    document = await store.resolve_link(normalized)
    if document is not None:
        return document, []

    all_files = await store.list_markdown_files()
    lowered = normalized.lower()
    for document in all_files:
        lowered_path = document.path.lower()
        if lowered_path in (lowered, f"{lowered}.md"):
            return document, []

    suggestions = []
    if include_suggestions:
        needle = lowered.replace(".md", "")
        suggestions = [d.path for d in all_files if needle and needle in d.name.lower()][:MAX_SUGGESTIONS]
    return None, suggestions


def wildcard_to_regex(pattern: str) -> "re.Pattern":
    """
    ``*`` and ``?`` wildcards become an anchored, case-insensitive regex.
    A pattern without wildcards matches as a substring.
    """
    if "*" not in pattern and "?" not in pattern:
        return re.compile(re.escape(pattern), re.IGNORECASE)

    body = "".join(
        ".*" if char == "*" else "." if char == "?" else re.escape(char)
        for char in pattern
    )
    if pattern[0] not in "*?":
        body = f"^{body}"
    if pattern[-1] not in "*?":
        body = f"{body}$"
    return re.compile(body, re.IGNORECASE)


#
# Classes:

class VaultTool(Tool):
    """Shared plumbing for tools bound to the vault settings."""

    def __init__(self, settings: AgentSettings):
        self.settings = settings

    def is_excluded(self, path: str) -> bool:
        return is_excluded_path(path, self.settings)


class ReadFileTool(VaultTool):
    category = ToolCategory.READ_ONLY

    @property
    def name(self) -> str:
        return "read_file"

    @property
    def description(self) -> str:
        return (
            "Read the full text of a markdown file in the vault. Returns the content together with "
            "the canonical [[wikilink]] of the file, its outgoing links and its backlinks. The path can "
            "be a vault path, a note name or link text; the .md extension is optional."
        )

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the file relative to the vault root; extension optional",
                },
            },
            "required": ["path"],
        }

    async def _outgoing_links(self, store: DocumentStore, document: Document, content: str) -> List[str]:
        links = set()
        for match in _WIKILINK.finditer(content):
            target = await store.resolve_link(match.group(1), document.path)
            if target is not None and not self.is_excluded(target.path):
                links.add(await store.make_link(target.path))
        return sorted(links)

    async def _backlinks(self, store: DocumentStore, document: Document) -> List[str]:
        links = set()
        for other in await store.list_markdown_files():
            if other.path == document.path or self.is_excluded(other.path):
                continue
            try:
                content = await store.read(other.path)
            except OSError as e:
                logger.debug(f"Skipping {other.path} while collecting backlinks: {e}")
                continue
            for match in _WIKILINK.finditer(content):
                target = await store.resolve_link(match.group(1), other.path)
                if target is not None and target.path == document.path:
                    links.add(await store.make_link(other.path))
                    break
        return sorted(links)

    async def execute(self, params: Dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        path = params["path"]
        store = context.store
        try:
            if self.is_excluded(path):
                return ToolResult.fail(f"Cannot read from system folder: {path}")
            if isinstance(await store.get_entry(normalize_path(path)), Folder):
                return ToolResult.fail(f"Path is not a file: {path}")

            document, suggestions = await resolve_path_to_file(store, path, include_suggestions=True)
            if document is None or self.is_excluded(document.path):
                hint = "\n\nDid you mean one of these?\n" + "\n".join(suggestions) if suggestions else ""
                return ToolResult.fail(f"File not found: {path}{hint}")

            content = await store.read(document.path)
            return ToolResult.ok({
                "path": document.path,
                "wikilink": await store.make_link(document.path),
                "content": content,
                "size": document.size,
                "modified": document.mtime,
                "outgoing_links": await self._outgoing_links(store, document, content),
                "backlinks": await self._backlinks(store, document),
            })
        except (OSError, ValueError) as e:
            return ToolResult.fail(f"Error reading file: {e}")


class ListFilesTool(VaultTool):
    category = ToolCategory.READ_ONLY

    @property
    def name(self) -> str:
        return "list_files"

    @property
    def description(self) -> str:
        return (
            "List the files and folders in a vault folder. Use an empty path for the vault root. "
            "With recursive set, every markdown file under the folder is listed."
        )

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Folder to list (empty string for the root)"},
                "recursive": {"type": "boolean", "description": "Whether to list files recursively"},
            },
            "required": ["path"],
        }

    async def execute(self, params: Dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        folder_path = normalize_path(params.get("path") or "")
        store = context.store
        try:
            if folder_path:
                entry = await store.get_entry(folder_path)
                if entry is None:
                    return ToolResult.fail(f"Folder not found: {params['path']}")
                if not isinstance(entry, Folder):
                    return ToolResult.fail(f"Path is not a folder: {params['path']}")

            items = []
            if params.get("recursive"):
                for document in await store.list_markdown_files():
                    if is_within_folder(document.path, folder_path) and not self.is_excluded(document.path):
                        items.append(self._describe(document))
            else:
                listing = await store.list_folder(folder_path)
                for sub_folder in listing.folders:
                    if not self.is_excluded(sub_folder):
                        items.append(self._describe(Folder(path=sub_folder)))
                for file_path in listing.files:
                    if self.is_excluded(file_path):
                        continue
                    document = await store.get_document(file_path)
                    if document is not None:
                        items.append(self._describe(document))

            return ToolResult.ok({"path": folder_path, "files": items, "count": len(items)})
        except (OSError, ValueError) as e:
            return ToolResult.fail(f"Error listing files: {e}")

    @staticmethod
    def _describe(entry) -> dict:
        if isinstance(entry, Folder):
            return {"name": entry.name, "path": entry.path, "type": "folder"}
        return {
            "name": entry.name,
            "path": entry.path,
            "type": "file",
            "size": entry.size,
            "modified": entry.mtime,
        }


class SearchFilesTool(VaultTool):
    category = ToolCategory.READ_ONLY

    @property
    def name(self) -> str:
        return "search_files"

    @property
    def description(self) -> str:
        return (
            "Search markdown files by name or path. Supports * (any characters) and ? (one character) "
            "wildcards; a pattern without wildcards matches anywhere in the name. Case-insensitive. "
            "Searches names only, not file contents."
        )

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "pattern": {"type": "string", "description": "Search pattern, * and ? wildcards allowed"},
                "limit": {"type": "number", "description": "Maximum number of results to return"},
            },
            "required": ["pattern"],
        }

    async def execute(self, params: Dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        pattern = params["pattern"]
        limit = int(params.get("limit") or DEFAULT_SEARCH_LIMIT)
        try:
            regex = wildcard_to_regex(pattern)
            matches = []
            for document in await context.store.list_markdown_files():
                if self.is_excluded(document.path):
                    continue
                if regex.search(document.name) or regex.search(document.path):
                    matches.append({
                        "name": document.name,
                        "path": document.path,
                        "size": document.size,
                        "modified": document.mtime,
                    })
                    if len(matches) >= limit:
                        break
            return ToolResult.ok({
                "pattern": pattern,
                "matches": matches,
                "count": len(matches),
                "truncated": len(matches) >= limit,
            })
        except (OSError, re.error) as e:
            return ToolResult.fail(f"Error searching files: {e}")


class WriteFileTool(VaultTool):
    category = ToolCategory.VAULT_OPERATIONS

    @property
    def name(self) -> str:
        return "write_file"

    @property
    def description(self) -> str:
        return (
            "Write text to a file in the vault, creating it or replacing its whole content. "
            "Newly created files are added to the current session context."
        )

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Path to the file to write"},
                "content": {"type": "string", "description": "Content to write to the file"},
            },
            "required": ["path", "content"],
        }

    async def action_for(self, params: Dict[str, Any], context: ToolExecutionContext) -> Optional[DestructiveAction]:
        if await context.store.exists(normalize_path(params.get("path", ""))):
            return DestructiveAction.MODIFY_FILES
        return DestructiveAction.CREATE_FILES

    def confirmation_message(self, params: Dict[str, Any]) -> str:
        content = params.get("content", "")
        ellipsis = "..." if len(content) > PREVIEW_LENGTH else ""
        return f"Write content to file: {params.get('path')}\n\nContent preview:\n{content[:PREVIEW_LENGTH]}{ellipsis}"

    async def execute(self, params: Dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        path = normalize_path(params["path"])
        content = params["content"]
        store = context.store
        try:
            if not path or self.is_excluded(path):
                return ToolResult.fail(f"Cannot write to system folder: {params['path']}")

            entry = await store.get_entry(path)
            if isinstance(entry, Folder):
                return ToolResult.fail(f"Path is a folder: {params['path']}")

            if entry is not None:
                await store.modify(path, content)
                action = "modified"
            else:
                await store.ensure_folder(_parent_folder(path))
                await store.create(path, content)
                action = "created"
                await self._add_to_session_context(path, context)

            logger.info(f"write_file {action} {path} ({len(content)} chars)")
            return ToolResult.ok({"path": path, "action": action, "size": len(content)})
        except (OSError, ValueError) as e:
            return ToolResult.fail(f"Error writing file: {e}")

    @staticmethod
    async def _add_to_session_context(path: str, context: ToolExecutionContext) -> None:
        session = context.session
        if context.session_manager is not None and context.session_manager.get_session(session.id) is session:
            await context.session_manager.add_context_files(session.id, [path])
        else:
            session.context.add_files([DocumentRef(path=path)])


class CreateFolderTool(VaultTool):
    category = ToolCategory.VAULT_OPERATIONS
    destructive_action = DestructiveAction.CREATE_FILES

    @property
    def name(self) -> str:
        return "create_folder"

    @property
    def description(self) -> str:
        return "Create a folder in the vault. Missing parent folders are created as well."

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Path of the folder to create"},
            },
            "required": ["path"],
        }

    def confirmation_message(self, params: Dict[str, Any]) -> str:
        return f"Create folder: {params.get('path')}"

    async def execute(self, params: Dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        path = normalize_path(params["path"])
        try:
            if not path or self.is_excluded(path):
                return ToolResult.fail(f"Cannot create folder in system directory: {params['path']}")
            if await context.store.exists(path):
                return ToolResult.fail(f"Path already exists: {params['path']}")

            await context.store.create_folder(path)
            return ToolResult.ok({"path": path, "action": "created"})
        except (OSError, ValueError) as e:
            return ToolResult.fail(f"Error creating folder: {e}")


class DeleteFileTool(VaultTool):
    category = ToolCategory.VAULT_OPERATIONS
    destructive_action = DestructiveAction.DELETE_FILES
    requires_confirmation = True

    @property
    def name(self) -> str:
        return "delete_file"

    @property
    def description(self) -> str:
        return (
            "Permanently delete a file or folder from the vault. This cannot be undone; folders are "
            "removed with all their contents. The path can be a vault path, note name or [[link]]."
        )

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Path of the file or folder to delete"},
            },
            "required": ["path"],
        }

    def confirmation_message(self, params: Dict[str, Any]) -> str:
        return f"Delete file or folder: {params.get('path')}\n\nThis action cannot be undone."

    async def execute(self, params: Dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        path = params["path"]
        store = context.store
        try:
            if not normalize_path(path) or self.is_excluded(path):
                return ToolResult.fail(f"Cannot delete system folder: {path}")

            entry = await store.get_entry(normalize_path(path))
            if not isinstance(entry, Folder):
                entry, _ = await resolve_path_to_file(store, path)
            if entry is None or self.is_excluded(entry.path):
                return ToolResult.fail(f"File or folder not found: {path}")

            entry_type = "folder" if isinstance(entry, Folder) else "file"
            await store.delete(entry.path)
            await self._remove_from_session_context(entry.path, context)
            return ToolResult.ok({"path": entry.path, "type": entry_type, "action": "deleted"})
        except (OSError, ValueError) as e:
            return ToolResult.fail(f"Error deleting file: {e}")

    @staticmethod
    async def _remove_from_session_context(path: str, context: ToolExecutionContext) -> None:
        session = context.session
        if not session.context.has_file(path):
            return
        if context.session_manager is not None and context.session_manager.get_session(session.id) is session:
            await context.session_manager.remove_context_files(session.id, [path])
        else:
            session.context.remove_paths([path])


class MoveFileTool(VaultTool):
    category = ToolCategory.VAULT_OPERATIONS
    destructive_action = DestructiveAction.MODIFY_FILES

    @property
    def name(self) -> str:
        return "move_file"

    @property
    def display_name(self) -> str:
        return "Move/Rename File"

    @property
    def description(self) -> str:
        return (
            "Move or rename a file. Give the source (vault path, note name or [[link]]) and the full "
            "target path including the file name. Missing target folders are created."
        )

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "source_path": {"type": "string", "description": "Current path of the file to move"},
                "target_path": {"type": "string", "description": "New path for the file (including filename)"},
            },
            "required": ["source_path", "target_path"],
        }

    def confirmation_message(self, params: Dict[str, Any]) -> str:
        return f"Move file from: {params.get('source_path')}\nTo: {params.get('target_path')}"

    async def execute(self, params: Dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        source = params["source_path"]
        target = normalize_path(params["target_path"])
        store = context.store
        try:
            if self.is_excluded(source):
                return ToolResult.fail(f"Cannot move from system folder: {source}")
            if not target or self.is_excluded(target):
                return ToolResult.fail(f"Cannot move to system folder: {params['target_path']}")
            if isinstance(await store.get_entry(normalize_path(source)), Folder):
                return ToolResult.fail(f"Source path is not a file: {source}")

            document, _ = await resolve_path_to_file(store, source)
            if document is None or self.is_excluded(document.path):
                return ToolResult.fail(f"Source file not found: {source}")
            if await store.exists(target):
                return ToolResult.fail(f"Target path already exists: {params['target_path']}")

            await store.ensure_folder(_parent_folder(target))
            await store.rename(document.path, target)
            if context.session_manager is not None:
                await context.session_manager.handle_document_renamed(document.path, target)
            return ToolResult.ok({"source_path": document.path, "target_path": target, "action": "moved"})
        except (OSError, ValueError) as e:
            return ToolResult.fail(f"Error moving file: {e}")


def create_vault_tools(settings: AgentSettings) -> List[VaultTool]:
    return [
        ReadFileTool(settings),
        ListFilesTool(settings),
        SearchFilesTool(settings),
        WriteFileTool(settings),
        CreateFolderTool(settings),
        DeleteFileTool(settings),
        MoveFileTool(settings),
    ]


def register_vault_tools(registry: ToolRegistry, settings: AgentSettings) -> ToolRegistry:
    """Register every vault tool on ``registry`` and return it."""
    for tool in create_vault_tools(settings):
        registry.register_tool(tool)
    return registry

#
# End of vault_tools.py
#######################################################################################################################
