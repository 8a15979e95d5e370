# session_manager.py
# Description: In-memory session registry with write-through persistence to session documents
#
"""
Session Manager
---------------

Creates, looks up, mutates and evicts ``ChatSession`` objects.

Sessions are registered in memory as soon as they are created and persisted
lazily: the backing document appears on the first write. Mutations of an
agent session are flushed to its document before the call returns.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Union
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from .session_history import SessionHistory
from .session_models import (
    AgentContext, ChatSession, DestructiveAction, DocumentRef, SessionModelConfig, SessionType,
    ToolCategory, default_context, generate_session_id, sanitize_file_name,
)
from ..config import AgentSettings
from ..errors import MalformedDocumentError, SessionNotFoundError
from ..History.session_codec import (
    frontmatter_context_links, frontmatter_source_reference, session_from_frontmatter,
    session_type_from_frontmatter,
)
from ..Store.document_store import Document, DocumentStore
from ..Store.filesystem_store import strip_link_token
from ..Store.frontmatter import split_frontmatter
from ..Utils.NotificationHelper import Notifier, show_notification
from ..Utils.path_validation import is_within_folder, normalize_path
#
#######################################################################################################################
#
# Classes:

DocumentLike = Union[Document, DocumentRef, str]


def _as_ref(document: DocumentLike) -> DocumentRef:
    if isinstance(document, str):
        return DocumentRef(path=normalize_path(document))
    return DocumentRef(path=normalize_path(document.path))


def _as_enum_list(values: Iterable[Any], enum_type) -> List:
    result = []
    for value in values:
        member = value if isinstance(value, enum_type) else enum_type(value)
        if member not in result:
            result.append(member)
    return result


class SessionManager:
    """
    Registry of active sessions.

    Lookups by id are answered from memory; use ``verify_session`` when the
    backing document may have been removed behind the registry's back.
    """

    def __init__(
        self,
        store: DocumentStore,
        settings: AgentSettings,
        history: Optional[SessionHistory] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.store = store
        self.settings = settings
        self.notifier = notifier
        self.history = history or SessionHistory(store, settings, notifier)
        self._active_sessions: Dict[str, ChatSession] = {}
        # Sessions whose backing document is known to have existed
        self._materialized: Set[str] = set()

    #
    # Paths
    #

    def history_folder_path(self) -> str:
        return self.settings.history_folder_path

    def agent_sessions_folder_path(self) -> str:
        return self.settings.agent_sessions_folder_path

    def folder_for(self, session_type: SessionType) -> str:
        if session_type == SessionType.AGENT_SESSION:
            return self.agent_sessions_folder_path()
        return self.history_folder_path()

    def history_path_for(self, session_type: SessionType, title: str) -> str:
        return f"{self.folder_for(session_type)}/{title}.md"

    @staticmethod
    def default_agent_title() -> str:
        return f"Agent Session {datetime.now().strftime('%x')}"

    @staticmethod
    def note_chat_title(document: DocumentLike) -> str:
        return sanitize_file_name(f"{_as_ref(document).basename} Chat")

    #
    # Creation
    #

    def _build_context(self, session_type: SessionType, partial: Optional[Dict[str, Any]]) -> AgentContext:
        """Default context for the kind, overlaid with any caller-supplied fields. Lists are always fresh."""
        context = default_context(session_type)
        if not partial:
            return context

        if partial.get("enabled_tools") is not None:
            context.enabled_tools = _as_enum_list(partial["enabled_tools"], ToolCategory)
        if partial.get("require_confirmation") is not None:
            context.require_confirmation = _as_enum_list(partial["require_confirmation"], DestructiveAction)
        if partial.get("max_context_chars") is not None:
            context.max_context_chars = int(partial["max_context_chars"])
        if partial.get("max_chars_per_file") is not None:
            context.max_chars_per_file = int(partial["max_chars_per_file"])
        if partial.get("context_files"):
            context.add_files(_as_ref(item) for item in partial["context_files"])
        return context

    async def create_session(
        self,
        kind: SessionType,
        title: Optional[str] = None,
        initial_context: Optional[Dict[str, Any]] = None,
        source: Optional[DocumentLike] = None,
    ) -> ChatSession:
        """
        Create and register a session. Nothing is written to the store yet.

        Args:
            kind: Session kind
            title: Requested title; sanitized. Defaults depend on the kind
            initial_context: Partial context overriding the kind's defaults
            source: Source document, required for note chats

        Returns:
            The registered session
        """
        source_ref = _as_ref(source) if source is not None else None
        if kind == SessionType.NOTE_CHAT and source_ref is None:
            raise ValueError("A note chat needs a source document")

        if kind == SessionType.NOTE_CHAT:
            default_title = self.note_chat_title(source_ref)
        else:
            default_title = sanitize_file_name(self.default_agent_title())

        session_title = sanitize_file_name(title) if title else ""
        if not session_title:
            session_title = default_title

        context = self._build_context(kind, initial_context)
        if kind == SessionType.NOTE_CHAT:
            context.add_files([source_ref])
            # Note chats are found again by this derived path
            history_path = self.history_path_for(kind, session_title)
        else:
            history_path = await self._free_history_path(kind, session_title)

        session = ChatSession(
            id=generate_session_id(),
            type=kind,
            title=session_title,
            context=context,
            history_path=history_path,
            source_note_path=source_ref.path if kind == SessionType.NOTE_CHAT else None,
        )

        # A folder that cannot be prepared now surfaces on the first write
        await self.store.ensure_folder(self.folder_for(kind))

        self._active_sessions[session.id] = session
        logger.info(f"Created {kind.value} session '{session.title}' ({session.id})")
        return session

    async def create_note_chat_session(self, document: DocumentLike) -> ChatSession:
        return await self.create_session(SessionType.NOTE_CHAT, source=document)

    async def create_agent_session(
        self,
        title: Optional[str] = None,
        initial_context: Optional[Dict[str, Any]] = None,
    ) -> ChatSession:
        return await self.create_session(SessionType.AGENT_SESSION, title=title, initial_context=initial_context)

    #
    # Lookup and loading
    #

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        """In-memory lookup only."""
        return self._active_sessions.get(session_id)

    def get_active_sessions(self) -> List[ChatSession]:
        return list(self._active_sessions.values())

    async def get_note_chat_session(self, document: DocumentLike) -> ChatSession:
        """
        The chat bound to ``document``: the resident one, else the one stored
        on disk, else a new one.
        """
        source_ref = _as_ref(document)
        for session in self._active_sessions.values():
            if session.type == SessionType.NOTE_CHAT and session.source_note_path == source_ref.path:
                session.touch()
                return session

        history_path = self.history_path_for(SessionType.NOTE_CHAT, self.note_chat_title(source_ref))
        if await self.store.get_document(history_path) is not None:
            session = await self.load_session(history_path)
            if session is not None:
                if not session.source_note_path:
                    session.source_note_path = source_ref.path
                return session

        return await self.create_note_chat_session(source_ref)

    # Alias matching the operation name used by callers that think in documents
    get_or_load_document_session = get_note_chat_session

    async def _resolve_reference(self, reference: str, context_path: str) -> Optional[Document]:
        if reference.startswith("[["):
            return await self.store.resolve_link(reference, context_path)
        document = await self.store.get_document(reference)
        if document is None:
            # Legacy bare names without an extension
            document = await self.store.resolve_link(reference, context_path)
        return document

    async def load_session(self, history_path: str) -> Optional[ChatSession]:
        """
        Rebuild a session from its document and register it.

        A session already resident for the document is returned as is.
        Returns None when the document does not exist.

        Raises:
            MalformedDocumentError: If the document cannot be read or parsed
        """
        document = await self.store.get_document(history_path)
        if document is None:
            return None

        for resident in self._active_sessions.values():
            if resident.history_path == document.path:
                return resident

        try:
            content = await self.store.read(document.path)
        except OSError as e:
            raise MalformedDocumentError(document.path, f"unreadable: {e}", original_exception=e) from e
        frontmatter, _ = split_frontmatter(content)

        stored_id = frontmatter.get("session_id")
        resident = self._active_sessions.get(stored_id) if isinstance(stored_id, str) else None
        if resident is not None:
            logger.debug(f"Session {resident.id} is already resident at {resident.history_path}")
            return resident

        fallback_type = (
            SessionType.AGENT_SESSION
            if is_within_folder(document.path, self.agent_sessions_folder_path())
            else SessionType.NOTE_CHAT
        )
        session_type = session_type_from_frontmatter(frontmatter, fallback_type)

        context_files = []
        for reference in frontmatter_context_links(frontmatter):
            resolved = await self._resolve_reference(reference, "")
            if resolved is None:
                logger.warning(f"Dropping unresolved context file {reference!r} from {document.path}")
                continue
            context_files.append(DocumentRef(path=resolved.path))

        source_note_path = None
        source_reference = frontmatter_source_reference(frontmatter)
        if source_reference:
            resolved = await self._resolve_reference(source_reference, document.path)
            if resolved is not None:
                source_note_path = resolved.path
            elif session_type == SessionType.NOTE_CHAT:
                # Keep the binding even while the note itself is missing
                stripped = strip_link_token(source_reference)
                source_note_path = stripped if stripped.endswith(".md") else f"{stripped}.md"

        session = session_from_frontmatter(
            frontmatter,
            document.path,
            session_type=session_type,
            context_files=context_files,
            source_note_path=source_note_path,
            fallback_title=document.basename,
            fallback_created=datetime.fromtimestamp(document.ctime).astimezone(),
            fallback_last_active=datetime.fromtimestamp(document.mtime).astimezone(),
            id_factory=generate_session_id,
        )

        self._active_sessions[session.id] = session
        self._materialized.add(session.id)
        logger.debug(f"Loaded session '{session.title}' ({session.id}) from {document.path}")
        return session

    async def list_recent_agent_sessions(self, limit: int = 10) -> List[ChatSession]:
        """
        The most recently modified agent sessions, newest first.

        Documents that fail to load are skipped with a warning.
        """
        sessions: List[ChatSession] = []
        for document in await self.history.get_all_agent_sessions():
            if len(sessions) >= limit:
                break
            try:
                session = await self.load_session(document.path)
            except (MalformedDocumentError, ValueError) as e:
                logger.warning(f"Failed to load agent session from {document.path}: {e}")
                continue
            if session is not None:
                sessions.append(session)
        return sessions

    # Original operation name
    get_recent_agent_sessions = list_recent_agent_sessions

    #
    # Mutation
    #

    async def _flush(self, session: ChatSession) -> None:
        if session.is_agent_session:
            await self.history.update_session_metadata(session)
            self._materialized.add(session.id)

    async def update_context(self, session_id: str, changes: Dict[str, Any]) -> None:
        """Overlay context fields onto a session. Unknown ids are ignored."""
        session = self._active_sessions.get(session_id)
        if session is None:
            return

        context = session.context.copy()
        if "enabled_tools" in changes and changes["enabled_tools"] is not None:
            context.enabled_tools = _as_enum_list(changes["enabled_tools"], ToolCategory)
        if "require_confirmation" in changes and changes["require_confirmation"] is not None:
            context.require_confirmation = _as_enum_list(changes["require_confirmation"], DestructiveAction)
        if "max_context_chars" in changes:
            context.max_context_chars = changes["max_context_chars"]
        if "max_chars_per_file" in changes:
            context.max_chars_per_file = changes["max_chars_per_file"]
        if "context_files" in changes and changes["context_files"] is not None:
            context.context_files = []
            context.add_files(_as_ref(item) for item in changes["context_files"])

        session.context = context
        session.touch()
        await self._flush(session)

    async def update_model_config(self, session_id: str, config: Optional[SessionModelConfig]) -> None:
        """
        Replace the session's model override. An empty config (or None)
        clears the override entirely instead of merging.
        """
        session = self._active_sessions.get(session_id)
        if session is None:
            return

        if config is None or config.is_empty():
            session.model_config = None
        else:
            session.model_config = SessionModelConfig(
                model=config.model,
                temperature=config.temperature,
                top_p=config.top_p,
                prompt_template=config.prompt_template,
            )
        session.touch()
        await self._flush(session)

    async def add_context_files(self, session_id: str, files: Iterable[DocumentLike]) -> None:
        """Add files to the session context, skipping paths already present."""
        session = self._active_sessions.get(session_id)
        if session is None:
            return

        added = session.context.add_files(_as_ref(item) for item in files)
        if added:
            logger.debug(f"Added {len(added)} context file(s) to session {session_id}")
        session.touch()
        await self._flush(session)

    async def remove_context_files(self, session_id: str, paths: Iterable[str]) -> None:
        session = self._active_sessions.get(session_id)
        if session is None:
            return

        session.context.remove_paths(normalize_path(path) for path in paths)
        session.touch()
        await self._flush(session)

    async def update_metadata(self, session_id: str, metadata: Optional[Dict[str, Any]]) -> None:
        session = self._active_sessions.get(session_id)
        if session is None:
            return
        session.metadata = dict(metadata) if metadata else None
        session.touch()
        await self._flush(session)

    async def promote_to_agent_session(self, note_chat_id: str, title: Optional[str] = None) -> ChatSession:
        """
        Start an agent session carrying over a note chat's context files.

        Raises:
            SessionNotFoundError: If the id is unknown or not a note chat
        """
        note_session = self._active_sessions.get(note_chat_id)
        if note_session is None or note_session.type != SessionType.NOTE_CHAT:
            raise SessionNotFoundError(note_chat_id, "Session not found or not a note chat")

        return await self.create_agent_session(
            title or f"{note_session.title} (Agent)",
            {"context_files": list(note_session.context.context_files)},
        )

    def _path_held_by_other(self, path: str, session_id: Optional[str]) -> bool:
        return any(
            session.history_path == path and session.id != session_id
            for session in self._active_sessions.values()
        )

    async def _free_history_path(
        self,
        session_type: SessionType,
        title: str,
        current_path: str = "",
        session_id: Optional[str] = None,
    ) -> str:
        """
        First of ``<title>.md``, ``<title>-1.md``... that neither exists in the
        store nor belongs to another resident session.
        """
        candidate = self.history_path_for(session_type, title)
        suffix = 1
        while candidate != current_path and (
            self._path_held_by_other(candidate, session_id) or await self.store.exists(candidate)
        ):
            candidate = self.history_path_for(session_type, f"{title}-{suffix}")
            suffix += 1
        return candidate

    async def rename_session(self, session_id: str, new_title: str) -> ChatSession:
        """
        Retitle a session and move its backing document to match.

        A taken target name gets a ``-1``, ``-2``... suffix.

        Raises:
            SessionNotFoundError: If the id is unknown
            ValueError: If the title is empty after sanitizing
        """
        session = self._active_sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        title = sanitize_file_name(new_title)
        if not title:
            raise ValueError("Session title cannot be empty")

        new_path = await self._free_history_path(session.type, title, session.history_path, session.id)
        if new_path != self.history_path_for(session.type, title):
            show_notification(
                self.notifier,
                f"A session named '{title}' already exists; saved as '{new_path.rsplit('/', 1)[-1]}'",
                severity="warning",
            )

        old_path = session.history_path
        session.title = title
        if new_path != old_path:
            await self.history.move_history(session, new_path)
        session.touch()

        if await self.store.exists(session.history_path):
            await self.history.update_session_metadata(session)
        logger.info(f"Renamed session {session_id}: {old_path} -> {session.history_path}")
        return session

    async def handle_document_renamed(self, old_path: str, new_path: str) -> None:
        """
        Follow a document rename in resident sessions.

        Note chats bound to the old path are rebound, and context-file
        entries are rewritten. Renames inside the state folder are ignored.
        """
        old_path = normalize_path(old_path)
        new_path = normalize_path(new_path)
        if is_within_folder(old_path, self.settings.history_folder):
            return

        for session in list(self._active_sessions.values()):
            changed = False
            if session.source_note_path == old_path:
                session.source_note_path = new_path
                changed = True
            if session.context.has_file(old_path):
                session.context.context_files = [
                    DocumentRef(path=new_path) if ref.path == old_path else ref
                    for ref in session.context.context_files
                ]
                deduplicated = AgentContext()
                deduplicated.add_files(session.context.context_files)
                session.context.context_files = deduplicated.context_files
                changed = True
            if changed and await self.store.exists(session.history_path):
                await self.history.update_session_metadata(session)
                logger.debug(f"Session {session.id} follows rename {old_path} -> {new_path}")

    #
    # Removal and consistency
    #

    def evict(self, session_id: str) -> Optional[ChatSession]:
        """Drop a session from memory without touching its document."""
        self._materialized.discard(session_id)
        return self._active_sessions.pop(session_id, None)

    async def delete_session(self, session_id: str) -> bool:
        """Delete the backing document and evict the session. False for unknown ids."""
        session = self._active_sessions.get(session_id)
        if session is None:
            return False
        await self.history.delete_session_history(session)
        self.evict(session_id)
        logger.info(f"Deleted session '{session.title}' ({session_id})")
        return True

    async def verify_session(self, session_id: str) -> Optional[ChatSession]:
        """
        Lookup that also checks the backing document.

        A session whose document existed once and is now gone is evicted and
        None is returned. A session that has never been written is still valid.
        """
        session = self._active_sessions.get(session_id)
        if session is None:
            return None

        if await self.store.exists(session.history_path):
            self._materialized.add(session_id)
            return session

        if session_id in self._materialized or self.history.has_written(session.history_path):
            logger.warning(f"Backing document for session {session_id} is gone; evicting it")
            self.evict(session_id)
            return None
        return session

#
# End of session_manager.py
#######################################################################################################################
