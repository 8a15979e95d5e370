# session_history.py
# Description: Durable storage of session turns and session metadata in the document store
#
# Imports
import asyncio
from datetime import timedelta
from typing import Dict, List, Optional, Set, Tuple
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from .session_models import ChatSession
from ..config import AgentSettings
from ..errors import MalformedDocumentError, SessionPersistenceError
from ..History.conversation import ConversationEntry, TurnRole
from ..History.session_codec import (
    append_entry, apply_session_frontmatter, decode_document, encode_entry, render_document_header,
    session_to_frontmatter,
)
from ..logging_config import truncate_for_log
from ..Store.document_store import Document, DocumentStore
from ..Store.frontmatter import FrontmatterError
from ..Utils.NotificationHelper import Notifier, show_notification
from ..Utils.path_validation import normalize_path
#
#######################################################################################################################
#
# Functions:

def flattened_history_path(document_path: str, settings: AgentSettings) -> str:
    """
    History document path for a note, with its folder structure flattened into the name.

    ``notes/ideas.md`` becomes ``<state>/History/notes_ideas.md``; notes at
    the vault root get a ``root_`` prefix so they never collide with
    foldered ones.
    """
    without_extension = document_path[:-3] if document_path.endswith(".md") else document_path
    is_root = "/" not in without_extension and "\\" not in without_extension
    safe_name = without_extension.replace("/", "_").replace("\\", "_")
    if is_root:
        safe_name = f"root_{safe_name}"
    return normalize_path(f"{settings.history_folder_path}/{safe_name}.md")


def _parent_folder(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ""


#
# Classes:

class SessionHistory:
    """
    Reads and writes the backing document of a session.

    Writes to one document are serialized with a per-path lock, so two
    concurrent appends cannot overwrite each other.
    """

    def __init__(
        self,
        store: DocumentStore,
        settings: AgentSettings,
        notifier: Optional[Notifier] = None,
    ):
        self.store = store
        self.settings = settings
        self.notifier = notifier
        self._locks: Dict[str, asyncio.Lock] = {}
        self._written_paths: Set[str] = set()

    def has_written(self, path: str) -> bool:
        """True once this history has created or modified the document at ``path``."""
        return path in self._written_paths

    def _lock_for(self, path: str) -> asyncio.Lock:
        lock = self._locks.get(path)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[path] = lock
        return lock

    async def document_links(self, session: ChatSession) -> Tuple[List[str], Optional[str]]:
        """``[[link]]`` tokens for the session's context files and source note."""
        context_links = [await self.store.make_link(ref.path) for ref in session.context.context_files]
        source_link = None
        if session.source_note_path:
            source_link = await self.store.make_link(session.source_note_path)
        return context_links, source_link

    def _persistence_failure(self, message: str, path: str, error: Exception) -> SessionPersistenceError:
        show_notification(self.notifier, message, severity="error")
        return SessionPersistenceError(message, path=path, original_exception=error)

    async def get_history_for_session(self, session: ChatSession) -> List[ConversationEntry]:
        """All turns recorded for a session; empty when there is no readable document."""
        if not self.settings.chat_history:
            return []

        document = await self.store.get_document(session.history_path)
        if document is None:
            return []

        try:
            content = await self.store.read(document.path)
        except OSError as e:
            logger.error(f"Error reading session history from {document.path}: {e}")
            return []

        entries = decode_document(content).entries
        logger.debug(f"Loaded {len(entries)} entries for session {session.id}")
        return entries

    async def add_entry_to_session(
        self,
        session: ChatSession,
        entry: ConversationEntry,
        file_version: Optional[str] = None,
    ) -> None:
        """
        Append a turn to the session document, creating the document on first write.

        When the document is new and the turn is a model reply that carries the
        prompt that produced it, the prompt is recorded first as a user turn
        one second earlier.

        Raises:
            SessionPersistenceError: If the document could not be read or written
        """
        if not self.settings.chat_history:
            return

        path = session.history_path
        async with self._lock_for(path):
            await self.store.ensure_folder(_parent_folder(path))
            document = await self.store.get_document(path)

            if document is not None:
                try:
                    existing = await self.store.read(path)
                except OSError as e:
                    raise self._persistence_failure("Failed to save chat history", path, e) from e
                content = append_entry(existing, encode_entry(entry, file_version))
            else:
                context_links, source_link = await self.document_links(session)
                content = render_document_header(session, context_links, source_link)
                if entry.role == TurnRole.MODEL and entry.user_message:
                    prompt_entry = ConversationEntry(
                        role=TurnRole.USER,
                        message=entry.user_message,
                        created_at=entry.created_at - timedelta(seconds=1),
                    )
                    content = append_entry(content, encode_entry(prompt_entry, file_version))
                content = append_entry(content, encode_entry(entry, file_version))

            try:
                if document is not None:
                    await self.store.modify(path, content)
                else:
                    await self.store.create(path, content)
            except OSError as e:
                raise self._persistence_failure("Failed to save chat history", path, e) from e
            self._written_paths.add(path)

        session.touch()
        logger.debug(
            f"Appended {entry.role.value} turn to {path}: {truncate_for_log(entry.message)}"
        )

    async def update_session_metadata(self, session: ChatSession) -> None:
        """
        Flush the session's persisted fields to the document frontmatter.

        The document is created (frontmatter and title only) when it does not
        exist yet. Optional keys the session no longer has are removed.

        Raises:
            SessionPersistenceError: If the document could not be written
            MalformedDocumentError: If the existing frontmatter cannot be parsed
        """
        if not self.settings.chat_history:
            return

        path = session.history_path
        async with self._lock_for(path):
            context_links, source_link = await self.document_links(session)
            try:
                if not await self.store.exists(path):
                    await self.store.ensure_folder(_parent_folder(path))
                    await self.store.create(path, render_document_header(session, context_links, source_link))
                    self._written_paths.add(path)
                    logger.debug(f"Created session document {path}")
                    return

                session_data = session_to_frontmatter(session, context_links, source_link)
                await self.store.process_frontmatter(
                    path, lambda frontmatter: apply_session_frontmatter(frontmatter, session_data)
                )
                self._written_paths.add(path)
                logger.debug(f"Updated session metadata in {path}")
            except FrontmatterError as e:
                raise MalformedDocumentError(path, str(e), original_exception=e) from e
            except OSError as e:
                raise self._persistence_failure("Failed to save session settings", path, e) from e

    async def delete_session_history(self, session: ChatSession) -> None:
        """Delete the session document if it exists."""
        path = session.history_path
        async with self._lock_for(path):
            if not await self.store.exists(path):
                return
            try:
                await self.store.delete(path)
            except OSError as e:
                logger.error(f"Error deleting session history {path}: {e}")
                raise
        self._written_paths.discard(path)
        self._locks.pop(path, None)
        logger.info(f"Deleted session history {path}")

    async def get_all_agent_sessions(self) -> List[Document]:
        """Markdown documents in the agent-session folder, most recently modified first."""
        folder = self.settings.agent_sessions_folder_path
        try:
            listing = await self.store.list_folder(folder)
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.error(f"Error listing agent sessions in {folder}: {e}")
            return []

        documents = []
        for path in listing.files:
            if not path.endswith(".md"):
                continue
            document = await self.store.get_document(path)
            if document is not None:
                documents.append(document)
        documents.sort(key=lambda d: d.mtime, reverse=True)
        return documents

    async def move_history(self, session: ChatSession, new_path: str) -> None:
        """Rename the backing document of a session. Raises ``FileExistsError`` on a taken target."""
        old_path = session.history_path
        async with self._lock_for(old_path):
            if await self.store.exists(old_path):
                await self.store.rename(old_path, new_path)
        self._locks.pop(old_path, None)
        if old_path in self._written_paths:
            self._written_paths.discard(old_path)
            self._written_paths.add(new_path)
        session.history_path = new_path

#
# End of session_history.py
#######################################################################################################################
