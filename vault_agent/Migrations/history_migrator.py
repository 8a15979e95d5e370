# history_migrator.py
# Description: Converts note-centric chat histories into agent-session documents
#
"""
History Migrator
----------------

Second-generation migration: every transcript under ``<state>/History`` is
copied verbatim into ``<state>/History-Archive`` and then converted into an
agent session in ``<state>/Agent-Sessions``. The transcripts themselves are
left in place.
"""

import re
from datetime import datetime
from typing import List
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from .migration_report import MigrationReport, marker_content
from ..config import AgentSettings
from ..History.conversation import ConversationEntry, TurnRole
from ..History.session_codec import decode_document, render_document
from ..Sessions.session_models import (
    AgentContext, ChatSession, DestructiveAction, SessionType, ToolCategory, generate_migrated_session_id,
    sanitize_file_name,
)
from ..Store.document_store import Document, DocumentStore, Folder
from ..Store.frontmatter import split_frontmatter
from ..Utils.path_validation import is_within_folder, normalize_path
#
#######################################################################################################################
#
# Constants:

SESSION_MIGRATION_MARKER = ".session-migration-completed"
FALLBACK_TITLE = "Migrated Conversation"

_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")
_LEGACY_ROLE_HEADER = re.compile(r"^### (User|Assistant|Model)[^\n]*$", re.MULTILINE)


def parse_legacy_transcript(content: str, timestamp: datetime) -> List[ConversationEntry]:
    """
    Split a ``### User`` / ``### Assistant`` transcript into turns.

    Only used when the document is not in the callout format.
    """
    _, body = split_frontmatter(content)
    parts = _LEGACY_ROLE_HEADER.split(body)
    entries = []
    # parts: [preamble, role, text, role, text, ...]
    for index in range(1, len(parts), 2):
        role = TurnRole.USER if parts[index].lower() == "user" else TurnRole.MODEL
        message = parts[index + 1].strip() if index + 1 < len(parts) else ""
        if message:
            entries.append(ConversationEntry(role=role, message=message, created_at=timestamp))
    return entries


def generate_session_title(document: Document, entries: List[ConversationEntry]) -> str:
    """
    Title for a migrated session: the file name when it is descriptive,
    otherwise the start of the first user message.
    """
    file_name = document.basename
    if len(file_name) > 3 and not _DATE_PREFIX.match(file_name):
        return file_name

    for entry in entries:
        if entry.role == TurnRole.USER:
            title = entry.message[:50].replace("\n", " ").strip()
            return title or FALLBACK_TITLE
    return FALLBACK_TITLE


#
# Classes:

class HistoryMigrator:
    """Converts History/ transcripts to Agent-Sessions/ documents."""

    def __init__(self, store: DocumentStore, settings: AgentSettings):
        self.store = store
        self.settings = settings
        self.history_folder = normalize_path(settings.history_folder_path)
        self.agent_sessions_folder = normalize_path(settings.agent_sessions_folder_path)
        self.archive_folder = normalize_path(settings.archive_folder_path)

    @property
    def marker_path(self) -> str:
        return normalize_path(f"{self.settings.history_folder}/{SESSION_MIGRATION_MARKER}")

    async def is_completed(self) -> bool:
        return await self.store.exists(self.marker_path)

    async def find_history_files(self) -> List[Document]:
        return [
            document for document in await self.store.list_markdown_files()
            if is_within_folder(document.path, self.history_folder) and document.path != self.history_folder
        ]

    async def needs_migration(self) -> bool:
        """True when History/ holds transcripts and Agent-Sessions/ is missing or empty."""
        if await self.is_completed():
            return False
        if not isinstance(await self.store.get_entry(self.history_folder), Folder):
            return False

        markdown_files = await self.store.list_markdown_files()
        has_history = any(is_within_folder(d.path, self.history_folder) for d in markdown_files)
        if not has_history:
            return False

        if not isinstance(await self.store.get_entry(self.agent_sessions_folder), Folder):
            return True
        return not any(is_within_folder(d.path, self.agent_sessions_folder) for d in markdown_files)

    async def create_backup(self, history_files: List[Document]) -> None:
        """Copy every transcript into the archive folder, keeping relative paths. Per-file failures are logged."""
        await self.store.ensure_folder(self.archive_folder)
        for document in history_files:
            relative_path = document.path[len(self.history_folder) + 1:]
            archive_path = normalize_path(f"{self.archive_folder}/{relative_path}")
            try:
                content = await self.store.read(document.path)
                await self.store.create(archive_path, content)
            except (OSError, ValueError) as e:
                logger.warning(f"Failed to back up {document.path}: {e}")

    async def _unique_session_path(self, title: str) -> str:
        base_path = f"{self.agent_sessions_folder}/{title}"
        candidate = f"{base_path}.md"
        counter = 1
        while await self.store.exists(candidate):
            candidate = f"{base_path}-{counter}.md"
            counter += 1
        return candidate

    async def migrate_history_file(self, document: Document) -> bool:
        """
        Convert one transcript. Returns False when it holds no turns.

        Raises:
            OSError: If the transcript cannot be read or the session cannot be written
        """
        content = await self.store.read(document.path)
        last_modified = datetime.fromtimestamp(document.mtime).astimezone()

        entries = decode_document(content).entries
        if not entries:
            entries = parse_legacy_transcript(content, last_modified)
        if not entries:
            logger.debug(f"Skipping empty transcript {document.path}")
            return False

        title = sanitize_file_name(generate_session_title(document, entries)) or FALLBACK_TITLE
        session = ChatSession(
            id=generate_migrated_session_id(),
            type=SessionType.AGENT_SESSION,
            title=title,
            context=AgentContext(
                enabled_tools=[ToolCategory.VAULT_OPERATIONS],
                require_confirmation=[DestructiveAction.DELETE_FILES, DestructiveAction.MODIFY_FILES],
            ),
            history_path=await self._unique_session_path(title),
            created=datetime.fromtimestamp(document.ctime).astimezone(),
            last_active=last_modified,
            metadata={"autoLabeled": True},
        )

        await self.store.create(session.history_path, render_document(session, entries, context_links=[]))
        logger.debug(f"Migrated {document.path} -> {session.history_path} ({len(entries)} turns)")
        return True

    async def migrate_all_history(self) -> MigrationReport:
        """
        Back up and convert every transcript. Never raises.

        The marker is written whenever transcripts were examined, including
        after partial failure.
        """
        report = MigrationReport(name="Agent session migration")
        if await self.is_completed():
            report.skipped = True
            return report

        try:
            history_files = await self.find_history_files()
        except OSError as e:
            report.errors.append(f"Migration failed: {e}")
            logger.error(f"Could not enumerate history files: {e}")
            return report
        report.total_found = len(history_files)

        if history_files:
            await self.create_backup(history_files)
            report.backup_created = True
            await self.store.ensure_folder(self.agent_sessions_folder)

            for document in history_files:
                try:
                    if await self.migrate_history_file(document):
                        report.processed += 1
                        report.created += 1
                except (OSError, ValueError) as e:
                    report.record_failure(f"Failed to migrate {document.path}: {e}")
                    logger.error(f"Migration error for {document.path}: {e}")

        try:
            await self.store.write(self.marker_path, marker_content(report.processed))
        except OSError as e:
            report.errors.append(f"Could not write migration marker: {e}")
            logger.error(f"Could not write migration marker {self.marker_path}: {e}")

        logger.info(
            f"Session migration finished: {report.created} session(s) from {report.total_found} transcript(s), "
            f"{report.failed} failed"
        )
        return report

#
# End of history_migrator.py
#######################################################################################################################
