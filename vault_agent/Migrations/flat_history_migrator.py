# flat_history_migrator.py
# Description: Moves history documents sitting directly in the state folder into its History subfolder
#
# Imports
from typing import Optional
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from .migration_report import MigrationReport, marker_content
from ..config import AgentSettings
from ..History.session_codec import frontmatter_source_reference
from ..Sessions.session_history import flattened_history_path
from ..Store.document_store import Document, DocumentStore
from ..Store.frontmatter import split_frontmatter
from ..Utils.path_validation import normalize_path
#
#######################################################################################################################
#
# Classes:

FLAT_MIGRATION_MARKER = ".migration-completed"


class FlatHistoryMigrator:
    """
    One-time move of flat legacy history files into ``<state>/History``.

    If the destination already exists the legacy file is deleted instead of
    moved, so the history is never duplicated.
    """

    def __init__(self, store: DocumentStore, settings: AgentSettings):
        self.store = store
        self.settings = settings

    @property
    def marker_path(self) -> str:
        return normalize_path(f"{self.settings.history_folder}/{FLAT_MIGRATION_MARKER}")

    async def is_completed(self) -> bool:
        return await self.store.exists(self.marker_path)

    async def _destination_for(self, legacy: Document) -> str:
        """Flattened path of the note the history belongs to, else the same file name under History/."""
        fallback = normalize_path(f"{self.settings.history_folder_path}/{legacy.name}")
        try:
            frontmatter, _ = split_frontmatter(await self.store.read(legacy.path))
        except OSError as e:
            logger.debug(f"Could not read {legacy.path} while choosing its destination: {e}")
            return fallback

        reference = frontmatter_source_reference(frontmatter)
        if not reference:
            return fallback
        source = await self.store.resolve_link(reference, legacy.path)
        if source is None:
            return fallback
        return flattened_history_path(source.path, self.settings)

    async def _migrate_one(self, legacy: Document, report: MigrationReport) -> None:
        destination = await self._destination_for(legacy)
        if await self.store.exists(destination):
            logger.warning(
                f"Migration target {destination} already exists. Deleting legacy file {legacy.path}."
            )
            await self.store.delete(legacy.path)
            report.duplicates_removed += 1
            return

        await self.store.rename(legacy.path, destination)
        report.processed += 1
        logger.debug(f"Moved legacy history {legacy.path} -> {destination}")

    async def migrate_all_legacy_files(self) -> MigrationReport:
        """
        Run the migration unless its marker exists. Never raises.

        The marker is written even when some files failed, recording how many
        were moved, so a broken file does not cause a retry on every start.
        """
        report = MigrationReport(name="History folder migration")

        # Checked before any listing so repeated starts stay cheap
        if await self.is_completed():
            report.skipped = True
            return report

        state_folder = self.settings.history_folder
        await self.store.ensure_folder(state_folder)
        await self.store.ensure_folder(self.settings.history_folder_path)

        legacy_files = []
        try:
            listing = await self.store.list_folder(state_folder)
            for path in listing.files:
                if not path.endswith(".md"):
                    continue
                document: Optional[Document] = await self.store.get_document(path)
                if document is not None:
                    legacy_files.append(document)
        except OSError as e:
            report.errors.append(f"Could not list {state_folder}: {e}")
            logger.error(f"Could not list legacy history in {state_folder}: {e}")
        report.total_found = len(legacy_files)

        for legacy in legacy_files:
            try:
                await self._migrate_one(legacy, report)
            except (OSError, ValueError) as e:
                report.record_failure(f"Failed to migrate {legacy.path}: {e}")
                logger.error(f"Failed to migrate history file {legacy.path}: {e}")

        try:
            await self.store.write(self.marker_path, marker_content(report.processed))
        except OSError as e:
            report.errors.append(f"Could not write migration marker: {e}")
            logger.error(f"Could not write migration marker {self.marker_path}: {e}")

        if report.processed:
            logger.info(f"Migrated {report.processed} chat history files to new folder structure")
        return report

#
# End of flat_history_migrator.py
#######################################################################################################################
