# migration_engine.py
# Description: Runs the on-disk migrations once, in order, before any session is resolved
#
# Imports
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from .flat_history_migrator import FlatHistoryMigrator
from .history_migrator import HistoryMigrator
from .migration_report import MigrationReport
from ..config import AgentSettings
from ..Store.document_store import DocumentStore
from ..Utils.NotificationHelper import Notifier, show_notification
#
#######################################################################################################################
#
# Classes:

class MigrationState(Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    DONE = "done"


@dataclass
class MigrationOutcome:
    """Reports of every migration generation that ran."""
    reports: List[MigrationReport]

    @property
    def has_failures(self) -> bool:
        return any(report.has_failures for report in self.reports)

    def summary(self) -> str:
        return "\n\n".join(report.summary() for report in self.reports if not report.skipped)


class MigrationEngine:
    """
    Orchestrates the flat-to-foldered and conversation-to-session migrations.

    ``run`` never raises. Each generation is gated by its own marker
    document, so after the first successful start both are cheap no-ops.
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
        self.flat_migrator = FlatHistoryMigrator(store, settings)
        self.history_migrator = HistoryMigrator(store, settings)
        self.state = MigrationState.NOT_STARTED
        self.outcome: Optional[MigrationOutcome] = None

    async def _run_generation(self, name: str, coroutine) -> MigrationReport:
        try:
            return await coroutine
        except Exception as e:
            # Migration failures are reported, never raised
            logger.exception(f"{name} aborted: {e}")
            report = MigrationReport(name=name)
            report.errors.append(f"Migration failed: {e}")
            return report

    async def run(self) -> MigrationOutcome:
        if self.state == MigrationState.DONE and self.outcome is not None:
            return self.outcome
        if not self.settings.chat_history:
            logger.debug("Chat history disabled; skipping migrations")
            self.outcome = MigrationOutcome(reports=[])
            self.state = MigrationState.DONE
            return self.outcome

        self.state = MigrationState.RUNNING
        reports = [
            await self._run_generation(
                "History folder migration", self.flat_migrator.migrate_all_legacy_files()
            )
        ]

        try:
            needs_session_migration = await self.history_migrator.needs_migration()
        except Exception as e:
            logger.exception(f"Could not check for session migration: {e}")
            report = MigrationReport(name="Agent session migration")
            report.errors.append(f"Migration check failed: {e}")
            reports.append(report)
            needs_session_migration = False

        if needs_session_migration:
            reports.append(
                await self._run_generation(
                    "Agent session migration", self.history_migrator.migrate_all_history()
                )
            )

        self.outcome = MigrationOutcome(reports=reports)
        self.state = MigrationState.DONE
        self._notify(self.outcome)
        return self.outcome

    def _notify(self, outcome: MigrationOutcome) -> None:
        if outcome.has_failures:
            show_notification(self.notifier, outcome.summary(), severity="error")
        elif any(report.created or report.processed for report in outcome.reports):
            show_notification(self.notifier, outcome.summary(), severity="information")

#
# End of migration_engine.py
#######################################################################################################################
