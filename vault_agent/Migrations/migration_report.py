# migration_report.py
# Description: Result object shared by the migrators
#
# Imports
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List
#
#######################################################################################################################
#
# Classes:

@dataclass
class MigrationReport:
    """
    Counts and per-file errors of one migration run.

    Migrations never raise; everything that went wrong ends up in ``errors``.
    """
    name: str = "migration"
    total_found: int = 0
    processed: int = 0
    created: int = 0
    failed: int = 0
    duplicates_removed: int = 0
    backup_created: bool = False
    skipped: bool = False  # marker present, nothing was examined
    errors: List[str] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return self.failed > 0 or bool(self.errors)

    def record_failure(self, message: str) -> None:
        self.failed += 1
        self.errors.append(message)

    def summary(self) -> str:
        """Human-readable summary for a notification."""
        if self.skipped:
            return f"{self.name}: already completed"
        lines = [
            f"{self.name}: {self.processed} of {self.total_found} file(s) migrated"
            + (f", {self.created} session(s) created" if self.created else "")
            + (f", {self.failed} failed" if self.failed else "")
        ]
        if self.duplicates_removed:
            lines.append(f"{self.duplicates_removed} duplicate legacy file(s) removed")
        if self.backup_created:
            lines.append("A backup was written to the archive folder")
        lines.extend(f"- {error}" for error in self.errors)
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "total_found": self.total_found,
            "processed": self.processed,
            "created": self.created,
            "failed": self.failed,
            "duplicates_removed": self.duplicates_removed,
            "backup_created": self.backup_created,
            "skipped": self.skipped,
            "errors": list(self.errors),
        }


def marker_content(migrated_count: int) -> str:
    """Marker document text: completion time, then the migrated count on the second line."""
    timestamp = datetime.now(timezone.utc).isoformat()
    return f"Migration completed at {timestamp}\nMigrated {migrated_count} files"

#
# End of migration_report.py
#######################################################################################################################
