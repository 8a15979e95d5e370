# Migrations package
"""
One-time, marker-gated migrations of older on-disk layouts.
"""

from .flat_history_migrator import FlatHistoryMigrator
from .history_migrator import HistoryMigrator
from .migration_engine import MigrationEngine, MigrationOutcome, MigrationState
from .migration_report import MigrationReport

__all__ = [
    'FlatHistoryMigrator',
    'HistoryMigrator',
    'MigrationEngine',
    'MigrationOutcome',
    'MigrationReport',
    'MigrationState',
]
