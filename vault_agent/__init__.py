# vault_agent
"""
Session and tool orchestration core for an AI agent working inside a
markdown vault.

Sessions are persisted as plain markdown documents in the vault's state
folder; every tool call passes capability, confirmation and loop checks
before it runs.
"""

__version__ = "0.1.0"

from .config import AgentSettings, load_agent_settings
from .logging_config import configure_logging
from .errors import AgentError, MalformedDocumentError, SessionNotFoundError, SessionPersistenceError
from .models import ModelCatalog, resolve_model_config
from .Sessions.session_models import ChatSession, SessionType
from .Sessions.session_history import SessionHistory
from .Sessions.session_manager import SessionManager
from .Store.filesystem_store import FilesystemDocumentStore
from .Migrations.migration_engine import MigrationEngine
from .Tools import ToolCall, ToolExecutionContext, ToolExecutionEngine, ToolRegistry, register_vault_tools

__all__ = [
    'AgentError',
    'AgentSettings',
    'ChatSession',
    'FilesystemDocumentStore',
    'MalformedDocumentError',
    'MigrationEngine',
    'ModelCatalog',
    'SessionHistory',
    'SessionManager',
    'SessionNotFoundError',
    'SessionPersistenceError',
    'SessionType',
    'ToolCall',
    'ToolExecutionContext',
    'ToolExecutionEngine',
    'ToolRegistry',
    'configure_logging',
    'load_agent_settings',
    'register_vault_tools',
    'resolve_model_config',
]
