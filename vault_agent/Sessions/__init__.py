# Sessions package
"""
Session model, session persistence and the session registry.

Only the data model is re-exported here; import ``SessionManager`` and
``SessionHistory`` from their modules (they depend on the History codec,
which itself depends on this data model).
"""

from .session_models import (
    AgentContext,
    ChatSession,
    DestructiveAction,
    DocumentRef,
    SessionModelConfig,
    SessionType,
    ToolCategory,
    default_context,
    generate_session_id,
    sanitize_file_name,
)

__all__ = [
    'AgentContext',
    'ChatSession',
    'DestructiveAction',
    'DocumentRef',
    'SessionModelConfig',
    'SessionType',
    'ToolCategory',
    'default_context',
    'generate_session_id',
    'sanitize_file_name',
]
