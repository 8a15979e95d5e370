# session_models.py
# Description: Data models for agent sessions and their capability envelope
#
"""
Session Models
--------------

Defines ``ChatSession`` and the ``AgentContext`` capability envelope, the
enums for session kind, tool category and destructive-action kind, and the
title/id helpers shared by the session manager and the migrators.
"""

import copy
import random
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class SessionType(Enum):
    """Kinds of session."""
    NOTE_CHAT = "note-chat"          # bound to exactly one source document
    AGENT_SESSION = "agent-session"  # free-standing, multi-document context


class ToolCategory(Enum):
    """Capability buckets a session either has or lacks."""
    READ_ONLY = "read_only"
    VAULT_OPERATIONS = "vault_ops"
    EXTERNAL_MCP = "external_mcp"
    SYSTEM = "system"


class DestructiveAction(Enum):
    """Action kinds that may require explicit confirmation."""
    MODIFY_FILES = "modify_files"
    CREATE_FILES = "create_files"
    DELETE_FILES = "delete_files"
    EXTERNAL_API_CALLS = "external_calls"


TITLE_MAX_LENGTH = 100
_FORBIDDEN_TITLE_CHARS = re.compile(r'[\\/:*?"<>|]')
_WHITESPACE_RUN = re.compile(r"\s+")
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def sanitize_file_name(name: str) -> str:
    """
    Make a title safe to use as a file name.

    Path and reserved characters become ``-``, whitespace runs collapse to a
    single space, and the result is trimmed to at most 100 characters.
    Sanitizing an already sanitized title returns it unchanged.
    """
    cleaned = _FORBIDDEN_TITLE_CHARS.sub("-", name)
    cleaned = _WHITESPACE_RUN.sub(" ", cleaned).strip()
    return cleaned[:TITLE_MAX_LENGTH].strip()


def random_base36(length: int) -> str:
    return "".join(random.choice(_BASE36) for _ in range(length))


def generate_session_id() -> str:
    """``session_<epoch ms>_<9 base-36 chars>``"""
    return f"session_{int(time.time() * 1000)}_{random_base36(9)}"


def generate_migrated_session_id() -> str:
    """``migrated-<epoch ms>-<7 base-36 chars>``, used for converted legacy transcripts."""
    return f"migrated-{int(time.time() * 1000)}-{random_base36(7)}"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp (or epoch milliseconds) into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class DocumentRef:
    """Reference to a document in the store, identified by its path."""
    path: str

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def basename(self) -> str:
        name = self.name
        return name.rsplit(".", 1)[0] if "." in name else name


@dataclass
class AgentContext:
    """Capability and scope envelope of a session."""
    context_files: List[DocumentRef] = field(default_factory=list)
    enabled_tools: List[ToolCategory] = field(default_factory=list)
    require_confirmation: List[DestructiveAction] = field(default_factory=list)
    max_context_chars: Optional[int] = None
    max_chars_per_file: Optional[int] = None

    def add_files(self, files: Iterable[DocumentRef]) -> List[DocumentRef]:
        """Append files not already present (by path). Returns the ones added."""
        existing = {ref.path for ref in self.context_files}
        added = []
        for ref in files:
            if ref.path in existing:
                continue
            existing.add(ref.path)
            self.context_files.append(ref)
            added.append(ref)
        return added

    def remove_paths(self, paths: Iterable[str]) -> int:
        """Drop every file whose path is in ``paths``. Returns how many were removed."""
        doomed = set(paths)
        before = len(self.context_files)
        self.context_files = [ref for ref in self.context_files if ref.path not in doomed]
        return before - len(self.context_files)

    def has_file(self, path: str) -> bool:
        return any(ref.path == path for ref in self.context_files)

    def copy(self) -> "AgentContext":
        return AgentContext(
            context_files=list(self.context_files),
            enabled_tools=list(self.enabled_tools),
            require_confirmation=list(self.require_confirmation),
            max_context_chars=self.max_context_chars,
            max_chars_per_file=self.max_chars_per_file,
        )

    def to_dict(self) -> dict:
        return {
            "context_files": [ref.path for ref in self.context_files],
            "enabled_tools": [tool.value for tool in self.enabled_tools],
            "require_confirmation": [action.value for action in self.require_confirmation],
            "max_context_chars": self.max_context_chars,
            "max_chars_per_file": self.max_chars_per_file,
        }


_DEFAULT_CONTEXTS: Dict[SessionType, AgentContext] = {
    SessionType.NOTE_CHAT: AgentContext(
        enabled_tools=[ToolCategory.READ_ONLY],
        require_confirmation=[],
        max_context_chars=50000,
        max_chars_per_file=10000,
    ),
    SessionType.AGENT_SESSION: AgentContext(
        enabled_tools=[ToolCategory.READ_ONLY, ToolCategory.VAULT_OPERATIONS],
        require_confirmation=[
            DestructiveAction.MODIFY_FILES,
            DestructiveAction.CREATE_FILES,
            DestructiveAction.DELETE_FILES,
        ],
        max_context_chars=100000,
        max_chars_per_file=15000,
    ),
}


def default_context(session_type: SessionType) -> AgentContext:
    """A fresh default context for a session kind; never shared between sessions."""
    return _DEFAULT_CONTEXTS[session_type].copy()


@dataclass
class SessionModelConfig:
    """Per-session model override. ``None`` fields fall back to defaults."""
    model: Optional[str] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    prompt_template: Optional[str] = None

    def is_empty(self) -> bool:
        return (
            self.model is None
            and self.temperature is None
            and self.top_p is None
            and self.prompt_template is None
        )


@dataclass
class ChatSession:
    """The unit of conversational state."""
    id: str
    type: SessionType
    title: str
    context: AgentContext
    history_path: str
    created: datetime = field(default_factory=utc_now)
    last_active: datetime = field(default_factory=utc_now)
    model_config: Optional[SessionModelConfig] = None
    source_note_path: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def touch(self) -> None:
        """Mark the session as active now."""
        self.last_active = utc_now()

    @property
    def is_agent_session(self) -> bool:
        return self.type == SessionType.AGENT_SESSION

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "context": self.context.to_dict(),
            "history_path": self.history_path,
            "created": self.created.isoformat(),
            "last_active": self.last_active.isoformat(),
            "model_config": None if self.model_config is None else {
                "model": self.model_config.model,
                "temperature": self.model_config.temperature,
                "top_p": self.model_config.top_p,
                "prompt_template": self.model_config.prompt_template,
            },
            "source_note_path": self.source_note_path,
            "metadata": copy.deepcopy(self.metadata),
        }

#
# End of session_models.py
#######################################################################################################################
