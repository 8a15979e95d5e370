"""
Root conftest.py for shared test fixtures and configuration.
This file provides a throwaway vault and the core objects wired on top of it.
"""

import shutil
import sys
import tempfile
from pathlib import Path

import pytest

# Add project root to Python path for consistent imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from vault_agent.config import AgentSettings
from vault_agent.Sessions.session_models import SessionType, ToolCategory
from vault_agent.Sessions.session_history import SessionHistory
from vault_agent.Sessions.session_manager import SessionManager
from vault_agent.Store.filesystem_store import FilesystemDocumentStore
from vault_agent.Tools.tool_base import Tool, ToolExecutionContext, ToolResult
from vault_agent.Tools.tool_registry import ToolRegistry
from vault_agent.Tools.vault_tools import register_vault_tools


# ========== Path and File System Fixtures ==========

@pytest.fixture
def vault_dir():
    """Create an isolated vault directory that's always cleaned up."""
    temp_dir = tempfile.mkdtemp(prefix="vault_agent_test_")
    temp_path = Path(temp_dir)
    yield temp_path
    # Ensure cleanup even if test fails
    if temp_path.exists():
        shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def write_note(vault_dir):
    """Write a file into the vault, creating parent folders."""
    def _write_note(path: str, content: str = "") -> Path:
        target = vault_dir / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return target
    return _write_note


# ========== Core Object Fixtures ==========

@pytest.fixture
def settings():
    """Default settings; tests adjust fields directly."""
    return AgentSettings()


@pytest.fixture
def store(vault_dir):
    return FilesystemDocumentStore(vault_dir)


@pytest.fixture
def notifications():
    """Collects (message, severity) pairs sent to the notifier."""
    return []


@pytest.fixture
def notifier(notifications):
    def _notify(message, severity, timeout):
        notifications.append((message, severity))
    return _notify


@pytest.fixture
def history(store, settings, notifier):
    return SessionHistory(store, settings, notifier)


@pytest.fixture
def manager(store, settings, history, notifier):
    return SessionManager(store, settings, history=history, notifier=notifier)


@pytest.fixture
def registry(settings):
    return register_vault_tools(ToolRegistry(), settings)


@pytest.fixture
def make_context(manager, store):
    """Build a tool execution context on a fresh session of the given kind."""
    async def _make_context(kind=SessionType.AGENT_SESSION, **context_overrides):
        if kind == SessionType.NOTE_CHAT:
            session = await manager.create_note_chat_session("note.md")
        else:
            session = await manager.create_agent_session("Tools", context_overrides or None)
        return ToolExecutionContext(session=session, store=store, session_manager=manager)
    return _make_context


# ========== Test Doubles ==========

class SpyTool(Tool):
    """A tool that records every call it receives."""

    def __init__(self, name="spy", category=ToolCategory.READ_ONLY, result=None, error=None,
                 destructive_action=None, always_confirm=False, parameters=None):
        self._name = name
        self.category = category
        self.destructive_action = destructive_action
        self.requires_confirmation = always_confirm
        self._parameters = parameters or {
            "type": "object",
            "properties": {"value": {"type": "string", "description": "Anything"}},
        }
        self.result = result or ToolResult.ok({"echo": True})
        self.error = error
        self.calls = []

    @property
    def name(self):
        return self._name

    @property
    def description(self):
        return f"Spy tool {self._name}"

    @property
    def parameters(self):
        return self._parameters

    async def execute(self, params, context):
        self.calls.append(dict(params))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def spy_tool():
    """Factory for SpyTool instances."""
    return SpyTool
