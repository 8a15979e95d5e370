"""
Tests for the tool registry: lookup, capability filtering, confirmation
rules and parameter validation.
"""

import pytest

from vault_agent.Sessions.session_models import DestructiveAction, SessionType, ToolCategory
from vault_agent.Tools.tool_registry import ToolRegistry


READ_ONLY_TOOLS = {"read_file", "list_files", "search_files"}
VAULT_TOOLS = {"write_file", "create_folder", "delete_file", "move_file"}


class TestRegistration:

    def test_vault_tools_are_registered(self, registry):
        names = {tool.name for tool in registry.get_all_tools()}
        assert names == READ_ONLY_TOOLS | VAULT_TOOLS
        assert {t.name for t in registry.get_tools_by_category(ToolCategory.READ_ONLY)} == READ_ONLY_TOOLS

    def test_reregistering_overwrites(self, spy_tool):
        registry = ToolRegistry()
        first, second = spy_tool(), spy_tool()
        registry.register_tool(first)
        registry.register_tool(second)
        assert registry.get_tool("spy") is second
        assert len(registry.get_all_tools()) == 1

    def test_unregister(self, spy_tool):
        registry = ToolRegistry()
        registry.register_tool(spy_tool())
        assert registry.unregister_tool("spy") is True
        assert registry.unregister_tool("spy") is False
        assert registry.get_tool("spy") is None


class TestEnabledTools:

    @pytest.mark.asyncio
    async def test_note_chat_sees_read_only_tools(self, registry, make_context):
        context = await make_context(SessionType.NOTE_CHAT)
        assert {tool.name for tool in registry.get_enabled_tools(context)} == READ_ONLY_TOOLS

    @pytest.mark.asyncio
    async def test_agent_session_sees_everything(self, registry, make_context):
        context = await make_context()
        assert {tool.name for tool in registry.get_enabled_tools(context)} == READ_ONLY_TOOLS | VAULT_TOOLS

    @pytest.mark.asyncio
    async def test_descriptions_use_function_format(self, registry, make_context):
        context = await make_context(SessionType.NOTE_CHAT)
        descriptions = registry.get_tool_descriptions(context)
        assert all(d["type"] == "function" for d in descriptions)
        read_file = next(d for d in descriptions if d["function"]["name"] == "read_file")
        assert read_file["function"]["parameters"]["required"] == ["path"]


class TestRequiresConfirmation:

    @pytest.mark.asyncio
    async def test_read_only_never_asks(self, registry, make_context):
        context = await make_context()
        assert not await registry.requires_confirmation("read_file", context, {"path": "a.md"})

    @pytest.mark.asyncio
    async def test_write_depends_on_target(self, registry, make_context, write_note):
        write_note("exists.md", "x")
        context = await make_context(require_confirmation=[DestructiveAction.MODIFY_FILES])

        assert await registry.requires_confirmation("write_file", context, {"path": "exists.md", "content": ""})
        assert not await registry.requires_confirmation("write_file", context, {"path": "new.md", "content": ""})

    @pytest.mark.asyncio
    async def test_delete_always_asks(self, registry, make_context):
        context = await make_context(require_confirmation=[])
        assert await registry.requires_confirmation("delete_file", context, {"path": "a.md"})
        assert not await registry.requires_confirmation("create_folder", context, {"path": "x"})

    @pytest.mark.asyncio
    async def test_category_action_fallback(self, spy_tool, make_context):
        registry = ToolRegistry()
        registry.register_tool(spy_tool("remote", category=ToolCategory.EXTERNAL_MCP))
        context = await make_context(
            enabled_tools=[ToolCategory.EXTERNAL_MCP],
            require_confirmation=[DestructiveAction.EXTERNAL_API_CALLS],
        )
        assert await registry.requires_confirmation("remote", context)

    @pytest.mark.asyncio
    async def test_unknown_tool(self, registry, make_context):
        context = await make_context()
        assert not await registry.requires_confirmation("nope", context)


class TestValidateParameters:

    def test_valid(self, registry):
        assert registry.validate_parameters("read_file", {"path": "a.md"}) == (True, [])

    def test_missing_and_unknown(self, registry):
        valid, errors = registry.validate_parameters("read_file", {"file": "a.md"})
        assert not valid
        assert "Missing required parameter: path" in errors
        assert "Unknown parameter: file" in errors

    @pytest.mark.parametrize("value,actual", [(5, "number"), (True, "boolean"), (["a"], "array"), (None, "null")])
    def test_type_mismatch(self, registry, value, actual):
        valid, errors = registry.validate_parameters("read_file", {"path": value})
        assert not valid
        assert errors == [f"Parameter path should be string but got {actual}"]

    def test_boolean_is_not_a_number(self, registry):
        _, errors = registry.validate_parameters("search_files", {"pattern": "x", "limit": True})
        assert errors == ["Parameter limit should be number but got boolean"]

    def test_enum_and_integer(self, spy_tool):
        registry = ToolRegistry()
        registry.register_tool(spy_tool(parameters={
            "type": "object",
            "properties": {
                "mode": {"type": "string", "enum": ["fast", "slow"]},
                "count": {"type": "integer"},
            },
        }))
        assert registry.validate_parameters("spy", {"mode": "fast", "count": 2}) == (True, [])
        _, errors = registry.validate_parameters("spy", {"mode": "medium", "count": 1.5})
        assert "Parameter mode must be one of: fast, slow" in errors
        assert "Parameter count should be integer but got number" in errors

    def test_unknown_tool(self, registry):
        assert registry.validate_parameters("nope", {}) == (False, ["Tool nope not found"])
