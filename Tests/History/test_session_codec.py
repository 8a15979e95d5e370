"""
Tests for the session document codec: entry sections, appends, and the
session <-> frontmatter mapping.
"""

from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import given, settings as hypothesis_settings, strategies as st

from vault_agent.History.conversation import (
    META_CUSTOM_PROMPT, META_TEMPERATURE, META_TOOL_NAME, META_TOOL_STATUS, META_TOP_P,
    ConversationEntry, TurnRole,
)
from vault_agent.History.session_codec import (
    append_entry, decode_document, decode_entries, encode_entry, escape_cell, render_document,
    session_from_frontmatter, session_to_frontmatter,
)
from vault_agent.Sessions.session_models import (
    AgentContext, ChatSession, DestructiveAction, DocumentRef, SessionModelConfig, SessionType,
    ToolCategory,
)
from vault_agent.Store.frontmatter import render_frontmatter, split_frontmatter


FIXED_TIME = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _entry(role=TurnRole.USER, message="hello", **kwargs):
    return ConversationEntry(role=role, message=message, created_at=FIXED_TIME, **kwargs)


def _session(**kwargs):
    defaults = dict(
        id="session_1_abc",
        type=SessionType.AGENT_SESSION,
        title="Research",
        context=AgentContext(
            enabled_tools=[ToolCategory.READ_ONLY],
            require_confirmation=[DestructiveAction.DELETE_FILES],
            max_context_chars=100000,
            max_chars_per_file=15000,
        ),
        history_path="gemini-scribe/Agent-Sessions/Research.md",
        created=FIXED_TIME,
        last_active=FIXED_TIME + timedelta(hours=1),
    )
    defaults.update(kwargs)
    return ChatSession(**defaults)


class TestEncodeEntry:

    def test_layout(self):
        text = encode_entry(_entry(message="line one\n\nline three"), file_version="1.2.3")
        assert text.startswith("## User\n")
        assert "> | Time | 2025-01-02T03:04:05+00:00 |" in text
        assert "> | File Version | 1.2.3 |" in text
        assert "> [!user]+" in text
        assert "> line one\n>\n> line three" in text
        assert text.endswith("\n---\n")

    def test_only_defined_rows(self):
        text = encode_entry(_entry(role=TurnRole.MODEL))
        assert "| Model |" not in text
        assert "| Temperature |" not in text
        assert "| File Version | unknown |" in text
        assert "> [!assistant]+" in text

    def test_zero_values_are_written(self):
        text = encode_entry(_entry(role=TurnRole.MODEL, metadata={META_TEMPERATURE: 0, META_TOP_P: 0.0}))
        assert "> | Temperature | 0 |" in text
        assert "> | Top P | 0.0 |" in text

    def test_cells_are_escaped(self):
        assert escape_cell("a|b\nc") == "a\\|b\\nc"
        entry = _entry(role=TurnRole.MODEL, metadata={META_CUSTOM_PROMPT: "[[Prompts/My|Alias]]"})
        decoded = decode_entries(encode_entry(entry))
        assert decoded[0].custom_prompt == "[[Prompts/My|Alias]]"


class TestAppendEntry:

    def test_no_double_delimiter(self):
        header = "---\ntitle: \"x\"\n---\n\n# x\n"
        once = append_entry(header, encode_entry(_entry(message="first")))
        twice = append_entry(once, encode_entry(_entry(message="second")))
        assert "---\n\n---" not in twice
        # Frontmatter close plus the delimiter of the last entry only
        assert twice.count("\n---\n") == 2

    def test_trailing_delimiter_is_ignored(self):
        entry_md = encode_entry(_entry())
        document = append_entry("# Title\n", entry_md)
        without_delimiter = document[:-len("\n---\n")]
        assert append_entry(document, entry_md) == append_entry(without_delimiter, entry_md)


class TestDecodeEntries:

    def test_round_trip_all_fields(self):
        entry = _entry(
            role=TurnRole.MODEL,
            message="Answer with | pipes\nand lines",
            model="gemini-2.5-pro",
            metadata={
                META_TEMPERATURE: 0.7,
                META_TOP_P: 1.0,
                META_CUSTOM_PROMPT: "[[Prompt]]",
                META_TOOL_NAME: "read_file",
                META_TOOL_STATUS: "success",
            },
        )
        decoded = decode_entries(encode_entry(entry))
        assert len(decoded) == 1
        result = decoded[0]
        assert result.role == TurnRole.MODEL
        assert result.message == entry.message
        assert result.model == "gemini-2.5-pro"
        assert result.metadata == entry.metadata
        assert result.created_at == FIXED_TIME

    def test_missing_rows_leave_fields_unset(self):
        body = "## User\n\n> [!user]+\n> just text\n\n---\n"
        decoded = decode_entries(body)
        assert len(decoded) == 1
        assert decoded[0].model is None
        assert decoded[0].metadata == {}

    def test_legacy_headers_and_assistant(self):
        body = "### Assistant\n\n> [!assistant]+\n> old reply\n\n---\n"
        decoded = decode_entries(body)
        assert decoded[0].role == TurnRole.MODEL
        assert decoded[0].message == "old reply"

    def test_empty_sections_are_dropped(self):
        body = (
            "## User\n\n> [!user]+\n>\n\n---\n"
            "## Model\n\n> [!assistant]+\n> kept\n\n---\n"
            "## User\n\n> [!metadata]- Message Info\n> | Property | Value |\n\n---\n"
        )
        decoded = decode_entries(body)
        assert [e.message for e in decoded] == ["kept"]

    def test_unknown_rows_ignored(self):
        body = (
            "## User\n\n> [!metadata]- Message Info\n> | Property | Value |\n> | -------- | ----- |\n"
            "> | Mood | cheerful |\n> | Temperature | not-a-number |\n\n> [!user]+\n> hi\n\n---\n"
        )
        decoded = decode_entries(body)
        assert decoded[0].metadata == {}


class TestRoundTripProperties:

    @hypothesis_settings(max_examples=75, deadline=None)
    @given(
        role=st.sampled_from(list(TurnRole)),
        message=st.text(
            alphabet=st.characters(blacklist_categories=("Cs", "Cc", "Zl", "Zp")),
            min_size=1,
        ).filter(lambda s: s.strip() and s == s.strip()),
        temperature=st.one_of(st.none(), st.just(0.0), st.floats(min_value=0, max_value=2, allow_nan=False)),
        top_p=st.one_of(st.none(), st.just(0.0), st.floats(min_value=0, max_value=1, allow_nan=False)),
    )
    def test_entry_round_trip(self, role, message, temperature, top_p):
        metadata = {}
        if temperature is not None:
            metadata[META_TEMPERATURE] = temperature
        if top_p is not None:
            metadata[META_TOP_P] = top_p
        entry = _entry(role=role, message=message, metadata=metadata)

        decoded = decode_entries(encode_entry(entry))
        assert len(decoded) == 1
        assert decoded[0].role == role
        assert decoded[0].message == message
        assert decoded[0].metadata == metadata


class TestSessionFrontmatter:

    def test_mapping(self):
        session = _session(
            context=AgentContext(
                context_files=[DocumentRef("notes/a.md")],
                enabled_tools=[ToolCategory.READ_ONLY, ToolCategory.VAULT_OPERATIONS],
                require_confirmation=[],
            ),
            model_config=SessionModelConfig(model="gemini-2.5-flash", temperature=0),
        )
        data = session_to_frontmatter(session, ["[[a]]"])
        assert data["session_id"] == "session_1_abc"
        assert data["type"] == "agent-session"
        assert data["context_files"] == ["[[a]]"]
        assert data["enabled_tools"] == ["read_only", "vault_ops"]
        assert data["require_confirmation"] == []
        assert data["temperature"] == 0
        assert "top_p" not in data
        assert "max_context_chars" not in data
        assert "source_note" not in data

    def test_round_trip_through_yaml(self):
        session = _session(
            model_config=SessionModelConfig(temperature=0.0, top_p=0.0, prompt_template="[[My Prompt]]"),
            metadata={"autoLabeled": True},
        )
        rendered = render_frontmatter(session_to_frontmatter(session, []))
        frontmatter, _ = split_frontmatter(rendered)
        rebuilt = session_from_frontmatter(
            frontmatter,
            session.history_path,
            session_type=SessionType.AGENT_SESSION,
            context_files=[],
            source_note_path=None,
            fallback_title="unused",
        )
        assert rebuilt.id == session.id
        assert rebuilt.title == session.title
        assert rebuilt.context.enabled_tools == session.context.enabled_tools
        assert rebuilt.context.require_confirmation == session.context.require_confirmation
        assert rebuilt.model_config.temperature == 0.0
        assert rebuilt.model_config.top_p == 0.0
        assert rebuilt.model_config.prompt_template == "[[My Prompt]]"
        assert rebuilt.created == session.created
        assert rebuilt.last_active == session.last_active
        assert rebuilt.metadata == {"autoLabeled": True}

    def test_absent_keys_take_kind_defaults(self):
        rebuilt = session_from_frontmatter(
            {"title": "Bare"},
            "gemini-scribe/History/Bare.md",
            session_type=SessionType.NOTE_CHAT,
            context_files=[],
            source_note_path="Bare.md",
            fallback_title="unused",
            id_factory=lambda: "session_generated",
        )
        assert rebuilt.id == "session_generated"
        assert rebuilt.context.enabled_tools == [ToolCategory.READ_ONLY]
        assert rebuilt.context.require_confirmation == []
        assert rebuilt.context.max_context_chars == 50000
        assert rebuilt.model_config is None

    def test_present_but_empty_lists_stay_empty(self):
        rebuilt = session_from_frontmatter(
            {"enabled_tools": [], "require_confirmation": []},
            "x.md",
            session_type=SessionType.AGENT_SESSION,
            context_files=[],
            source_note_path=None,
            fallback_title="x",
        )
        assert rebuilt.context.enabled_tools == []
        assert rebuilt.context.require_confirmation == []

    def test_unknown_enum_values_are_skipped(self):
        rebuilt = session_from_frontmatter(
            {"enabled_tools": ["read_only", "teleport"]},
            "x.md",
            session_type=SessionType.AGENT_SESSION,
            context_files=[],
            source_note_path=None,
            fallback_title="x",
        )
        assert rebuilt.context.enabled_tools == [ToolCategory.READ_ONLY]


class TestWholeDocument:

    def test_render_and_decode(self):
        session = _session()
        entries = [_entry(message="question"), _entry(role=TurnRole.MODEL, message="answer")]
        text = render_document(session, entries, context_links=[])
        assert "\n# Research\n" in text

        decoded = decode_document(text)
        assert decoded.frontmatter["session_id"] == session.id
        assert [e.message for e in decoded.entries] == ["question", "answer"]

    @pytest.mark.parametrize("broken", [
        "---\ntitle: [oops\n---\n## User\n\n> [!user]+\n> still read\n\n---\n",
    ])
    def test_broken_frontmatter_still_decodes_turns(self, broken):
        decoded = decode_document(broken)
        assert decoded.frontmatter == {}
        assert [e.message for e in decoded.entries] == ["still read"]
