"""
Tests for SessionHistory: appending turns, metadata flushes and failures.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from vault_agent.errors import MalformedDocumentError, SessionPersistenceError
from vault_agent.History.conversation import ConversationEntry, TurnRole
from vault_agent.Sessions.session_history import flattened_history_path


NOW = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestFlattenedHistoryPath:

    def test_nested_note(self, settings):
        assert flattened_history_path("notes/ideas.md", settings) == "gemini-scribe/History/notes_ideas.md"

    def test_root_note(self, settings):
        assert flattened_history_path("ideas.md", settings) == "gemini-scribe/History/root_ideas.md"


class TestAddEntry:

    @pytest.mark.asyncio
    async def test_first_model_turn_records_prompt(self, manager, history, store):
        session = await manager.create_agent_session("Research")
        reply = ConversationEntry(
            role=TurnRole.MODEL, message="answer", user_message="question", created_at=NOW)

        await history.add_entry_to_session(session, reply)

        text = await store.read(session.history_path)
        assert "\n# Research\n" in text
        entries = await history.get_history_for_session(session)
        assert [(e.role, e.message) for e in entries] == [
            (TurnRole.USER, "question"),
            (TurnRole.MODEL, "answer"),
        ]
        assert entries[0].created_at == NOW - timedelta(seconds=1)
        assert history.has_written(session.history_path)

    @pytest.mark.asyncio
    async def test_appends_keep_order(self, manager, history):
        session = await manager.create_agent_session("Chat")
        for index in range(3):
            await history.add_entry_to_session(
                session, ConversationEntry(role=TurnRole.USER, message=f"turn {index}"))

        entries = await history.get_history_for_session(session)
        assert [e.message for e in entries] == ["turn 0", "turn 1", "turn 2"]

    @pytest.mark.asyncio
    async def test_concurrent_appends_are_not_lost(self, manager, history):
        session = await manager.create_agent_session("Busy")
        await asyncio.gather(*(
            history.add_entry_to_session(session, ConversationEntry(role=TurnRole.USER, message=f"m{i}"))
            for i in range(5)
        ))
        entries = await history.get_history_for_session(session)
        assert sorted(e.message for e in entries) == [f"m{i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_disabled_history_writes_nothing(self, manager, history, store, settings):
        settings.chat_history = False
        session = await manager.create_agent_session("Quiet")
        await history.add_entry_to_session(session, ConversationEntry(role=TurnRole.USER, message="hi"))
        assert not await store.exists(session.history_path)
        assert await history.get_history_for_session(session) == []

    @pytest.mark.asyncio
    async def test_write_failure_is_reported(self, manager, history, store, notifications, monkeypatch):
        session = await manager.create_agent_session("Broken")

        async def _refuse(path, content):
            raise PermissionError("read-only vault")

        monkeypatch.setattr(store, "create", _refuse)
        with pytest.raises(SessionPersistenceError) as excinfo:
            await history.add_entry_to_session(session, ConversationEntry(role=TurnRole.USER, message="hi"))
        assert excinfo.value.path == session.history_path
        assert ("Failed to save chat history", "error") in notifications


class TestSessionMetadata:

    @pytest.mark.asyncio
    async def test_creates_header_only_document(self, manager, history, store):
        session = await manager.create_agent_session("Empty")
        await history.update_session_metadata(session)

        frontmatter = await store.read_frontmatter(session.history_path)
        assert frontmatter["title"] == "Empty"
        assert await history.get_history_for_session(session) == []

    @pytest.mark.asyncio
    async def test_foreign_keys_survive(self, manager, history, store):
        session = await manager.create_agent_session("Tagged")
        await history.update_session_metadata(session)
        await store.process_frontmatter(session.history_path, lambda fm: fm.update({"tags": ["ai"]}))

        session.title = "Tagged"
        await history.update_session_metadata(session)
        frontmatter = await store.read_frontmatter(session.history_path)
        assert frontmatter["tags"] == ["ai"]
        assert frontmatter["session_id"] == session.id

    @pytest.mark.asyncio
    async def test_turns_survive_metadata_flush(self, manager, history):
        session = await manager.create_agent_session("Kept")
        await history.add_entry_to_session(session, ConversationEntry(role=TurnRole.USER, message="keep me"))
        session.metadata = {"autoLabeled": True}
        await history.update_session_metadata(session)
        assert [e.message for e in await history.get_history_for_session(session)] == ["keep me"]

    @pytest.mark.asyncio
    async def test_malformed_frontmatter(self, manager, history, write_note):
        session = await manager.create_agent_session("Bad")
        write_note(session.history_path, "---\ntitle: [broken\n---\n# Bad\n")
        with pytest.raises(MalformedDocumentError):
            await history.update_session_metadata(session)


class TestDeleteAndList:

    @pytest.mark.asyncio
    async def test_delete_missing_is_quiet(self, manager, history):
        session = await manager.create_agent_session("Never written")
        await history.delete_session_history(session)

    @pytest.mark.asyncio
    async def test_agent_sessions_listing_ignores_other_files(self, manager, history, write_note):
        session = await manager.create_agent_session("Listed")
        await history.update_session_metadata(session)
        write_note("gemini-scribe/Agent-Sessions/notes.txt", "not a session")

        documents = await history.get_all_agent_sessions()
        assert [d.path for d in documents] == [session.history_path]
