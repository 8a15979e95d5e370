"""
Tests for the filesystem-backed document store and frontmatter helpers.
"""

from datetime import datetime
from pathlib import Path

import pytest

from vault_agent.Store.document_store import Document, Folder
from vault_agent.Store.filesystem_store import strip_link_token
from vault_agent.Store.frontmatter import (
    FrontmatterError, render_frontmatter, replace_frontmatter, split_frontmatter,
)


class TestFrontmatter:

    def test_document_without_block(self):
        assert split_frontmatter("# Title\n") == ({}, "# Title\n")

    def test_render_then_split(self):
        data = {"title": "Agent: \"quoted\"", "tools": ["read_only"], "temperature": 0, "missing": None}
        rendered = render_frontmatter(data)
        parsed, body = split_frontmatter(rendered + "body\n")
        assert parsed == {"title": "Agent: \"quoted\"", "tools": ["read_only"], "temperature": 0}
        assert body == "body\n"

    def test_unsafe_unicode_is_escaped(self):
        rendered = render_frontmatter({"title": "line\u2028break"})
        assert "\u2028" not in rendered
        parsed, _ = split_frontmatter(rendered)
        assert parsed["title"] == "line\u2028break"

    def test_unquoted_dates_become_strings(self):
        parsed, _ = split_frontmatter("---\ncreated: 2024-01-02T03:04:05Z\n---\n")
        assert isinstance(parsed["created"], str)
        assert parsed["created"].startswith("2024-01-02")

    def test_broken_block_lenient(self):
        parsed, body = split_frontmatter("---\nkey: [unclosed\n---\nbody")
        assert parsed == {}
        assert body == "body"

    def test_broken_block_strict(self):
        with pytest.raises(FrontmatterError):
            split_frontmatter("---\nkey: [unclosed\n---\nbody", strict=True)

    def test_non_mapping_strict(self):
        with pytest.raises(FrontmatterError):
            split_frontmatter("---\n- a\n- b\n---\n", strict=True)

    def test_non_json_values_are_coerced(self):
        rendered = render_frontmatter({
            "metadata": {"reviewed": datetime(2025, 1, 2, 3, 4, 5), "tags": {"x"}, "path": Path("a/b.md")},
        })
        parsed, _ = split_frontmatter(rendered)
        assert parsed["metadata"] == {"reviewed": "2025-01-02T03:04:05", "tags": ["x"], "path": "a/b.md"}

    def test_replace_keeps_body(self):
        text = "---\na: 1\n---\n# Heading\n\ntext\n"
        replaced = replace_frontmatter(text, {"a": 2, "b": "x"})
        parsed, body = split_frontmatter(replaced)
        assert parsed == {"a": 2, "b": "x"}
        assert body == "# Heading\n\ntext\n"


class TestStripLinkToken:

    @pytest.mark.parametrize("raw,expected", [
        ("[[Note]]", "Note"),
        ("[[folder/Note|alias]]", "folder/Note"),
        ("[[Note#Heading]]", "Note"),
        ("plain/path.md", "plain/path.md"),
    ])
    def test_strip(self, raw, expected):
        assert strip_link_token(raw) == expected


class TestFilesystemDocumentStore:

    @pytest.mark.asyncio
    async def test_create_read_modify(self, store):
        document = await store.create("notes/a.md", "one")
        assert isinstance(document, Document)
        assert document.path == "notes/a.md"
        assert await store.read("notes/a.md") == "one"

        await store.modify("notes/a.md", "two")
        assert await store.read("notes/a.md") == "two"

    @pytest.mark.asyncio
    async def test_create_refuses_existing(self, store):
        await store.create("a.md", "x")
        with pytest.raises(FileExistsError):
            await store.create("a.md", "y")

    @pytest.mark.asyncio
    async def test_modify_missing(self, store):
        with pytest.raises(FileNotFoundError):
            await store.modify("missing.md", "x")

    @pytest.mark.asyncio
    async def test_crlf_is_preserved(self, store):
        await store.create("crlf.md", "a\r\nb")
        assert await store.read("crlf.md") == "a\r\nb"

    @pytest.mark.asyncio
    async def test_entries_are_tagged(self, store, write_note):
        write_note("folder/note.md", "x")
        assert isinstance(await store.get_entry("folder"), Folder)
        assert isinstance(await store.get_entry("folder/note.md"), Document)
        assert await store.get_entry("nothing") is None
        assert await store.get_document("folder") is None

    @pytest.mark.asyncio
    async def test_rename(self, store, write_note):
        write_note("a.md", "x")
        await store.rename("a.md", "deep/er/b.md")
        assert not await store.exists("a.md")
        assert await store.read("deep/er/b.md") == "x"

    @pytest.mark.asyncio
    async def test_rename_conflicts(self, store, write_note):
        write_note("a.md", "x")
        write_note("b.md", "y")
        with pytest.raises(FileExistsError):
            await store.rename("a.md", "b.md")
        with pytest.raises(FileNotFoundError):
            await store.rename("missing.md", "c.md")

    @pytest.mark.asyncio
    async def test_delete_file_and_folder(self, store, write_note):
        write_note("dir/a.md")
        write_note("b.md")
        await store.delete("dir")
        await store.delete("b.md")
        assert not await store.exists("dir")
        assert not await store.exists("b.md")

    @pytest.mark.asyncio
    async def test_delete_root_is_refused(self, store):
        with pytest.raises(PermissionError):
            await store.delete("")

    @pytest.mark.asyncio
    async def test_paths_outside_the_vault(self, store):
        assert not await store.exists("../escape.md")
        assert await store.get_entry("../escape.md") is None
        with pytest.raises(ValueError):
            await store.read("../escape.md")

    @pytest.mark.asyncio
    async def test_list_folder(self, store, write_note):
        write_note("dir/a.md")
        write_note("dir/sub/b.md")
        listing = await store.list_folder("dir")
        assert listing.files == ["dir/a.md"]
        assert listing.folders == ["dir/sub"]

    @pytest.mark.asyncio
    async def test_list_markdown_skips_hidden(self, store, write_note):
        write_note("a.md")
        write_note("b.txt")
        write_note(".obsidian/config.md")
        write_note("dir/c.md")
        paths = [d.path for d in await store.list_markdown_files()]
        assert sorted(paths) == ["a.md", "dir/c.md"]

    @pytest.mark.asyncio
    async def test_ensure_folder_reports_failure(self, store, write_note):
        write_note("occupied", "a file, not a folder")
        assert await store.ensure_folder("fresh/folder") is True
        assert await store.ensure_folder("occupied") is False

    @pytest.mark.asyncio
    async def test_link_text_is_shortest_unique(self, store, write_note):
        write_note("Dogs/Foo Foo.md")
        write_note("a/Same.md")
        write_note("b/Same.md")
        assert await store.make_link("Dogs/Foo Foo.md") == "[[Foo Foo]]"
        assert await store.make_link("a/Same.md") == "[[a/Same]]"

    @pytest.mark.asyncio
    async def test_resolve_link(self, store, write_note):
        write_note("Dogs/Foo Foo.md")
        write_note("projects/x/readme.md")
        write_note("projects/x/plan.md")

        resolved = await store.resolve_link("[[Foo Foo]]")
        assert resolved.path == "Dogs/Foo Foo.md"
        assert (await store.resolve_link("Dogs/Foo Foo.md")).path == "Dogs/Foo Foo.md"
        # Relative to the referring note's folder
        relative = await store.resolve_link("plan", "projects/x/readme.md")
        assert relative.path == "projects/x/plan.md"
        assert await store.resolve_link("[[Nope]]") is None

    @pytest.mark.asyncio
    async def test_process_frontmatter(self, store, write_note):
        write_note("doc.md", "---\na: 1\n---\nbody\n")

        def _mutate(frontmatter):
            frontmatter["a"] = 2
            frontmatter["b"] = [1, 2]

        await store.process_frontmatter("doc.md", _mutate)
        assert await store.read_frontmatter("doc.md") == {"a": 2, "b": [1, 2]}
        assert (await store.read("doc.md")).endswith("---\nbody\n")

    @pytest.mark.asyncio
    async def test_process_frontmatter_broken_block(self, store, write_note):
        write_note("doc.md", "---\na: [broken\n---\nbody\n")
        with pytest.raises(FrontmatterError):
            await store.process_frontmatter("doc.md", lambda fm: None)
