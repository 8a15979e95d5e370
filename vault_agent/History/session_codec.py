# session_codec.py
# Description: Plain-text session document format: frontmatter plus one callout section per turn
#
"""
Session Codec
-------------

A session document is a frontmatter block (session fields, JSON-encoded
values) followed by a title heading and one section per conversation turn:

    ## User

    > [!metadata]- Message Info
    > | Property | Value |
    > | -------- | ----- |
    > | Time | 2025-01-01T00:00:00+00:00 |
    > | File Version | unknown |

    > [!user]+
    > message line

    ---

Table rows are only written for values that are defined. Decoding runs an
explicit line state machine so malformed sections are dropped instead of
bleeding into their neighbours.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from .conversation import (
    ConversationEntry, TurnRole, META_CUSTOM_PROMPT, META_FILE_VERSION, META_TEMPERATURE,
    META_TOOL_NAME, META_TOOL_STATUS, META_TOP_P,
)
from ..Sessions.session_models import (
    AgentContext, ChatSession, DestructiveAction, DocumentRef, SessionModelConfig, SessionType,
    ToolCategory, default_context, parse_timestamp, utc_now,
)
from ..Store.frontmatter import render_frontmatter, split_frontmatter
#
#######################################################################################################################
#
# Constants:

ENTRY_DELIMITER = "---"
UNKNOWN_FILE_VERSION = "unknown"

_HEADER_FOR_ROLE = {
    TurnRole.USER: "User",
    TurnRole.MODEL: "Model",
    TurnRole.SYSTEM: "System",
}
_CALLOUT_FOR_ROLE = {
    TurnRole.USER: "user",
    TurnRole.MODEL: "assistant",
    TurnRole.SYSTEM: "system",
}
_ROLE_FOR_HEADER = {
    "user": TurnRole.USER,
    "model": TurnRole.MODEL,
    "assistant": TurnRole.MODEL,
    "system": TurnRole.SYSTEM,
}

_HEADER_LINE = re.compile(r"^#{2,3} (User|Model|Assistant|System)\s*$", re.IGNORECASE)
_CALLOUT_LINE = re.compile(r"^>\s*\[!(user|assistant|system)\][+-]?\s*$", re.IGNORECASE)
_METADATA_CALLOUT_LINE = re.compile(r"^>\s*\[!metadata\]")
_TABLE_ROW_LINE = re.compile(r"^>\s*\|(.*)\|\s*$")
_DELIMITER_LINE = re.compile(r"^---\s*$")
_TRAILING_DELIMITER = re.compile(r"\n---\s*$")

# Table label -> metadata key. "Model" and "Time" are handled separately.
_NUMERIC_ROWS = {
    "temperature": META_TEMPERATURE,
    "top p": META_TOP_P,
}
_TEXT_ROWS = {
    "custom prompt": META_CUSTOM_PROMPT,
    "tool": META_TOOL_NAME,
    "tool status": META_TOOL_STATUS,
}


#
# Table cell escaping
#

def escape_cell(value: Any) -> str:
    """Escape a table cell so pipes and newlines survive a round trip."""
    text = str(value)
    return text.replace("\\", "\\\\").replace("|", "\\|").replace("\n", "\\n").replace("\r", "\\r")


def _split_cells(row: str) -> List[str]:
    """Split the inside of a ``| a | b |`` row on unescaped pipes, unescaping each cell."""
    cells = []
    current = []
    index = 0
    while index < len(row):
        char = row[index]
        if char == "\\" and index + 1 < len(row):
            following = row[index + 1]
            current.append({"n": "\n", "r": "\r"}.get(following, following))
            index += 2
            continue
        if char == "|":
            cells.append("".join(current))
            current = []
        else:
            current.append(char)
        index += 1
    cells.append("".join(current))
    return cells


def _format_number(value: float) -> str:
    return repr(value) if isinstance(value, float) else str(value)


def _parse_number(raw: str) -> Optional[float]:
    try:
        number = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


#
# Entry encoding
#

def encode_entry(entry: ConversationEntry, file_version: Optional[str] = None) -> str:
    """
    Render one turn as a markdown section ending in the entry delimiter.

    A zero temperature or top-p is written like any other value.
    """
    metadata = entry.metadata or {}
    version = file_version or metadata.get(META_FILE_VERSION) or UNKNOWN_FILE_VERSION

    rows: List[Tuple[str, str]] = [
        ("Time", entry.created_at.isoformat()),
        ("File Version", str(version)),
    ]
    if entry.model is not None:
        rows.append(("Model", entry.model))
    if metadata.get(META_TEMPERATURE) is not None:
        rows.append(("Temperature", _format_number(metadata[META_TEMPERATURE])))
    if metadata.get(META_TOP_P) is not None:
        rows.append(("Top P", _format_number(metadata[META_TOP_P])))
    if metadata.get(META_CUSTOM_PROMPT) is not None:
        rows.append(("Custom Prompt", metadata[META_CUSTOM_PROMPT]))
    if metadata.get(META_TOOL_NAME) is not None:
        rows.append(("Tool", metadata[META_TOOL_NAME]))
    if metadata.get(META_TOOL_STATUS) is not None:
        rows.append(("Tool Status", metadata[META_TOOL_STATUS]))

    lines = [
        f"## {_HEADER_FOR_ROLE[entry.role]}",
        "",
        "> [!metadata]- Message Info",
        "> | Property | Value |",
        "> | -------- | ----- |",
    ]
    lines.extend(f"> | {label} | {escape_cell(value)} |" for label, value in rows)
    lines.append("")
    lines.append(f"> [!{_CALLOUT_FOR_ROLE[entry.role]}]+")
    for message_line in entry.message.split("\n"):
        lines.append(f"> {message_line}" if message_line else ">")
    lines.append("")
    lines.append(ENTRY_DELIMITER)
    return "\n".join(lines) + "\n"


def append_entry(existing_text: str, entry_markdown: str) -> str:
    """
    Append a rendered entry to a document.

    The document's trailing delimiter is removed first and the new entry
    brings its own, so repeated appends never stack delimiters.
    """
    trimmed = _TRAILING_DELIMITER.sub("", existing_text).rstrip()
    return f"{trimmed}\n\n{entry_markdown}"


#
# Entry decoding
#

class _ParseState(Enum):
    PREAMBLE = "preamble"  # before the first section header
    HEADER = "header"      # saw "## Role"
    METADATA = "metadata"  # inside the metadata callout
    BETWEEN = "between"    # metadata done, waiting for the message callout
    BODY = "body"          # inside the quoted message


@dataclass
class _SectionBuilder:
    role: TurnRole
    table: Dict[str, str] = field(default_factory=dict)
    body: List[str] = field(default_factory=list)
    has_body: bool = False

    def build(self) -> Optional[ConversationEntry]:
        message = "\n".join(self.body)
        if not self.has_body or not message.strip():
            return None

        metadata: Dict[str, Any] = {}
        for label, key in _NUMERIC_ROWS.items():
            if label in self.table:
                number = _parse_number(self.table[label])
                if number is not None:
                    metadata[key] = number
        for label, key in _TEXT_ROWS.items():
            if label in self.table:
                metadata[key] = self.table[label]
        file_version = self.table.get("file version")
        if file_version and file_version != UNKNOWN_FILE_VERSION:
            metadata[META_FILE_VERSION] = file_version

        created_at = parse_timestamp(self.table.get("time")) or utc_now()
        model = self.table.get("model")

        return ConversationEntry(
            role=self.role,
            message=message,
            model=model if model else None,
            metadata=metadata,
            created_at=created_at,
        )


def _parse_table_row(line: str) -> Optional[Tuple[str, str]]:
    match = _TABLE_ROW_LINE.match(line)
    if not match:
        return None
    cells = _split_cells(match.group(1))
    if len(cells) < 2:
        return None
    label = cells[0].strip()
    value = cells[1].strip()
    if not label or label.lower() == "property" or set(label) <= {"-", ":"}:
        return None
    return label.lower(), value


def decode_entries(body: str) -> List[ConversationEntry]:
    """
    Decode the turn sections of a document body (frontmatter already removed).

    Sections without a non-blank message are dropped; unknown table rows are
    ignored; missing rows leave the matching field unset.
    """
    entries: List[ConversationEntry] = []
    state = _ParseState.PREAMBLE
    section: Optional[_SectionBuilder] = None

    def finish() -> None:
        nonlocal section
        if section is not None:
            entry = section.build()
            if entry is not None:
                entries.append(entry)
            else:
                logger.debug(f"Dropping {section.role.value} section with an empty message")
        section = None

    for line in body.split("\n"):
        header = _HEADER_LINE.match(line.strip())
        if header:
            finish()
            section = _SectionBuilder(role=_ROLE_FOR_HEADER[header.group(1).lower()])
            state = _ParseState.HEADER
            continue

        if state == _ParseState.PREAMBLE:
            continue

        if state == _ParseState.BODY:
            if line == ">" or line.startswith("> "):
                section.body.append(line[2:])
                continue
            finish()
            state = _ParseState.PREAMBLE
            continue

        # HEADER, METADATA or BETWEEN
        if _CALLOUT_LINE.match(line):
            section.has_body = True
            state = _ParseState.BODY
        elif _METADATA_CALLOUT_LINE.match(line):
            state = _ParseState.METADATA
        elif state == _ParseState.METADATA and line.startswith(">"):
            row = _parse_table_row(line)
            if row:
                section.table[row[0]] = row[1]
        elif _DELIMITER_LINE.match(line):
            finish()
            state = _ParseState.PREAMBLE
        elif not line.strip():
            if state == _ParseState.METADATA:
                state = _ParseState.BETWEEN

    finish()
    return entries


#
# Session <-> frontmatter
#

def _enum_list(values: Any, enum_type, field_name: str) -> List:
    result = []
    if not isinstance(values, list):
        return result
    for value in values:
        try:
            member = enum_type(value)
        except ValueError:
            logger.warning(f"Ignoring unknown {field_name} value: {value!r}")
            continue
        if member not in result:
            result.append(member)
    return result


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-integer context budget: {value!r}")
        return None


def _optional_float(value: Any, field_name: str) -> Optional[float]:
    if value is None or isinstance(value, bool) or value == "":
        return None
    number = _parse_number(value)
    if number is None:
        logger.warning(f"Ignoring non-numeric {field_name}: {value!r}")
    return number


def session_to_frontmatter(
    session: ChatSession,
    context_links: Optional[List[str]] = None,
    source_link: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Map a session onto frontmatter keys.

    Document references are written as ``[[link]]`` tokens. Callers that know
    the store pass the links it computed; otherwise basenames are used.
    Optional fields that are unset are left out entirely.
    """
    if context_links is None:
        context_links = [f"[[{ref.basename}]]" for ref in session.context.context_files]

    data: Dict[str, Any] = {
        "session_id": session.id,
        "type": session.type.value,
        "title": session.title,
        "context_files": list(context_links),
        "enabled_tools": [tool.value for tool in session.context.enabled_tools],
        "require_confirmation": [action.value for action in session.context.require_confirmation],
    }
    if session.context.max_context_chars is not None:
        data["max_context_chars"] = session.context.max_context_chars
    if session.context.max_chars_per_file is not None:
        data["max_chars_per_file"] = session.context.max_chars_per_file
    data["created"] = session.created.isoformat()
    data["last_active"] = session.last_active.isoformat()

    if session.source_note_path:
        data["source_note"] = source_link or f"[[{DocumentRef(session.source_note_path).basename}]]"

    config = session.model_config
    if config is not None:
        if config.model:
            data["model"] = config.model
        if config.temperature is not None:
            data["temperature"] = config.temperature
        if config.top_p is not None:
            data["top_p"] = config.top_p
        if config.prompt_template:
            data["prompt_template"] = config.prompt_template

    if session.metadata:
        data["metadata"] = session.metadata
    return data


# Keys owned by the session mapping; a metadata flush deletes any of these it no longer writes
SESSION_FRONTMATTER_KEYS = (
    "session_id", "type", "title", "context_files", "enabled_tools", "require_confirmation",
    "max_context_chars", "max_chars_per_file", "created", "last_active", "source_note",
    "source_note_path", "model", "temperature", "top_p", "prompt_template", "metadata",
)


def apply_session_frontmatter(frontmatter: Dict[str, Any], session_data: Dict[str, Any]) -> None:
    """Write ``session_data`` into an existing frontmatter mapping in place, dropping stale session keys."""
    for key in SESSION_FRONTMATTER_KEYS:
        if key not in session_data:
            frontmatter.pop(key, None)
    frontmatter.update(session_data)


def frontmatter_context_links(frontmatter: Dict[str, Any]) -> List[str]:
    """Raw context-file references: ``[[link]]`` tokens or legacy plain paths."""
    values = frontmatter.get("context_files")
    if not isinstance(values, list):
        return []
    return [str(value) for value in values if isinstance(value, str) and value.strip()]


def frontmatter_source_reference(frontmatter: Dict[str, Any]) -> Optional[str]:
    """The source-document reference, from the current key or its legacy spellings."""
    for key in ("source_note", "source_note_path", "source_file"):
        value = frontmatter.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def session_type_from_frontmatter(frontmatter: Dict[str, Any], fallback: SessionType) -> SessionType:
    try:
        return SessionType(frontmatter.get("type"))
    except ValueError:
        return fallback


def session_from_frontmatter(
    frontmatter: Dict[str, Any],
    history_path: str,
    *,
    session_type: SessionType,
    context_files: List[DocumentRef],
    source_note_path: Optional[str],
    fallback_title: str,
    fallback_created: Optional[datetime] = None,
    fallback_last_active: Optional[datetime] = None,
    id_factory: Optional[Callable[[], str]] = None,
) -> ChatSession:
    """
    Rebuild a session from decoded frontmatter.

    Link resolution needs the store, so resolved context files and source
    path are passed in. Keys that are absent fall back to the defaults of the
    session kind.
    """
    defaults = default_context(session_type)

    if "enabled_tools" in frontmatter:
        enabled_tools = _enum_list(frontmatter.get("enabled_tools"), ToolCategory, "enabled_tools")
    else:
        enabled_tools = defaults.enabled_tools
    if "require_confirmation" in frontmatter:
        require_confirmation = _enum_list(
            frontmatter.get("require_confirmation"), DestructiveAction, "require_confirmation")
    else:
        require_confirmation = defaults.require_confirmation

    max_context_chars = _optional_int(frontmatter.get("max_context_chars"))
    max_chars_per_file = _optional_int(frontmatter.get("max_chars_per_file"))

    context = AgentContext(
        enabled_tools=enabled_tools,
        require_confirmation=require_confirmation,
        max_context_chars=max_context_chars if max_context_chars is not None else defaults.max_context_chars,
        max_chars_per_file=max_chars_per_file if max_chars_per_file is not None else defaults.max_chars_per_file,
    )
    context.add_files(context_files)

    config = SessionModelConfig(
        model=str(frontmatter["model"]) if frontmatter.get("model") else None,
        temperature=_optional_float(frontmatter.get("temperature"), "temperature"),
        top_p=_optional_float(frontmatter.get("top_p"), "top_p"),
        prompt_template=str(frontmatter["prompt_template"]) if frontmatter.get("prompt_template") else None,
    )

    session_id = frontmatter.get("session_id")
    if not session_id:
        session_id = id_factory() if id_factory else f"session_{history_path}"

    title = frontmatter.get("title")
    metadata = frontmatter.get("metadata")

    return ChatSession(
        id=str(session_id),
        type=session_type,
        title=str(title) if title else fallback_title,
        context=context,
        history_path=history_path,
        created=parse_timestamp(frontmatter.get("created")) or fallback_created or utc_now(),
        last_active=parse_timestamp(frontmatter.get("last_active")) or fallback_last_active or utc_now(),
        model_config=None if config.is_empty() else config,
        source_note_path=source_note_path,
        metadata=metadata if isinstance(metadata, dict) and metadata else None,
    )


#
# Whole documents
#

@dataclass
class DecodedSessionDocument:
    """Frontmatter and turns of a session document."""
    frontmatter: Dict[str, Any]
    entries: List[ConversationEntry]


def render_document_header(
    session: ChatSession,
    context_links: Optional[List[str]] = None,
    source_link: Optional[str] = None,
) -> str:
    """Frontmatter and title heading of a new, empty session document."""
    frontmatter = render_frontmatter(session_to_frontmatter(session, context_links, source_link))
    return f"{frontmatter}\n# {session.title}\n"


def render_document(
    session: ChatSession,
    entries: List[ConversationEntry],
    context_links: Optional[List[str]] = None,
    source_link: Optional[str] = None,
) -> str:
    """Render a complete session document."""
    text = render_document_header(session, context_links, source_link)
    for entry in entries:
        text = append_entry(text, encode_entry(entry))
    return text


def decode_document(text: str) -> DecodedSessionDocument:
    """Decode a session document. A broken frontmatter block decodes as empty."""
    frontmatter, body = split_frontmatter(text)
    return DecodedSessionDocument(frontmatter=frontmatter, entries=decode_entries(body))

#
# End of session_codec.py
#######################################################################################################################
