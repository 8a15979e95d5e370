# frontmatter.py
# Description: Read and write the structured metadata block at the top of a markdown document
#
# Imports
import json
import re
from datetime import date, datetime
from typing import Any, Dict, Tuple
#
# Third-Party Imports
import yaml
from loguru import logger
#
#######################################################################################################################
#
# Functions:

FRONTMATTER_DELIMITER = "---"

# Characters YAML will not accept raw (or treats as line breaks) inside a quoted scalar
_YAML_UNSAFE_CHARS = re.compile("[\x7f-\x9f\u2028\u2029\ufeff]")


class FrontmatterError(ValueError):
    """The metadata block exists but could not be parsed as a mapping."""


def _normalize_value(value: Any) -> Any:
    # Unquoted legacy timestamps come back from YAML as datetime objects
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, list):
        return [_normalize_value(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _normalize_value(item) for key, item in value.items()}
    return value


def _find_block(text: str) -> Tuple[str, str, bool]:
    """
    Locate the frontmatter block.

    Returns ``(raw_block, body, found)``. The body is everything after the
    closing delimiter line, untouched.
    """
    if not text.startswith(FRONTMATTER_DELIMITER):
        return "", text, False

    lines = text.split("\n")
    if lines[0].strip() != FRONTMATTER_DELIMITER:
        return "", text, False

    for index in range(1, len(lines)):
        if lines[index].rstrip() == FRONTMATTER_DELIMITER:
            raw_block = "\n".join(lines[1:index])
            body = "\n".join(lines[index + 1:])
            return raw_block, body, True

    return "", text, False


def split_frontmatter(text: str, strict: bool = False) -> Tuple[Dict[str, Any], str]:
    """
    Split a document into its frontmatter mapping and body.

    Documents without a block yield ``({}, text)``. An unparsable block yields
    ``({}, body)`` with a warning, or raises ``FrontmatterError`` when
    ``strict`` is set.
    """
    raw_block, body, found = _find_block(text)
    if not found:
        return {}, text

    try:
        parsed = yaml.safe_load(raw_block) if raw_block.strip() else {}
    except yaml.YAMLError as e:
        if strict:
            raise FrontmatterError(f"Invalid frontmatter: {e}") from e
        logger.warning(f"Ignoring unparsable frontmatter block: {e}")
        return {}, body

    if parsed is None:
        parsed = {}
    if not isinstance(parsed, dict):
        if strict:
            raise FrontmatterError(f"Frontmatter is a {type(parsed).__name__}, not a mapping")
        logger.warning(f"Ignoring frontmatter that is not a mapping ({type(parsed).__name__})")
        return {}, body

    return _normalize_value(parsed), body


def _json_fallback(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    logger.warning(f"Storing non-JSON frontmatter value of type {type(value).__name__} as text")
    return str(value)


def _dump_value(value: Any) -> str:
    dumped = json.dumps(value, ensure_ascii=False, default=_json_fallback)
    return _YAML_UNSAFE_CHARS.sub(lambda match: f"\\u{ord(match.group(0)):04x}", dumped)


def render_frontmatter(data: Dict[str, Any]) -> str:
    """
    Render a mapping as a frontmatter block, one ``key: <json>`` line per key.

    JSON is a subset of YAML flow syntax, so the block reads back with any
    YAML parser. ``None`` values are skipped.
    """
    lines = [FRONTMATTER_DELIMITER]
    for key, value in data.items():
        if value is None:
            continue
        lines.append(f"{key}: {_dump_value(value)}")
    lines.append(FRONTMATTER_DELIMITER)
    return "\n".join(lines) + "\n"


def replace_frontmatter(text: str, data: Dict[str, Any]) -> str:
    """Return ``text`` with its frontmatter replaced by ``data`` (body preserved)."""
    _, body, found = _find_block(text)
    if not found:
        body = text
    return render_frontmatter(data) + body

#
# End of frontmatter.py
#######################################################################################################################
