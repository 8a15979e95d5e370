"""
Logging configuration for the vault agent core.

Centralises loguru sinks and provides helpers that keep message bodies and
tool parameters from flooding (or leaking into) the log.
"""

import os
import sys
from typing import Optional, Dict, Any

from loguru import logger


LOG_LEVELS = {
    "default": os.environ.get("VAULT_AGENT_LOG_LEVEL", "INFO"),
    "content": os.environ.get("VAULT_AGENT_LOG_CONTENT_LEVEL", "DEBUG"),
}

MASK_SENSITIVE = os.environ.get("VAULT_AGENT_MASK_SENSITIVE", "true").lower() == "true"

CONTENT_TRUNCATE_LENGTH = int(os.environ.get("VAULT_AGENT_LOG_TRUNCATE_LENGTH", "80"))

SENSITIVE_KEYS = {"api_key", "password", "secret", "token", "auth", "credential"}


def truncate_for_log(text: Any, max_length: Optional[int] = None) -> str:
    """
    Truncate a value for logging.

    Args:
        text: Value to render; non-strings are converted with ``str``
        max_length: Maximum length (defaults to CONTENT_TRUNCATE_LENGTH)

    Returns:
        The rendered value, cut with an ellipsis if needed
    """
    if max_length is None:
        max_length = CONTENT_TRUNCATE_LENGTH
    rendered = text if isinstance(text, str) else str(text)
    rendered = rendered.replace("\n", "\\n")
    if len(rendered) <= max_length:
        return rendered
    return f"{rendered[:max_length]}..."


def mask_sensitive_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``params`` with credential-like keys masked."""
    if not MASK_SENSITIVE or not isinstance(params, dict):
        return params
    masked = dict(params)
    for key in masked:
        if any(sensitive in str(key).lower() for sensitive in SENSITIVE_KEYS):
            masked[key] = "***MASKED***"
    return masked


def format_params_for_log(params: Dict[str, Any], max_length: Optional[int] = None) -> str:
    """Mask, then truncate, a tool-parameter dict for a single log line."""
    return truncate_for_log(mask_sensitive_params(params), max_length)


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """
    Configure loguru sinks. Call once at host startup.

    Args:
        level: Minimum level; defaults to VAULT_AGENT_LOG_LEVEL
        log_file: Optional path for a rotating file sink
    """
    level = (level or LOG_LEVELS["default"]).upper()
    logger.remove()
    logger.add(sink=sys.stderr, level=level, colorize=True)

    if log_file:
        logger.add(
            sink=log_file,
            level=level,
            rotation="10 MB",
            retention="7 days",
        )

    logger.info(f"Vault agent logging configured: level={level}, file={log_file or 'none'}")
