"""
Path validation utilities to prevent directory traversal out of the vault root.

Store paths are vault-relative, forward-slash strings. These helpers turn them
into absolute filesystem paths and refuse anything that would escape the root.
"""

import re
from pathlib import Path
from typing import Union
from loguru import logger


_MULTI_SLASH = re.compile(r"/+")


def normalize_path(path: str) -> str:
    """
    Normalize a vault-relative path.

    Backslashes become forward slashes, duplicate separators collapse, and
    leading/trailing slashes and whitespace are dropped. ``""`` is the vault root.
    """
    if path is None:
        return ""
    cleaned = path.replace("\\", "/").strip()
    cleaned = _MULTI_SLASH.sub("/", cleaned)
    cleaned = cleaned.strip("/")
    if cleaned == ".":
        return ""
    return cleaned


def validate_path(user_path: Union[str, Path], base_directory: Union[str, Path]) -> Path:
    """
    Validates that a path is within the allowed base directory.
    
    Args:
        user_path: The vault-relative (or absolute) path
        base_directory: The allowed base directory
        
    Returns:
        Path: The validated absolute path
        
    Raises:
        ValueError: If the path is invalid or attempts directory traversal
    """
    if user_path is None or '\x00' in str(user_path):
        raise ValueError(f"Invalid path: {user_path!r}")

    base_directory = Path(base_directory).resolve()
    candidate = Path(user_path)
    
    if candidate.is_absolute():
        full_path = candidate.resolve()
    else:
        full_path = (base_directory / candidate).resolve()
    
    try:
        full_path.relative_to(base_directory)
    except ValueError:
        logger.warning(f"Path traversal attempt detected: {user_path} -> {full_path}")
        raise ValueError(f"Path '{user_path}' is outside the allowed directory")
    
    return full_path


def is_within_folder(path: str, folder: str) -> bool:
    """True when ``path`` is ``folder`` itself or lies underneath it."""
    path = normalize_path(path)
    folder = normalize_path(folder)
    if not folder:
        return True
    return path == folder or path.startswith(f"{folder}/")
