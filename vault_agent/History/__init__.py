# History package
"""
Conversation turns and the plain-text session document codec.
"""

from .conversation import ConversationEntry, TurnRole
from .session_codec import (
    DecodedSessionDocument,
    append_entry,
    decode_document,
    decode_entries,
    encode_entry,
    render_document,
)

__all__ = [
    'ConversationEntry',
    'TurnRole',
    'DecodedSessionDocument',
    'append_entry',
    'decode_document',
    'decode_entries',
    'encode_entry',
    'render_document',
]
