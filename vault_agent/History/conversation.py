# conversation.py
# Description: Conversation turn types stored in session documents
#
# Imports
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
#
# Local Imports
from ..Sessions.session_models import utc_now
#
#######################################################################################################################
#
# Classes:

class TurnRole(Enum):
    """Who produced a turn."""
    USER = "user"
    MODEL = "model"
    SYSTEM = "system"


# Metadata keys understood by the codec
META_TEMPERATURE = "temperature"
META_TOP_P = "top_p"
META_CUSTOM_PROMPT = "custom_prompt"
META_FILE_VERSION = "file_version"
META_TOOL_NAME = "tool_name"
META_TOOL_STATUS = "tool_status"


@dataclass
class ConversationEntry:
    """
    One conversational turn.

    ``user_message`` is only used when the first model turn of a session is
    persisted without a preceding user turn on record; it is not stored as
    part of the model turn itself.
    """
    role: TurnRole
    message: str
    model: Optional[str] = None
    user_message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)

    @property
    def temperature(self) -> Optional[float]:
        return self.metadata.get(META_TEMPERATURE)

    @property
    def top_p(self) -> Optional[float]:
        return self.metadata.get(META_TOP_P)

    @property
    def custom_prompt(self) -> Optional[str]:
        return self.metadata.get(META_CUSTOM_PROMPT)

    def to_dict(self) -> dict:
        return {
            "role": self.role.value,
            "message": self.message,
            "model": self.model,
            "metadata": dict(self.metadata),
            "created_at": self.created_at.isoformat(),
        }

#
# End of conversation.py
#######################################################################################################################
