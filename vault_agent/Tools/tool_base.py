# tool_base.py
# Description: Base class and value types for tools an agent can call
#
"""
Tool Base
---------

A ``Tool`` is a named capability with a JSON-schema parameter description
and an async ``execute``. Every call produces a ``ToolResult``; failures are
results, not exceptions, so a model-driven loop can see them and adapt.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional
#
# Local Imports
from ..Sessions.session_models import ChatSession, DestructiveAction, ToolCategory, random_base36, utc_now
from ..Store.document_store import DocumentStore
if TYPE_CHECKING:
    from ..Sessions.session_manager import SessionManager
#
#######################################################################################################################
#
# Classes:

class ToolCallStatus(Enum):
    """Outcome of one tool call."""
    SUCCEEDED = "success"
    FAILED = "failed"
    DENIED = "denied"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    ABORTED_LOOP = "aborted_loop"


@dataclass
class ToolResult:
    """Uniform result of a tool call."""
    success: bool
    data: Any = None
    error: Optional[str] = None
    requires_confirmation: bool = False
    status: Optional[ToolCallStatus] = None

    def __post_init__(self):
        if self.status is None:
            self.status = ToolCallStatus.SUCCEEDED if self.success else ToolCallStatus.FAILED

    @classmethod
    def ok(cls, data: Any = None) -> "ToolResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, status: ToolCallStatus = ToolCallStatus.FAILED) -> "ToolResult":
        return cls(success=False, error=error, status=status)

    def to_dict(self) -> dict:
        result = {"success": self.success, "status": self.status.value}
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = self.error
        if self.requires_confirmation:
            result["requires_confirmation"] = True
        return result


@dataclass
class ToolCall:
    """A request from the model to run one tool."""
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None

    @classmethod
    def from_openai(cls, payload: Dict[str, Any]) -> "ToolCall":
        """
        Build a call from an OpenAI-style ``tool_calls`` item.

        ``arguments`` may be a dict or a JSON-encoded string.

        Raises:
            ValueError: If the arguments string is not a JSON object
        """
        function = payload.get("function", payload)
        arguments = function.get("arguments") or {}
        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments) if arguments.strip() else {}
            except json.JSONDecodeError as e:
                raise ValueError(f"Tool arguments are not valid JSON: {e}") from e
        if not isinstance(arguments, dict):
            raise ValueError("Tool arguments must be a JSON object")
        return cls(
            name=function.get("name", ""),
            arguments=arguments,
            id=payload.get("id") or f"call_{random_base36(9)}",
        )


@dataclass
class ToolExecutionContext:
    """What a tool may touch while it runs."""
    session: ChatSession
    store: DocumentStore
    session_manager: Optional["SessionManager"] = None


@dataclass
class ToolExecution:
    """History record of one executed call."""
    tool_name: str
    parameters: Dict[str, Any]
    result: ToolResult
    timestamp: datetime = field(default_factory=utc_now)
    confirmed: bool = False

    def to_dict(self) -> dict:
        return {
            "tool_name": self.tool_name,
            "parameters": self.parameters,
            "result": self.result.to_dict(),
            "timestamp": self.timestamp.isoformat(),
            "confirmed": self.confirmed,
        }


class Tool(ABC):
    """Base class for all tools that can be called by the agent."""

    #: Capability bucket the session must have enabled
    category: ToolCategory = ToolCategory.READ_ONLY
    #: Always ask before running, whatever the session says
    requires_confirmation: bool = False
    #: Destructive-action kind checked against the session's confirmation list
    destructive_action: Optional[DestructiveAction] = None

    @property
    @abstractmethod
    def name(self) -> str:
        """The name of the tool as it will be called by the model."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Description of what the tool does."""
        pass

    @property
    @abstractmethod
    def parameters(self) -> dict:
        """JSON Schema for the tool's parameters."""
        pass

    @property
    def display_name(self) -> str:
        return self.name.replace("_", " ").title()

    @abstractmethod
    async def execute(self, params: Dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        """
        Execute the tool.

        Args:
            params: Validated call arguments
            context: Session and store the call runs against

        Returns:
            ToolResult describing success or failure
        """
        pass

    async def action_for(self, params: Dict[str, Any], context: ToolExecutionContext) -> Optional[DestructiveAction]:
        """Destructive-action kind of a particular call. Defaults to the class-level kind."""
        return self.destructive_action

    def confirmation_message(self, params: Dict[str, Any]) -> str:
        """Human-readable preview shown before a confirmed call runs."""
        return f"Run {self.display_name} with {json.dumps(params, ensure_ascii=False)}"

    def to_openai_format(self) -> dict:
        """Convert tool to OpenAI function format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters
            }
        }

#
# End of tool_base.py
#######################################################################################################################
