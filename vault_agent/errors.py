# errors.py
# Description: Error taxonomy for sessions, history, migration and tool execution
#
"""
Agent Errors
------------

Error handling for the agent core with:
- Specific exception types
- User-friendly error messages
- Recovery suggestions
- Logging integration

Only failures a caller must act on are raised. Not-found results are returned
as empty values and permission denials as ``ToolResult`` objects.
"""

from typing import Optional, Dict, Any, List
from enum import Enum
from loguru import logger


class AgentErrorType(Enum):
    """Types of agent core errors."""
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    CONFLICT = "conflict"
    MALFORMED_DATA = "malformed_data"
    IO_FAILURE = "io_failure"
    VALIDATION_ERROR = "validation_error"
    UNKNOWN_ERROR = "unknown_error"


class AgentError(Exception):
    """Base exception for agent core operations."""
    
    def __init__(
        self,
        error_type: AgentErrorType,
        message: str,
        details: Optional[str] = None,
        recovery_suggestions: Optional[List[str]] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.details = details
        self.recovery_suggestions = recovery_suggestions or []
        self.original_exception = original_exception
        
        logger.error(f"AgentError [{error_type.value}]: {message}")
        if details:
            logger.error(f"Details: {details}")
        if original_exception:
            logger.opt(exception=original_exception).debug(f"Original exception: {original_exception}")
    
    def get_user_message(self) -> str:
        """Get a user-friendly error message."""
        return self.message
    
    def get_full_message(self) -> str:
        """Get full error message with details."""
        parts = [self.message]
        if self.details:
            parts.append(f"\nDetails: {self.details}")
        if self.recovery_suggestions:
            parts.append("\nSuggestions:")
            for suggestion in self.recovery_suggestions:
                parts.append(f"  • {suggestion}")
        return "\n".join(parts)


class SessionPersistenceError(AgentError):
    """A session document could not be written."""

    def __init__(self, message: str, path: Optional[str] = None, original_exception: Optional[Exception] = None):
        super().__init__(
            AgentErrorType.IO_FAILURE,
            message,
            details=f"Path: {path}" if path else None,
            recovery_suggestions=AgentErrorHandler.RECOVERY_SUGGESTIONS[AgentErrorType.IO_FAILURE],
            original_exception=original_exception,
        )
        self.path = path


class SessionNotFoundError(AgentError):
    """Raised only by operations whose contract requires an existing session."""

    def __init__(self, session_id: str, message: Optional[str] = None):
        super().__init__(AgentErrorType.NOT_FOUND, message or f"Session not found: {session_id}")
        self.session_id = session_id


class MalformedDocumentError(AgentError):
    """A document could not be decoded. Batch operations skip these."""

    def __init__(self, path: str, reason: str, original_exception: Optional[Exception] = None):
        super().__init__(
            AgentErrorType.MALFORMED_DATA,
            f"Malformed document: {path}",
            details=reason,
            original_exception=original_exception,
        )
        self.path = path


class AgentErrorHandler:
    """Maps raw exceptions onto the agent error taxonomy."""
    
    ERROR_MESSAGES = {
        AgentErrorType.NOT_FOUND: "Document or session not found",
        AgentErrorType.PERMISSION_DENIED: "Permission denied",
        AgentErrorType.CONFLICT: "Target already exists",
        AgentErrorType.MALFORMED_DATA: "Document could not be parsed",
        AgentErrorType.IO_FAILURE: "Failed to read or write a document",
        AgentErrorType.VALIDATION_ERROR: "Validation failed",
        AgentErrorType.UNKNOWN_ERROR: "An unexpected error occurred",
    }
    
    RECOVERY_SUGGESTIONS = {
        AgentErrorType.NOT_FOUND: [
            "Check that the document has not been moved or deleted",
        ],
        AgentErrorType.PERMISSION_DENIED: [
            "Check file and folder permissions in the vault",
        ],
        AgentErrorType.CONFLICT: [
            "Rename or remove the existing document",
        ],
        AgentErrorType.MALFORMED_DATA: [
            "Open the document and check its metadata block",
            "Restore the document from the History-Archive folder",
        ],
        AgentErrorType.IO_FAILURE: [
            "Check that the vault folder is writable",
            "Ensure there is free disk space",
        ],
        AgentErrorType.VALIDATION_ERROR: [
            "Check the provided values",
        ],
        AgentErrorType.UNKNOWN_ERROR: [],
    }

    @classmethod
    def classify(cls, error: Exception) -> AgentErrorType:
        """Pick the taxonomy bucket for a raw exception."""
        if isinstance(error, AgentError):
            return error.error_type
        if isinstance(error, FileNotFoundError):
            return AgentErrorType.NOT_FOUND
        if isinstance(error, FileExistsError):
            return AgentErrorType.CONFLICT
        if isinstance(error, PermissionError):
            return AgentErrorType.PERMISSION_DENIED
        if isinstance(error, OSError):
            return AgentErrorType.IO_FAILURE
        if isinstance(error, ValueError):
            return AgentErrorType.VALIDATION_ERROR
        return AgentErrorType.UNKNOWN_ERROR
    
    @classmethod
    def handle_error(cls, error: Exception, context: Optional[Dict[str, Any]] = None) -> AgentError:
        """
        Wrap an exception into an AgentError.
        
        Args:
            error: The raw exception
            context: Optional context (operation name, path)
            
        Returns:
            The matching AgentError (the same object if it already is one)
        """
        if isinstance(error, AgentError):
            return error
        
        error_type = cls.classify(error)
        context = context or {}
        message = cls.ERROR_MESSAGES[error_type]
        if context.get("operation"):
            message = f"{message} during {context['operation']}"
        details = str(error)
        if context.get("path"):
            details = f"{details} (path: {context['path']})"
        
        return AgentError(
            error_type=error_type,
            message=message,
            details=details,
            recovery_suggestions=cls.RECOVERY_SUGGESTIONS[error_type],
            original_exception=error,
        )
