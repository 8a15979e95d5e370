# Tools package
"""
Tools the agent can call, and the permission-checked engine that runs them.
"""

from .execution_engine import ConfirmationResponse, ToolExecutionEngine
from .loop_detector import LoopDetectionInfo, ToolLoopDetector
from .tool_base import Tool, ToolCall, ToolCallStatus, ToolExecution, ToolExecutionContext, ToolResult
from .tool_registry import ToolRegistry
from .vault_tools import create_vault_tools, register_vault_tools

__all__ = [
    'ConfirmationResponse',
    'LoopDetectionInfo',
    'Tool',
    'ToolCall',
    'ToolCallStatus',
    'ToolExecution',
    'ToolExecutionContext',
    'ToolExecutionEngine',
    'ToolLoopDetector',
    'ToolRegistry',
    'ToolResult',
    'create_vault_tools',
    'register_vault_tools',
]
