# execution_engine.py
# Description: Runs tool calls behind capability, confirmation and loop checks
#
"""
Tool Execution Engine
---------------------

Every call walks the same states:

    capability check -> parameter validation -> confirmation check
    -> loop check -> execute

Each check that fails ends the call with a ``ToolResult`` carrying a
distinct ``ToolCallStatus``; nothing here raises for a refused call. The
tool's ``execute`` only runs once every check has passed.
"""

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Union
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from .loop_detector import ToolLoopDetector
from .tool_base import Tool, ToolCall, ToolCallStatus, ToolExecution, ToolExecutionContext, ToolResult
from .tool_registry import ToolRegistry
from ..config import AgentSettings
from ..errors import AgentError
from ..History.conversation import META_TOOL_NAME, META_TOOL_STATUS, ConversationEntry, TurnRole
from ..logging_config import format_params_for_log, truncate_for_log
#
#######################################################################################################################
#
# Classes:

@dataclass
class ConfirmationResponse:
    """Answer to a confirmation request."""
    confirmed: bool
    allow_without_confirmation: bool = False


# (tool, params, preview message) -> answer; a bare bool is accepted too
ConfirmationCallback = Callable[
    [Tool, Dict[str, Any], str],
    Awaitable[Union[ConfirmationResponse, bool]],
]


class ToolExecutionEngine:
    """Permission-checked dispatcher for tool calls."""

    def __init__(
        self,
        registry: ToolRegistry,
        settings: AgentSettings,
        confirmation_callback: Optional[ConfirmationCallback] = None,
        history=None,
        loop_detector: Optional[ToolLoopDetector] = None,
    ):
        """
        Args:
            registry: Tools that may be called
            settings: Loop detection and batch error policy
            confirmation_callback: Asked before a call that needs confirmation.
                Without one such calls end as AWAITING_CONFIRMATION.
            history: Optional ``SessionHistory``; executed calls are recorded
                into the session document as system turns
            loop_detector: Override the detector built from ``settings``
        """
        self.registry = registry
        self.settings = settings
        self.confirmation_callback = confirmation_callback
        self.history = history
        self.loop_detector = loop_detector or ToolLoopDetector(
            threshold=settings.loop_detection_threshold,
            window_seconds=settings.loop_detection_time_window_seconds,
            exempt_tools=settings.loop_detection_exempt_tools,
        )
        self._execution_history: Dict[str, List[ToolExecution]] = {}
        self._allowed_without_confirmation: Dict[str, Set[str]] = {}

    # ------------------------------------------------------------------
    # Per-session confirmation allow list
    # ------------------------------------------------------------------

    def allow_tool_without_confirmation(self, session_id: str, tool_name: str) -> None:
        self._allowed_without_confirmation.setdefault(session_id, set()).add(tool_name)

    def is_tool_allowed_without_confirmation(self, session_id: str, tool_name: str) -> bool:
        return tool_name in self._allowed_without_confirmation.get(session_id, ())

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _request_confirmation(
        self,
        tool: Tool,
        call: ToolCall,
        context: ToolExecutionContext,
    ) -> Optional[ToolResult]:
        """None when the call may proceed, else the result that ends it."""
        message = tool.confirmation_message(call.arguments)
        if self.confirmation_callback is None:
            logger.info(f"Tool {tool.name} is awaiting confirmation in session {context.session.id}")
            return ToolResult(
                success=False,
                data={"confirmation_message": message},
                error=f"Tool {tool.name} requires confirmation",
                requires_confirmation=True,
                status=ToolCallStatus.AWAITING_CONFIRMATION,
            )

        response = await self.confirmation_callback(tool, call.arguments, message)
        if isinstance(response, bool):
            response = ConfirmationResponse(confirmed=response)
        if not response.confirmed:
            logger.info(f"User declined {tool.name} in session {context.session.id}")
            return ToolResult.fail("User declined tool execution", status=ToolCallStatus.DENIED)
        if response.allow_without_confirmation:
            self.allow_tool_without_confirmation(context.session.id, tool.name)
        return None

    async def execute_tool(
        self,
        call: ToolCall,
        context: ToolExecutionContext,
        confirmed: bool = False,
    ) -> ToolResult:
        """
        Run one tool call.

        Args:
            call: The requested call
            context: Session and store to run against
            confirmed: The caller already confirmed this call

        Returns:
            ToolResult; ``status`` tells which step ended the call
        """
        session = context.session
        tool = self.registry.get_tool(call.name)
        if tool is None:
            return ToolResult.fail(f"Tool {call.name} not found")

        if not self.registry.is_tool_enabled(tool, context):
            logger.info(f"Denied {tool.name} ({tool.category.value}) for session {session.id}")
            return ToolResult.fail(
                f"Tool {tool.name} is not enabled for this session",
                status=ToolCallStatus.DENIED,
            )

        valid, errors = self.registry.validate_parameters(tool.name, call.arguments)
        if not valid:
            return ToolResult.fail(f"Invalid parameters: {', '.join(errors)}")

        needs_confirmation = await self.registry.requires_confirmation(tool.name, context, call.arguments)
        if needs_confirmation and not confirmed and not self.is_tool_allowed_without_confirmation(session.id, tool.name):
            refusal = await self._request_confirmation(tool, call, context)
            if refusal is not None:
                return refusal

        if self.settings.loop_detection_enabled:
            self.loop_detector.update_config(
                self.settings.loop_detection_threshold,
                self.settings.loop_detection_time_window_seconds,
                self.settings.loop_detection_exempt_tools,
            )
            loop_info = self.loop_detector.get_loop_info(session.id, call)
            if loop_info.is_loop:
                logger.warning(f"Loop detected for tool {tool.name}: {loop_info.to_dict()}")
                return ToolResult.fail(
                    f"Execution loop detected: {tool.name} has been called {loop_info.identical_call_count} "
                    f"times with the same parameters in the last {loop_info.time_window} seconds. "
                    f"Please try a different approach.",
                    status=ToolCallStatus.ABORTED_LOOP,
                )

        self.loop_detector.record_execution(session.id, call)
        logger.info(f"Executing tool {tool.name} with {format_params_for_log(call.arguments)}")
        try:
            result = await tool.execute(call.arguments, context)
        except Exception as e:
            logger.exception(f"Tool {tool.name} raised during execution")
            result = ToolResult.fail(str(e) or type(e).__name__)

        execution = ToolExecution(
            tool_name=tool.name,
            parameters=dict(call.arguments),
            result=result,
            confirmed=needs_confirmation,
        )
        self._execution_history.setdefault(session.id, []).append(execution)
        logger.debug(f"Tool {tool.name} finished with status {result.status.value}")

        await self._record_in_history(execution, context)
        return result

    async def execute_tool_calls(
        self,
        calls: Iterable[ToolCall],
        context: ToolExecutionContext,
        confirmed: Iterable[str] = (),
    ) -> List[ToolResult]:
        """
        Run calls in order. With ``stop_on_tool_error`` the batch ends at the
        first unsuccessful result; earlier results are never rolled back.

        ``confirmed`` lists call ids the caller has already confirmed.
        """
        confirmed_ids = set(confirmed)
        results = []
        for call in calls:
            result = await self.execute_tool(call, context, confirmed=call.id in confirmed_ids)
            results.append(result)
            if not result.success and self.settings.stop_on_tool_error:
                logger.info(f"Stopping tool batch after {call.name} ({result.status.value})")
                break
        return results

    async def _record_in_history(self, execution: ToolExecution, context: ToolExecutionContext) -> None:
        if self.history is None:
            return
        entry = ConversationEntry(
            role=TurnRole.SYSTEM,
            message=self.format_tool_result(execution),
            metadata={
                META_TOOL_NAME: execution.tool_name,
                META_TOOL_STATUS: execution.result.status.value,
            },
            created_at=execution.timestamp,
        )
        try:
            await self.history.add_entry_to_session(context.session, entry)
        except AgentError as e:
            # The result is still returned to the caller
            logger.error(f"Could not record {execution.tool_name} in session history: {e}")

    # ------------------------------------------------------------------
    # History and formatting
    # ------------------------------------------------------------------

    def get_execution_history(self, session_id: str) -> List[ToolExecution]:
        return list(self._execution_history.get(session_id, ()))

    def clear_execution_history(self, session_id: str) -> None:
        self._execution_history.pop(session_id, None)
        self._allowed_without_confirmation.pop(session_id, None)
        self.loop_detector.clear_session(session_id)

    @staticmethod
    def format_tool_result(execution: ToolExecution) -> str:
        """Markdown summary of one execution for the chat transcript."""
        result = execution.result
        icon, status = ("✓", "Success") if result.success else ("✗", "Failed")

        formatted = f"### Tool Execution: {execution.tool_name}\n\n"
        formatted += f"**Status:** {icon} {status}\n\n"
        if result.data is not None:
            data = json.dumps(result.data, indent=2, ensure_ascii=False, default=str)
            formatted += f"**Result:**\n```json\n{data}\n```\n"
        if result.error:
            formatted += f"**Error:** {result.error}\n"
        return formatted

    def get_available_tools_description(self, context: ToolExecutionContext) -> str:
        """Markdown list of the tools enabled for the session, for a system prompt."""
        tools = self.registry.get_enabled_tools(context)
        if not tools:
            return "No tools are currently available."

        description = "## Available Tools\n\n"
        for tool in tools:
            description += f"### {tool.name}\n{tool.description}\n\n"
            properties = tool.parameters.get("properties") or {}
            if properties:
                required = set(tool.parameters.get("required", []))
                description += "**Parameters:**\n"
                for param, schema in properties.items():
                    marker = " (required)" if param in required else ""
                    description += f"- `{param}` ({schema.get('type')}){marker}: {schema.get('description', '')}\n"
                description += "\n"
        logger.debug(f"Tool description for session {context.session.id}: {truncate_for_log(description)}")
        return description

#
# End of execution_engine.py
#######################################################################################################################
