# loop_detector.py
# Description: Detects an agent calling the same tool with the same arguments over and over
#
# Imports
import json
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, Optional, Set
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from .tool_base import ToolCall
#
#######################################################################################################################
#
# Classes:

MAX_HISTORY_SIZE = 100


@dataclass
class ExecutionRecord:
    key: str
    timestamp: float


@dataclass
class LoopDetectionInfo:
    """Loop statistics for a pending call. Counts include the pending call."""
    is_loop: bool
    identical_call_count: int
    consecutive_call_count: int
    time_window: float
    last_call_timestamp: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "is_loop": self.is_loop,
            "identical_call_count": self.identical_call_count,
            "consecutive_call_count": self.consecutive_call_count,
            "time_window": self.time_window,
            "last_call_timestamp": self.last_call_timestamp,
        }


def tool_call_key(call: ToolCall) -> str:
    """``name:<arguments as canonical JSON>``; argument order does not matter."""
    return f"{call.name}:{json.dumps(call.arguments, sort_keys=True, ensure_ascii=False, default=str)}"


class ToolLoopDetector:
    """
    Rolling per-session window of recent tool calls.

    A pending call is a loop when it would be the ``threshold``-th identical
    call inside ``window_seconds``. Tools listed in ``exempt_tools`` are
    never reported.
    """

    def __init__(
        self,
        threshold: int = 3,
        window_seconds: float = 30,
        exempt_tools: Optional[Iterable[str]] = None,
        clock=time.monotonic,
    ):
        self.threshold = threshold
        self.window_seconds = window_seconds
        self.exempt_tools: Set[str] = set(exempt_tools or ())
        self._clock = clock
        self._history: Dict[str, Deque[ExecutionRecord]] = {}

    def update_config(
        self,
        threshold: int,
        window_seconds: float,
        exempt_tools: Optional[Iterable[str]] = None,
    ) -> None:
        self.threshold = threshold
        self.window_seconds = window_seconds
        if exempt_tools is not None:
            self.exempt_tools = set(exempt_tools)

    def record_execution(self, session_id: str, call: ToolCall) -> None:
        history = self._history.setdefault(session_id, deque(maxlen=MAX_HISTORY_SIZE))
        history.append(ExecutionRecord(key=tool_call_key(call), timestamp=self._clock()))
        self._cleanup(session_id)

    def _cleanup(self, session_id: str) -> None:
        history = self._history.get(session_id)
        if not history:
            return
        # Twice the window is kept for consecutive-call statistics
        cutoff = self._clock() - self.window_seconds * 2
        while history and history[0].timestamp < cutoff:
            history.popleft()

    def get_loop_info(self, session_id: str, call: ToolCall) -> LoopDetectionInfo:
        key = tool_call_key(call)
        history = self._history.get(session_id, ())
        now = self._clock()

        recent = [r for r in history if r.key == key and now - r.timestamp < self.window_seconds]
        consecutive = 0
        for record in reversed(history):
            if record.key != key:
                break
            consecutive += 1

        identical = len(recent) + 1
        return LoopDetectionInfo(
            is_loop=call.name not in self.exempt_tools and identical >= self.threshold,
            identical_call_count=identical,
            consecutive_call_count=consecutive + 1,
            time_window=self.window_seconds,
            last_call_timestamp=recent[-1].timestamp if recent else None,
        )

    def is_loop_detected(self, session_id: str, call: ToolCall) -> bool:
        info = self.get_loop_info(session_id, call)
        if info.is_loop:
            logger.warning(
                f"Loop detected for tool {call.name} in session {session_id}: "
                f"{info.identical_call_count} identical calls within {info.time_window}s"
            )
        return info.is_loop

    def clear_session(self, session_id: str) -> None:
        self._history.pop(session_id, None)

#
# End of loop_detector.py
#######################################################################################################################
