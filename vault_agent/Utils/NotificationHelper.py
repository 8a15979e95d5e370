# NotificationHelper.py
# Description: Routes user-facing notices to the host application, or to the log when there is none
#
# Imports
from typing import Callable, Optional
#
# Third-Party Imports
from loguru import logger
#
#######################################################################################################################
#
# Functions:

# Host notifier signature: (message, severity, timeout) -> None
Notifier = Callable[[str, str, Optional[float]], None]

_LOG_LEVEL_FOR_SEVERITY = {
    "information": "INFO",
    "warning": "WARNING",
    "error": "ERROR",
}


def show_notification(
    notifier: Optional[Notifier],
    message: str,
    severity: str = "information",
    timeout: Optional[float] = None
) -> None:
    """
    Show a notification through the host notifier, falling back to the log.
    
    Args:
        notifier: Host callback, or None when running headless
        message: Message to display
        severity: information, warning or error
        timeout: Timeout in seconds; errors default to persistent
    """
    if severity not in _LOG_LEVEL_FOR_SEVERITY:
        severity = "information"

    if notifier is None:
        logger.log(_LOG_LEVEL_FOR_SEVERITY[severity], f"[notice] {message}")
        return

    if timeout is None and severity != "error":
        timeout = 5.0

    try:
        notifier(message, severity, timeout)
    except Exception as e:
        # A broken notifier must not mask the failure being reported
        logger.error(f"Notifier failed while showing '{message}': {e}")

#
# End of NotificationHelper.py
#######################################################################################################################
