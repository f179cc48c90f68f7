"""
Desktop notifications for GhostLens.

Used when the assistant window is hidden and something needs the user's
attention (a visual ask that failed, an answer that arrived). Notifications
go through notify-send.
"""

import logging
import shutil
import subprocess
from typing import Optional

logger = logging.getLogger(__name__)


class NotificationTimeouts:
    """Display durations for notifications (milliseconds)."""

    NOTIFICATION_DISPLAY_MS = 5000
    ERROR_NOTIFICATION_MS = 3000


class NotificationSystem:
    """Handles desktop notifications for GhostLens."""

    APP_NAME = "GhostLens"

    def __init__(self):
        self.notification_available = self._check_notification_support()

    def _check_notification_support(self) -> bool:
        available = shutil.which("notify-send") is not None
        if not available:
            logger.warning("notify-send not found in PATH - desktop notifications disabled")
        return available

    def send(
        self,
        title: str,
        message: str,
        urgency: str = "normal",
        icon: str = "dialog-information",
        timeout_ms: int = NotificationTimeouts.NOTIFICATION_DISPLAY_MS,
    ) -> bool:
        """
        Send a desktop notification.

        Args:
            title: Notification title (prefixed with the app name)
            message: Notification body
            urgency: "low", "normal" or "critical"
            icon: Freedesktop icon name
            timeout_ms: Display duration

        Returns:
            True if notify-send was launched
        """
        if not self.notification_available:
            logger.warning(f"Notification not available: {title} - {message}")
            return False

        try:
            subprocess.Popen(
                [
                    "notify-send",
                    "-i", icon,
                    "-u", urgency,
                    "-t", str(timeout_ms),
                    "-a", self.APP_NAME,
                    f"{self.APP_NAME} - {title}",
                    message,
                ],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            return True
        except OSError as e:
            logger.error(f"Failed to send notification: {e}")
            return False

    def notify_error(self, title: str, message: str) -> bool:
        return self.send(
            title,
            message,
            urgency="critical",
            icon="dialog-error",
            timeout_ms=NotificationTimeouts.ERROR_NOTIFICATION_MS,
        )


# Global notification system instance
_notification_system: Optional[NotificationSystem] = None


def get_notification_system() -> NotificationSystem:
    """Get the global notification system instance."""
    global _notification_system
    if _notification_system is None:
        _notification_system = NotificationSystem()
    return _notification_system


def notify_error(title: str, message: str) -> bool:
    """Show error notification."""
    return get_notification_system().notify_error(title, message)


def send_notification(title: str, message: str, urgency: str = "normal", icon: str = "dialog-information") -> bool:
    """Send a generic desktop notification."""
    return get_notification_system().send(title, message, urgency=urgency, icon=icon)
