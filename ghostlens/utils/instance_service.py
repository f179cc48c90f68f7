"""D-Bus service for controlling the running GhostLens assistant.

The first instance registers `org.ghostlens.Assistant` on the session bus.
Later invocations (`ghostlens --toggle`, `ghostlens --visual-ask`, typically
bound to Ctrl+Shift+Space in the desktop environment) call into it instead of
starting a second window. Uses PyQt6's QtDBus for Qt event loop integration.
"""

import logging
from typing import Callable, Optional

try:
    from PyQt6.QtDBus import QDBusConnection, QDBusInterface, QDBusAbstractAdaptor
    from PyQt6.QtCore import QObject, pyqtSlot, pyqtClassInfo
    DBUS_AVAILABLE = True
except ImportError:
    DBUS_AVAILABLE = False

logger = logging.getLogger(__name__)

SERVICE_NAME = "org.ghostlens.Assistant"
OBJECT_PATH = "/org/ghostlens/Assistant"
INTERFACE_NAME = "org.ghostlens.Assistant"


if DBUS_AVAILABLE:
    @pyqtClassInfo("D-Bus Interface", INTERFACE_NAME)
    @pyqtClassInfo("D-Bus Introspection",
        '  <interface name="org.ghostlens.Assistant">\n'
        '    <method name="Toggle">\n'
        '      <arg direction="out" type="b" name="success"/>\n'
        '    </method>\n'
        '    <method name="StartVisualAsk">\n'
        '      <arg direction="out" type="b" name="success"/>\n'
        '    </method>\n'
        '  </interface>\n')
    class AssistantAdaptor(QDBusAbstractAdaptor):
        """Exposes the assistant's window actions on D-Bus."""

        def __init__(self, parent: QObject, toggle_callback: Callable[[], None],
                     visual_ask_callback: Callable[[], None]):
            super().__init__(parent)
            self.toggle_callback = toggle_callback
            self.visual_ask_callback = visual_ask_callback

        @pyqtSlot(result=bool)
        def Toggle(self) -> bool:
            logger.info("D-Bus: toggle requested")
            try:
                self.toggle_callback()
                return True
            except Exception as e:
                logger.error(f"Error toggling window: {e}")
                return False

        @pyqtSlot(result=bool)
        def StartVisualAsk(self) -> bool:
            logger.info("D-Bus: visual ask requested")
            try:
                self.visual_ask_callback()
                return True
            except Exception as e:
                logger.error(f"Error starting visual ask: {e}")
                return False


class AssistantService(QObject if DBUS_AVAILABLE else object):
    """Registers the running assistant on the session bus.

    Raises:
        RuntimeError: if another instance already owns the service name
    """

    def __init__(self, toggle_callback: Callable[[], None], visual_ask_callback: Callable[[], None]):
        if DBUS_AVAILABLE:
            super().__init__()

        self._adaptor: Optional["AssistantAdaptor"] = None
        self._registered = False

        if not DBUS_AVAILABLE:
            logger.warning("PyQt6 QtDBus not available - single-instance control disabled")
            return

        bus = QDBusConnection.sessionBus()
        if not bus.isConnected():
            logger.warning("Could not connect to D-Bus session bus")
            return

        if not bus.registerService(SERVICE_NAME):
            raise RuntimeError("Another GhostLens instance is already running")

        self._adaptor = AssistantAdaptor(self, toggle_callback, visual_ask_callback)

        if not bus.registerObject(OBJECT_PATH, self):
            logger.warning("Failed to register D-Bus object")
            bus.unregisterService(SERVICE_NAME)
            return

        self._registered = True
        logger.info(f"Assistant service registered on D-Bus: {SERVICE_NAME}")

    def release(self):
        """Release the D-Bus service."""
        if not DBUS_AVAILABLE or not self._registered:
            return

        try:
            bus = QDBusConnection.sessionBus()
            bus.unregisterObject(OBJECT_PATH)
            bus.unregisterService(SERVICE_NAME)
            self._registered = False
            logger.info("Assistant service released")
        except Exception as e:
            logger.warning(f"Error releasing assistant service: {e}")


def is_assistant_running() -> bool:
    """Check whether another instance owns the service name."""
    if not DBUS_AVAILABLE:
        return False

    try:
        bus = QDBusConnection.sessionBus()
        if not bus.isConnected():
            return False

        dbus_interface = QDBusInterface(
            "org.freedesktop.DBus",
            "/org/freedesktop/DBus",
            "org.freedesktop.DBus",
            bus
        )
        reply = dbus_interface.call("NameHasOwner", SERVICE_NAME)

        if reply.type() == reply.MessageType.ReplyMessage:
            args = reply.arguments()
            if args:
                return bool(args[0])
        return False

    except Exception as e:
        logger.error(f"Error checking assistant status: {e}")
        return False


def call_running_assistant(method: str) -> bool:
    """
    Invoke `Toggle` or `StartVisualAsk` on the running instance.

    Returns:
        True if the call reached the instance and it reported success
    """
    if not DBUS_AVAILABLE:
        logger.error("D-Bus not available")
        return False

    try:
        bus = QDBusConnection.sessionBus()
        if not bus.isConnected():
            logger.error("Could not connect to D-Bus session bus")
            return False

        interface = QDBusInterface(SERVICE_NAME, OBJECT_PATH, INTERFACE_NAME, bus)
        if not interface.isValid():
            logger.error("GhostLens is not running")
            return False

        reply = interface.call(method)
        if reply.type() == reply.MessageType.ReplyMessage:
            args = reply.arguments()
            return bool(args[0]) if args else True

        logger.error(f"D-Bus call failed: {reply.errorMessage()}")
        return False

    except Exception as e:
        logger.error(f"Error calling assistant: {e}")
        return False
