"""Global hotkey support for Build Uploader.

Registers system-wide keyboard shortcuts so an operator can force an
immediate rescan for new builds, or quit, from any application.

Uses the ``keyboard`` library for low-level hook-based hotkeys.  The
library needs root on macOS and Linux; without it the hotkeys are
simply not registered and the timer keeps driving passes.
"""

import logging
import threading
from collections.abc import Callable

from build_uploader.platform_utils import can_listen_for_hotkeys

logger = logging.getLogger(__name__)

try:
    import keyboard as _kb  # type: ignore[import-untyped]

    _HAS_KEYBOARD = True
except ImportError:
    _HAS_KEYBOARD = False
    logger.warning("keyboard library not installed — global hotkeys disabled.")

_NO_ROOT_MSG = (
    "Global hotkeys unavailable — the keyboard library requires root on "
    "this platform. Send SIGINT/SIGTERM to stop, or wait for the next poll."
)

# The keyboard listener thread can still die after the permission check
# (e.g. /dev/input access revoked); report that as a warning.
_original_excepthook = threading.excepthook


def _listener_lost_permission(args: threading.ExceptHookArgs) -> bool:
    thread = args.thread
    return (
        thread is not None
        and thread.name == "listen"
        and isinstance(args.exc_value, (OSError, ImportError))
    )


def _hotkey_excepthook(args: threading.ExceptHookArgs) -> None:
    if _listener_lost_permission(args):
        logger.warning(_NO_ROOT_MSG)
    else:
        _original_excepthook(args)


threading.excepthook = _hotkey_excepthook


class GlobalHotkeys:
    """Binds the rescan and quit actions to system-wide key combos.

    An empty combo string leaves that action without a hotkey.

    Parameters
    ----------
    rescan_key, quit_key : str
        Hotkey combo strings, e.g. ``'ctrl+shift+f10'``.
    on_rescan, on_quit : callable
        Invoked on the keyboard listener thread when the combo is pressed.

    """

    def __init__(
        self,
        rescan_key: str,
        quit_key: str,
        on_rescan: Callable[[], None],
        on_quit: Callable[[], None],
    ):
        self._bindings: list[tuple[str, str, Callable[[], None]]] = [
            (action, combo, callback)
            for action, combo, callback in (
                ("rescan", rescan_key, on_rescan),
                ("quit", quit_key, on_quit),
            )
            if combo
        ]
        self._registered = False

    @property
    def available(self) -> bool:
        """Return whether the keyboard library is importable."""
        return _HAS_KEYBOARD

    @property
    def registered(self) -> bool:
        return self._registered

    def register(self) -> None:
        """Hook every assigned combo; a failure leaves nothing hooked."""
        if self._registered:
            return
        if not _HAS_KEYBOARD:
            logger.info("Global hotkeys unavailable (keyboard library missing).")
            return
        if not can_listen_for_hotkeys():
            logger.warning(_NO_ROOT_MSG)
            return

        try:
            for action, combo, callback in self._bindings:
                _kb.add_hotkey(combo, callback, suppress=False)
                logger.info("Hotkey for %s: %s", action, combo)
        except Exception:
            logger.exception("Could not hook global hotkeys; continuing without them.")
            self._release()
            return
        self._registered = True

    def unregister(self) -> None:
        """Remove the hooks installed by register()."""
        if self._registered:
            self._release()
            self._registered = False
            logger.info("Global hotkeys released.")

    def _release(self) -> None:
        try:
            _kb.unhook_all_hotkeys()
        except Exception:
            logger.exception("Could not unhook global hotkeys.")
