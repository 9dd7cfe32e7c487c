"""Keystroke injection and key-state sampling via pynput."""

import logging
import threading
from typing import Any, Optional, Set

logger = logging.getLogger(__name__)


def key_name(key: Any) -> Optional[str]:
    """
    Normalise a pynput key to a lowercase name.

    Special keys use their enum name ("shift_l", "ctrl", "alt"); character
    keys use the character; unknown keys fall back to "vk<code>".
    """
    name = getattr(key, "name", None)
    if name:
        return name.lower()
    char = getattr(key, "char", None)
    if char:
        return char.lower()
    vk = getattr(key, "vk", None)
    return f"vk{vk}" if vk is not None else None


class PynputKeyboard:
    """Types text as synthetic OS-level keystrokes."""

    def __init__(self, controller: Any = None):
        if controller is None:
            from pynput.keyboard import Controller
            controller = Controller()
        self.controller = controller

    def type_text(self, text: str) -> None:
        """Type ``text``. Failures are logged, never raised."""
        try:
            self.controller.type(text)
        except Exception as e:
            logger.warning(f"Failed to type {len(text)} chars: {e}")


class PynputKeyState:
    """
    Tracks the set of currently held keys.

    A pynput listener thread records presses and releases; the capture
    node samples the set with ``pressed_keys`` on its own schedule.
    """

    def __init__(self):
        self._pressed: Set[str] = set()
        self._lock = threading.Lock()
        self._listener = None

    def start(self) -> "PynputKeyState":
        from pynput.keyboard import Listener

        self._listener = Listener(on_press=self._on_press, on_release=self._on_release)
        self._listener.daemon = True
        self._listener.start()
        return self

    def stop(self) -> None:
        if self._listener is not None:
            self._listener.stop()
            self._listener = None

    def pressed_keys(self) -> Set[str]:
        with self._lock:
            return set(self._pressed)

    def _on_press(self, key: Any) -> None:
        name = key_name(key)
        if name:
            with self._lock:
                self._pressed.add(name)

    def _on_release(self, key: Any) -> None:
        name = key_name(key)
        if name:
            with self._lock:
                self._pressed.discard(name)
