"""Hotkey combinations matched against a sampled set of pressed keys."""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Tuple

from cliprelay.core.errors import ConfigError

# Left shift + left control + left alt/option. pynput reports the left
# modifiers as the generic names on X11 and Windows, and option as "alt"
# on macOS, so each slot accepts both spellings.
DEFAULT_HOTKEY = "shift_l|shift+ctrl_l|ctrl+alt_l|alt"


@dataclass(frozen=True)
class HotkeyCombo:
    """
    A set of key slots that must all be held at once.

    Each slot is a group of alternative key names; the slot is satisfied
    when any one of them is pressed.
    """

    slots: Tuple[FrozenSet[str], ...]

    @classmethod
    def parse(cls, value: str) -> "HotkeyCombo":
        """
        Parse "a|b+c+d" into slots ({a, b}, {c}, {d}).

        Raises:
            ConfigError: If the value is empty or has an empty slot
        """
        slots = []
        for part in value.split("+"):
            names = frozenset(
                name.strip().lower() for name in part.split("|") if name.strip()
            )
            if not names:
                raise ConfigError(f"Invalid hotkey '{value}': empty key slot")
            slots.append(names)
        return cls(slots=tuple(slots))

    def matches(self, pressed: Iterable[str]) -> bool:
        pressed = {key.lower() for key in pressed}
        return all(slot & pressed for slot in self.slots)

    def __str__(self) -> str:
        return "+".join("|".join(sorted(slot)) for slot in self.slots)
