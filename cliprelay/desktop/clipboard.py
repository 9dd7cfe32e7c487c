"""Clipboard access via pyperclip."""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class PyperclipClipboard:
    """Reads the system clipboard. Returns None when no text is available."""

    def read_text(self) -> Optional[str]:
        import pyperclip

        try:
            text = pyperclip.paste()
        except pyperclip.PyperclipException as e:
            logger.warning(f"Clipboard unavailable: {e}")
            return None
        return text or None
