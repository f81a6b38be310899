"""
Clipboard adapter backed by pyperclip.
"""

import logging
from typing import Optional

import pyperclip
from typing_extensions import override

from ai_shell.exceptions import BaseAppError
from ai_shell.ports.shell.shell_port import ClipboardPort


class PyperclipClipboard(ClipboardPort):
    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger(__name__)

    @override
    def copy(self, text: str) -> None:
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            self._logger.error(f"Error copying to clipboard: {e}")
            raise BaseAppError(f"Clipboard is not available: {str(e)}")
