"""User-facing notices emitted at the end of an update cycle."""

from __future__ import annotations

import logging
from typing import Any, Protocol


_LOGGER = logging.getLogger(__name__)


class Notifier(Protocol):
    """Protocol describing how cycle results reach the user."""

    def show_info(self, title: str, message: str) -> None:
        """Display an informational notice."""

    def show_error(self, title: str, message: str) -> None:
        """Display an error report."""


class LoggingNotifier:
    """Report notices through the log only (headless hosts, automated runs)."""

    def show_info(self, title: str, message: str) -> None:
        _LOGGER.info("%s: %s", title, message.replace("\n\n", " "))

    def show_error(self, title: str, message: str) -> None:
        _LOGGER.error("%s: %s", title, message.replace("\n\n", " "))


class MessageBoxNotifier:
    """Show notices with Tk message boxes, falling back to the log."""

    def __init__(self, dialogs: Any | None = None) -> None:
        self._dialogs = dialogs
        self._fallback = LoggingNotifier()

    def show_info(self, title: str, message: str) -> None:
        self._show("showinfo", title, message)

    def show_error(self, title: str, message: str) -> None:
        self._show("showerror", title, message)

    def _show(self, method: str, title: str, message: str) -> None:
        dialogs = self._dialogs
        root = None
        try:
            if dialogs is None:
                import tkinter as tk
                from tkinter import messagebox as dialogs

                root = tk.Tk()
                root.withdraw()
            options: dict[str, Any] = {}
            if root is not None:
                options["parent"] = root
            getattr(dialogs, method)(title, message, **options)
        except Exception:
            _LOGGER.debug("Unable to display update dialog", exc_info=True)
            if method == "showerror":
                self._fallback.show_error(title, message)
            else:
                self._fallback.show_info(title, message)
        finally:
            if root is not None:
                try:
                    root.destroy()
                except Exception:
                    _LOGGER.debug("Unable to close update dialog root", exc_info=True)


__all__ = ["LoggingNotifier", "MessageBoxNotifier", "Notifier"]
