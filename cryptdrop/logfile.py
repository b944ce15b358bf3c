"""Append-only text log."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class Logger:
    """Writes one line per message to the file at ``path``."""

    path: str | os.PathLike[str]

    def log(self, message: str) -> None:
        """Append ``message`` followed by a newline to the log file."""
        if message is None:
            raise ValueError("message is None")
        with open(self.path, "a", encoding="utf-8") as stream:
            stream.write(f"{message}\n")