from __future__ import annotations

from typing import Iterable


class ProgramImportError(Exception):
    """Base class for conditions that abort a program import."""


class EmptyInputError(ProgramImportError, ValueError):
    """The uploaded file has no header line or no data lines."""


class NoSchedulableColumnsError(ProgramImportError, ValueError):
    """Columns needed to place a session on the calendar could not be found."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = sorted(missing)
        super().__init__(
            "Could not detect the column(s) needed to build sessions: " + ", ".join(self.missing)
        )
