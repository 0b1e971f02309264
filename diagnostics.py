"""
Diagnostics side channel for the compiler.

Compilation never aborts on odd document content. Anything worth telling the
caller about (an unknown note length, a progression entry pointing at a
deleted section) is reported here instead.
"""

import logging
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Type

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class Diagnostic(BaseModel):
    """
    Base class for all diagnostics.

    Subclasses pass a unique ``kind`` keyword when they are defined and are
    registered automatically, so ``from_dict`` can rebuild the right type.
    """
    _registry: ClassVar[Dict[str, Type["Diagnostic"]]] = {}
    diagnostic_kind: ClassVar[str] = ""

    message: str = Field(..., description="Human readable description")

    def __init_subclass__(cls, kind: Optional[str] = None, **kwargs):
        super().__init_subclass__(**kwargs)
        if kind is not None:
            cls._registry[kind] = cls
            cls.diagnostic_kind = kind

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Diagnostic":
        """Build the registered subclass named by the ``kind`` key."""
        kind = data.get("kind")
        subclass = cls._registry.get(kind)
        if not subclass:
            raise ValueError(f"Unknown diagnostic kind: {kind}")
        return subclass(**{k: v for k, v in data.items() if k != "kind"})

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.diagnostic_kind, **self.model_dump()}


class UnknownNoteLength(Diagnostic, kind="unknownNoteLength"):
    noteLength: str
    fallback: str


class UnresolvedSection(Diagnostic, kind="unresolvedSection"):
    sectionId: str
    progressionIndex: int


class UnresolvedLocation(Diagnostic, kind="unresolvedLocation"):
    sectionIndex: int
    subSectionIndex: Optional[int] = None
    chordSequenceIndex: Optional[int] = None


class ExpansionLimit(Diagnostic, kind="expansionLimit"):
    expandedUnits: int
    limit: int


class LoggingSink:
    """Sink that only writes diagnostics to the log."""

    def report(self, diagnostic: Diagnostic) -> None:
        logger.warning(f"{diagnostic.diagnostic_kind}: {diagnostic.message}")


class DiagnosticLog(LoggingSink):
    """Sink that keeps every diagnostic it receives, in order, and logs it."""

    def __init__(self):
        self.entries: List[Diagnostic] = []

    def report(self, diagnostic: Diagnostic) -> None:
        super().report(diagnostic)
        self.entries.append(diagnostic)

    def kinds(self) -> List[str]:
        return [entry.diagnostic_kind for entry in self.entries]

    def to_list(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self.entries]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.entries)


_default_sink = LoggingSink()


def resolve_sink(sink=None):
    """Return ``sink`` or the module-level logging sink when it is None."""
    return sink if sink is not None else _default_sink
