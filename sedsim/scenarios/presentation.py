import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol

from sedsim.core.enums import Phase, Severity
from .base import Question

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Highlight:
    target_id: str
    text: str
    vital_label: Optional[str] = None
    vital_value: Optional[float] = None
    severity: Optional[Severity] = None


@dataclass(frozen=True)
class PendingQuestion:
    step_id: str
    question: Question


class PresentationSink(Protocol):
    """Where the scenario engine and coherence monitor send learner-facing output."""

    def emit_dialogue(self, lines: List[str]) -> None: ...

    def set_phase(self, phase: Optional[Phase]) -> None: ...

    def set_highlights(self, highlights: Optional[List[Highlight]]) -> None: ...

    def set_pending_question(self, pending: Optional[PendingQuestion]) -> None: ...


class RecordingSink:
    """
    Presentation sink that keeps everything it receives and logs dialogue.

    Used by the CLI for headless runs and by tests to assert on output.
    """
    def __init__(self):
        self.messages: List[List[str]] = []
        self.phase: Optional[Phase] = None
        self.phase_history: List[Optional[Phase]] = []
        self.highlights: Optional[List[Highlight]] = None
        self.highlight_history: List[Optional[List[Highlight]]] = []
        self.pending: Optional[PendingQuestion] = None
        self.question_history: List[PendingQuestion] = []

    def emit_dialogue(self, lines: List[str]) -> None:
        if not lines:
            return
        self.messages.append(list(lines))
        logger.info("\n".join(lines))

    def set_phase(self, phase: Optional[Phase]) -> None:
        self.phase = phase
        self.phase_history.append(phase)

    def set_highlights(self, highlights: Optional[List[Highlight]]) -> None:
        self.highlights = list(highlights) if highlights else None
        self.highlight_history.append(self.highlights)

    def set_pending_question(self, pending: Optional[PendingQuestion]) -> None:
        self.pending = pending
        if pending is not None:
            self.question_history.append(pending)
            logger.info("Question (%s): %s", pending.step_id, pending.question.prompt)

    @property
    def text(self) -> str:
        """All dialogue so far as one string."""
        return "\n".join("\n".join(lines) for lines in self.messages)
