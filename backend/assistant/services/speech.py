"""
Speech output contract

The rendering layer plays utterances; this queue only guarantees that a new
utterance cancels the previous one so audio never overlaps.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
import uuid


@dataclass
class Utterance:
    id: str
    text: str
    created_at: datetime = field(default_factory=datetime.utcnow)
    cancelled: bool = False

    def to_dict(self) -> dict:
        return {"id": self.id, "text": self.text, "cancelled": self.cancelled}


class UtteranceQueue:
    """Holds at most one live utterance."""

    def __init__(self):
        self._current: Optional[Utterance] = None

    def speak(self, text: str) -> Utterance:
        self.cancel()
        utterance = Utterance(id=str(uuid.uuid4()), text=text)
        self._current = utterance
        return utterance

    def cancel(self) -> None:
        if self._current is not None:
            self._current.cancelled = True
            self._current = None

    @property
    def current(self) -> Optional[Utterance]:
        return self._current
