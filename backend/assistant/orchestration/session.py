"""
Dialogue session state

Everything the orchestrator owns for one conversation:
- Append-only message log
- The single active flow slot (at most one flow is ever active)
- The pending-confirmation gate
- Completion snapshots, one per flow kind
- Capability notices already shown
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional
import uuid

from assistant.orchestration.flows import FlowKind, get_machine, kind_of_state


GREETING = "Hi, I'm your retirement assistant. How can I help you?"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class InputSource(str, Enum):
    TEXT = "text"
    VOICE = "voice"
    CHIP = "chip"


class ActiveMode(str, Enum):
    NONE = "NONE"
    ENROLLMENT = "ENROLLMENT"
    LOAN = "LOAN"
    WITHDRAWAL = "WITHDRAWAL"
    VESTING = "VESTING"


@dataclass(frozen=True)
class Message:
    id: str
    role: MessageRole
    content: str
    timestamp: datetime

    @classmethod
    def create(cls, role: MessageRole, content: str) -> "Message":
        return cls(
            id=str(uuid.uuid4()),
            role=role,
            content=content,
            timestamp=datetime.utcnow(),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(
            id=data["id"],
            role=MessageRole(data["role"]),
            content=data["content"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


class MessageLog:
    """Ordered, append-only sequence of turns."""

    def __init__(self, messages: Optional[List[Message]] = None):
        self._messages: List[Message] = list(messages or [])

    def append(self, role: MessageRole, content: str) -> Message:
        message = Message.create(role, content)
        self._messages.append(message)
        return message

    def recent(self, count: int) -> List[Message]:
        if count <= 0:
            return []
        return list(self._messages[-count:])

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    @classmethod
    def with_greeting(cls) -> "MessageLog":
        log = cls()
        log.append(MessageRole.ASSISTANT, GREETING)
        return log


@dataclass(frozen=True)
class PendingConfirmation:
    """A yes/no gate interposed before a flow starts."""
    kind: FlowKind

    def to_dict(self) -> dict:
        return {"kind": self.kind.value}


@dataclass(frozen=True)
class CompletionSnapshot:
    """Frozen terminal state of a finished flow."""
    kind: FlowKind
    state: Any
    completed_at: datetime

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "state": self.state.to_dict(),
            "completed_at": self.completed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CompletionSnapshot":
        kind = FlowKind(data["kind"])
        return cls(
            kind=kind,
            state=get_machine(kind).state_from_dict(data["state"]),
            completed_at=datetime.fromisoformat(data["completed_at"]),
        )


@dataclass
class DialogueSession:
    """
    Mutable session owned by a single orchestrator.

    ``active_flow`` is the only place a flow state lives, so two flows can
    never be active together. ``active_mode`` is derived from it on every read.
    """
    thread_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    log: MessageLog = field(default_factory=MessageLog.with_greeting)
    active_flow: Optional[Any] = None
    pending: Optional[PendingConfirmation] = None
    snapshots: Dict[FlowKind, CompletionSnapshot] = field(default_factory=dict)
    notices_shown: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def active_kind(self) -> Optional[FlowKind]:
        if self.active_flow is None:
            return None
        return kind_of_state(self.active_flow)

    @property
    def active_mode(self) -> ActiveMode:
        kind = self.active_kind
        if kind is None:
            return ActiveMode.NONE
        return ActiveMode(kind.value.upper())

    @property
    def is_pending(self) -> bool:
        return self.pending is not None

    def to_dict(self) -> dict:
        active_kind = self.active_kind
        return {
            "thread_id": self.thread_id,
            "messages": [m.to_dict() for m in self.log],
            "active_flow": {
                "kind": active_kind.value,
                "state": self.active_flow.to_dict(),
            } if active_kind else None,
            "pending": self.pending.to_dict() if self.pending else None,
            "snapshots": {k.value: s.to_dict() for k, s in self.snapshots.items()},
            "notices_shown": list(self.notices_shown),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DialogueSession":
        active = data.get("active_flow")
        active_flow = None
        if active:
            active_flow = get_machine(FlowKind(active["kind"])).state_from_dict(active["state"])

        pending = data.get("pending")
        return cls(
            thread_id=data["thread_id"],
            log=MessageLog([Message.from_dict(m) for m in data.get("messages", [])]),
            active_flow=active_flow,
            pending=PendingConfirmation(FlowKind(pending["kind"])) if pending else None,
            snapshots={
                FlowKind(kind): CompletionSnapshot.from_dict(snapshot)
                for kind, snapshot in data.get("snapshots", {}).items()
            },
            notices_shown=list(data.get("notices_shown", [])),
            created_at=datetime.fromisoformat(data["created_at"]) if data.get("created_at") else datetime.utcnow(),
        )
