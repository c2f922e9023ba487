"""
Chat API routes

The rendering layer's entry points into the dialogue core: start a thread,
submit input events (text, voice or chip), read the log and flow state,
dismiss summaries, reset, and report speech capability problems.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from assistant.core import logger
from assistant.orchestration.flows import FlowKind
from assistant.orchestration.graphs import describe_flow_graph
from assistant.orchestration.orchestrator import CapabilityIssue
from assistant.orchestration.session import InputSource
from assistant.services.chat import ChatService, SessionNotFoundError, get_chat_service

router = APIRouter()


# Request/Response schemas
class ChatSessionResponse(BaseModel):
    thread_id: str
    created_at: str
    messages: List[Dict[str, Any]]


class ChatMessageRequest(BaseModel):
    thread_id: str
    message: str = Field(..., min_length=1, max_length=2000)
    source: InputSource = InputSource.TEXT


class ChatMessageResponse(BaseModel):
    thread_id: str
    message: Dict[str, Any]
    active_mode: str
    flow_state: Optional[Dict[str, Any]] = None
    pending: bool
    utterance: Optional[Dict[str, Any]] = None


class SessionStateResponse(BaseModel):
    thread_id: str
    active_mode: str
    flow_state: Optional[Dict[str, Any]] = None
    pending: Optional[Dict[str, Any]] = None
    snapshots: Dict[str, Any] = {}


class FlowGraphResponse(BaseModel):
    kind: str
    entry_steps: List[str]
    terminal_step: str
    nodes: List[str]
    edges: List[Dict[str, Any]]
    mermaid: str


class CapabilityIssueRequest(BaseModel):
    issue: CapabilityIssue


class CapabilityIssueResponse(BaseModel):
    notice: Optional[str] = None


def _not_found(thread_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Session {thread_id} not found",
    )


@router.post("/session", response_model=ChatSessionResponse)
async def create_chat_session(chat_service: ChatService = Depends(get_chat_service)):
    """Create a new chat session with the greeting."""
    orchestrator = chat_service.create_session()
    return ChatSessionResponse(
        thread_id=orchestrator.thread_id,
        created_at=orchestrator.session.created_at.isoformat(),
        messages=[m.to_dict() for m in orchestrator.messages],
    )


@router.post("/message", response_model=ChatMessageResponse)
async def send_message(
    request: ChatMessageRequest,
    chat_service: ChatService = Depends(get_chat_service),
):
    """Submit one input event."""
    try:
        result = await chat_service.process_message(
            thread_id=request.thread_id,
            message=request.message,
            source=request.source,
        )
    except SessionNotFoundError:
        raise _not_found(request.thread_id)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

    logger.info(f"Chat message in thread {request.thread_id} ({request.source.value})")
    return ChatMessageResponse(**result)


@router.get("/session/{thread_id}/messages", response_model=List[Dict[str, Any]])
async def get_session_messages(
    thread_id: str,
    chat_service: ChatService = Depends(get_chat_service),
):
    """Get all messages in a chat session."""
    try:
        return chat_service.get_messages(thread_id)
    except SessionNotFoundError:
        raise _not_found(thread_id)


@router.get("/session/{thread_id}/state", response_model=SessionStateResponse)
async def get_session_state(
    thread_id: str,
    chat_service: ChatService = Depends(get_chat_service),
):
    """Active mode, active flow state, pending gate and completion snapshots."""
    try:
        return SessionStateResponse(**chat_service.get_state(thread_id))
    except SessionNotFoundError:
        raise _not_found(thread_id)


@router.delete("/session/{thread_id}/snapshots/{kind}", status_code=status.HTTP_204_NO_CONTENT)
async def dismiss_snapshot(
    thread_id: str,
    kind: FlowKind,
    chat_service: ChatService = Depends(get_chat_service),
):
    """Dismiss a completion summary."""
    try:
        dismissed = chat_service.dismiss_snapshot(thread_id, kind)
    except SessionNotFoundError:
        raise _not_found(thread_id)

    if not dismissed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No {kind.value} summary to dismiss",
        )


@router.post("/session/{thread_id}/reset", response_model=SessionStateResponse)
async def reset_session(
    thread_id: str,
    chat_service: ChatService = Depends(get_chat_service),
):
    """Start over: greeting only, no active flow, summaries kept."""
    try:
        return SessionStateResponse(**(await chat_service.reset(thread_id)))
    except SessionNotFoundError:
        raise _not_found(thread_id)


@router.post("/session/{thread_id}/capability-issue", response_model=CapabilityIssueResponse)
async def report_capability_issue(
    thread_id: str,
    request: CapabilityIssueRequest,
    chat_service: ChatService = Depends(get_chat_service),
):
    """Report missing speech support; the notice is returned only once."""
    try:
        notice = chat_service.report_capability_issue(thread_id, request.issue)
    except SessionNotFoundError:
        raise _not_found(thread_id)
    return CapabilityIssueResponse(notice=notice)


@router.get("/flows/{kind}/graph", response_model=FlowGraphResponse)
async def get_flow_graph(kind: FlowKind):
    """Step graph of a scripted flow, as enforced on every transition."""
    return FlowGraphResponse(**describe_flow_graph(kind))
