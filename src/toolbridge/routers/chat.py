"""Chat API endpoints.

This module provides the endpoints for the single hosted conversation:
sending a message (complete response or SSE stream), reading the visible
messages and clearing the conversation.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sse_starlette.sse import EventSourceResponse

from toolbridge.conversation import (
    ChatMessage,
    ConversationOrchestrator,
    QueueListener,
    TurnOutcome,
)
from toolbridge.dependencies import get_orchestrator
from toolbridge.errors import ConversationBusyError
from toolbridge.models.chat import (
    ChatRequest,
    ChatResponse,
    DoneEvent,
    ErrorEvent,
    MessageListResponse,
    MessageResponse,
    ToolCallInfo,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])

# How often the stream checks for a finished turn while no event is queued
_POLL_INTERVAL_SECONDS = 0.1


def _busy_error() -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={
            "error": {
                "code": "conversation_busy",
                "message": "A message is already being handled",
                "details": {},
            }
        },
    )


def _validated_text(request_body: ChatRequest) -> str:
    text = request_body.message.strip()
    if not text:
        raise HTTPException(
            status_code=400,
            detail={
                "error": {
                    "code": "empty_message",
                    "message": "Message must not be empty",
                    "details": {},
                }
            },
        )
    return text


def _message_response(message: ChatMessage) -> MessageResponse:
    return MessageResponse(
        text=message.text, is_user=message.is_user, is_loading=message.is_loading
    )


def _chat_response(outcome: TurnOutcome, state: str) -> ChatResponse:
    return ChatResponse(
        message=MessageResponse(text=outcome.reply.text, is_user=False),
        state=state,
        tool_calls_executed=[
            ToolCallInfo(
                call_id=call.call_id,
                tool_name=call.tool_name,
                arguments=call.arguments if isinstance(call.arguments, dict) else {},
            )
            for call in outcome.tool_calls_executed
        ],
        round_trips=outcome.round_trips,
        limit_reached=outcome.limit_reached,
    )


@router.post("", response_model=ChatResponse)
async def chat_non_streaming(
    request_body: ChatRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> ChatResponse:
    """Send a message and receive the final answer.

    Tool calls requested by the model are executed before this returns.

    Args:
        request_body: Chat request containing the message
        orchestrator: Injected conversation orchestrator

    Returns:
        ChatResponse with the final assistant message

    Raises:
        HTTPException: 400 if the message is empty, 409 if another message
            is still being handled
    """
    text = _validated_text(request_body)

    try:
        outcome = await orchestrator.submit(text)
    except ConversationBusyError:
        raise _busy_error()

    logger.info(
        f"Answered after {outcome.round_trips} model request(s) and "
        f"{len(outcome.tool_calls_executed)} tool call(s)"
    )
    return _chat_response(outcome, orchestrator.state.value)


@router.post("/stream")
async def chat_streaming(
    request_body: ChatRequest,
    request: Request,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> EventSourceResponse:
    """Send a message and follow its progress via Server-Sent Events (SSE).

    SSE Events:
        - message_appended: A visible message was added (user message, loading placeholder)
        - message_updated: The last message changed (tool progress, final answer)
        - error: The message could not be handled
        - done: The turn is complete

    Raises:
        HTTPException: 400 if the message is empty, 409 if another message
            is still being handled
    """
    text = _validated_text(request_body)
    if orchestrator.busy:
        raise _busy_error()

    listener = QueueListener()

    async def event_generator():
        """Generate SSE events from the orchestrator's notifications."""
        turn = asyncio.ensure_future(orchestrator.submit(text, listener=listener))

        while not turn.done() or not listener.queue.empty():
            try:
                name, message = await asyncio.wait_for(
                    listener.queue.get(), _POLL_INTERVAL_SECONDS
                )
            except asyncio.TimeoutError:
                if await request.is_disconnected():
                    # The turn keeps running and is persisted when it finishes
                    logger.warning("Client disconnected during streaming")
                    return
                continue

            yield {
                "event": name,
                "data": _message_response(message).model_dump_json(),
            }

        try:
            outcome = turn.result()
        except ConversationBusyError:
            error_event = ErrorEvent(
                code="conversation_busy",
                message="A message is already being handled",
            )
            yield {"event": "error", "data": error_event.model_dump_json()}
            return
        except Exception as e:
            logger.error(f"Error during streaming: {e}")
            error_event = ErrorEvent(
                code="turn_failed",
                message=f"Failed to handle message: {str(e)}",
            )
            yield {"event": "error", "data": error_event.model_dump_json()}
            return

        done_event = DoneEvent(
            state=orchestrator.state.value,
            round_trips=outcome.round_trips,
            limit_reached=outcome.limit_reached,
        )
        yield {"event": "done", "data": done_event.model_dump_json()}

    return EventSourceResponse(event_generator())


@router.get("/messages", response_model=MessageListResponse)
async def list_messages(
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> MessageListResponse:
    """List the visible messages in display order."""
    return MessageListResponse(
        messages=[_message_response(m) for m in orchestrator.visible_messages()]
    )


@router.delete("", response_model=MessageListResponse)
async def clear_conversation(
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> MessageListResponse:
    """Reset the conversation to the welcome message.

    Raises:
        HTTPException: 409 if a message is still being handled
    """
    try:
        orchestrator.clear()
    except ConversationBusyError:
        raise _busy_error()

    return MessageListResponse(
        messages=[_message_response(m) for m in orchestrator.visible_messages()]
    )
