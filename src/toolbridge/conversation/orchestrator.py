"""Conversation loop between the user, the model and the tool dispatcher.

For one user message the orchestrator sends the full history plus the tool
catalog to the model, executes any requested tool calls concurrently, appends
their results in request order and asks the model again, until the model
answers with plain text or the round-trip cap is reached.

Only one user message may be in flight at a time. The history is mutated
exclusively by the coroutine handling that message; tool calls run
concurrently but hand their results back through ``asyncio.gather``.
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any, Protocol

from toolbridge.conversation.listener import ConversationListener
from toolbridge.conversation.store import HistoryStore
from toolbridge.conversation.types import (
    ChatMessage,
    ConversationState,
    ModelReply,
    ModelText,
    ToolCall,
    ToolCallRequest,
    ToolCallResult,
    ToolResult,
    Turn,
    TurnOutcome,
    UserText,
)
from toolbridge.errors import ConversationBusyError, IterationLimitExceeded
from toolbridge.schema.types import ToolDeclaration

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 8
DEFAULT_MODEL_TIMEOUT_SECONDS = 120.0
DEFAULT_WELCOME_MESSAGE = "Hi! Ask me anything about your data and I'll look it up for you."
EMPTY_RESPONSE_TEXT = "I don't have a response for that."


class ModelCollaborator(Protocol):
    async def generate(
        self, history: Sequence[Turn], catalog: Sequence[ToolDeclaration]
    ) -> ModelReply: ...


class ToolDispatcher(Protocol):
    async def dispatch(self, tool_name: str, arguments: Any) -> Any: ...


class _NullListener:
    def on_message_appended(self, message: ChatMessage) -> None:
        pass

    def on_last_message_updated(self, message: ChatMessage) -> None:
        pass


def _progress_text(calls: list[ToolCall]) -> str:
    names = list(dict.fromkeys(call.tool_name for call in calls))
    return f"Calling {', '.join(names)}..."


class ConversationOrchestrator:
    """Owns the chat history and drives the model/tool loop.

    Attributes:
        model: Model collaborator producing text and tool calls
        dispatcher: Executes tool calls, never raises for dispatch failures
        catalog: Tool declarations sent to the model on every request
        store: Persistence for visible messages, None to keep history in memory
        listener: Default receiver of message notifications
        max_iterations: Maximum tool rounds per user message
        model_timeout: Ceiling in seconds for a single model request
        welcome_message: Text of the synthetic first turn
        state: Current ConversationState
    """

    def __init__(
        self,
        model: ModelCollaborator,
        dispatcher: ToolDispatcher,
        catalog: Sequence[ToolDeclaration],
        store: HistoryStore | None = None,
        listener: ConversationListener | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        model_timeout: float = DEFAULT_MODEL_TIMEOUT_SECONDS,
        welcome_message: str = DEFAULT_WELCOME_MESSAGE,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")

        self.model = model
        self.dispatcher = dispatcher
        self.catalog = list(catalog)
        self.store = store
        self.listener: ConversationListener = listener or _NullListener()
        self.max_iterations = max_iterations
        self.model_timeout = model_timeout
        self.welcome_message = welcome_message
        self.state = ConversationState.IDLE

        self._history: list[Turn] = [ModelText(welcome_message)]
        self._messages: list[ChatMessage] = [ChatMessage(welcome_message, is_user=False)]
        self._in_flight = False
        self._task: asyncio.Task | None = None

    @property
    def history(self) -> tuple[Turn, ...]:
        """The full ordered turn history, tool scaffolding included."""
        return tuple(self._history)

    @property
    def busy(self) -> bool:
        return self._in_flight

    def visible_messages(self) -> list[ChatMessage]:
        """User and model messages in display order."""
        return list(self._messages)

    def restore(self) -> None:
        """Load persisted messages, or start with the welcome turn."""
        messages = self.store.load() if self.store is not None else []
        if not messages:
            self._reset()
            logger.info("Starting conversation with welcome message")
            return

        self._messages = messages
        self._history = [
            UserText(m.text) if m.is_user else ModelText(m.text) for m in messages
        ]
        logger.info(f"Restored {len(messages)} messages from history")

    def clear(self) -> None:
        """Reset to the welcome turn and persist immediately.

        Raises:
            ConversationBusyError: If a message is being handled
        """
        if self._in_flight:
            raise ConversationBusyError("Cannot clear while a message is being handled")
        self._reset()
        self._persist()
        logger.info("Conversation cleared")

    async def submit(
        self, text: str, listener: ConversationListener | None = None
    ) -> TurnOutcome:
        """Handle one user message until the model produces a final answer.

        Args:
            text: The user's message
            listener: Receiver for this message's notifications, defaults to
                the orchestrator's listener

        Returns:
            TurnOutcome: The terminal text turn and what it took to get there

        Raises:
            ValueError: If the text is empty
            ConversationBusyError: If another message is still in flight
        """
        if not text or not text.strip():
            raise ValueError("Message text must not be empty")
        if self._in_flight:
            raise ConversationBusyError("A message is already being handled")

        self._in_flight = True
        self._task = asyncio.ensure_future(self._run_turn(text, listener or self.listener))
        try:
            return await self._task
        finally:
            self._in_flight = False
            self._task = None

    async def close(self) -> None:
        """Cancel in-flight work and persist the last consistent history."""
        task = self._task
        if task is not None and not task.done():
            logger.info("Cancelling in-flight conversation turn")
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._persist()

    async def _run_turn(self, text: str, listener: ConversationListener) -> TurnOutcome:
        logger.info(f"Handling user message ({len(text)} characters)")

        self._history.append(UserText(text))
        self._append_message(ChatMessage(text, is_user=True), listener)
        self._append_message(ChatMessage("", is_user=False, is_loading=True), listener)

        outcome = TurnOutcome(reply=ModelText(""))
        try:
            reply_text = await self._loop(outcome, listener)
            self.state = ConversationState.IDLE
        except IterationLimitExceeded as e:
            logger.warning(f"Stopping after {e.limit} tool rounds without a text answer")
            outcome.limit_reached = True
            reply_text = (
                f"I stopped after {e.limit} rounds of tool calls without reaching "
                "an answer. Please try rephrasing or narrowing your request."
            )
            self.state = ConversationState.IDLE
        except asyncio.TimeoutError:
            logger.error(f"Model did not respond within {self.model_timeout}s")
            outcome.error = f"The model did not respond within {self.model_timeout:g} seconds"
            reply_text = f"Sorry, I encountered an error: {outcome.error}"
            self.state = ConversationState.ERROR_REPORTED
        except asyncio.CancelledError:
            self._discard_incomplete()
            self.state = ConversationState.IDLE
            raise
        except Exception as e:
            logger.exception("Conversation turn failed")
            outcome.error = str(e) or type(e).__name__
            reply_text = f"Sorry, I encountered an error: {outcome.error}"
            self.state = ConversationState.ERROR_REPORTED

        outcome.reply = ModelText(reply_text)
        self._history.append(outcome.reply)
        self._update_last_message(ChatMessage(reply_text, is_user=False), listener)
        self._persist()
        return outcome

    async def _loop(self, outcome: TurnOutcome, listener: ConversationListener) -> str:
        rounds = 0
        while True:
            self.state = ConversationState.AWAITING_MODEL
            reply = await asyncio.wait_for(
                self.model.generate(list(self._history), self.catalog),
                self.model_timeout,
            )
            outcome.round_trips += 1

            if not reply.tool_calls:
                return reply.text.strip() or EMPTY_RESPONSE_TEXT

            if rounds >= self.max_iterations:
                raise IterationLimitExceeded(self.max_iterations)
            rounds += 1

            calls = list(reply.tool_calls)
            self._history.append(ToolCallRequest(calls=calls))
            self.state = ConversationState.EXECUTING_TOOLS
            logger.info(
                f"Executing {len(calls)} tool call(s): "
                f"{', '.join(call.tool_name for call in calls)}"
            )
            self._update_last_message(
                ChatMessage(_progress_text(calls), is_user=False, is_loading=True),
                listener,
            )

            results = await self._execute(calls)
            self._history.append(ToolCallResult(results=results))
            outcome.tool_calls_executed.extend(calls)

    async def _execute(self, calls: list[ToolCall]) -> list[ToolResult]:
        async def run(call: ToolCall) -> ToolResult:
            try:
                payload = await self.dispatcher.dispatch(call.tool_name, call.arguments)
            except Exception as e:
                logger.error(f"Error executing {call.tool_name}: {e}")
                payload = {"status": "error", "error": f"Error executing {call.tool_name}: {e}"}
            return ToolResult(call_id=call.call_id, tool_name=call.tool_name, payload=payload)

        # gather keeps request order regardless of completion order
        return list(await asyncio.gather(*(run(call) for call in calls)))

    def _discard_incomplete(self) -> None:
        if self._history and isinstance(self._history[-1], ToolCallRequest):
            self._history.pop()
        if self._messages and self._messages[-1].is_loading:
            self._messages.pop()

    def _reset(self) -> None:
        self._history = [ModelText(self.welcome_message)]
        self._messages = [ChatMessage(self.welcome_message, is_user=False)]
        self.state = ConversationState.IDLE

    def _append_message(self, message: ChatMessage, listener: ConversationListener) -> None:
        self._messages.append(message)
        listener.on_message_appended(message)

    def _update_last_message(
        self, message: ChatMessage, listener: ConversationListener
    ) -> None:
        self._messages[-1] = message
        listener.on_last_message_updated(message)

    def _persist(self) -> None:
        if self.store is None:
            return
        try:
            self.store.save(self._messages)
        except OSError as e:
            logger.error(f"Failed to save chat history: {e}")
