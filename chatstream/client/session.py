"""Streaming chat session: one request/response exchange at a time.

Lifecycle of an exchange::

    IDLE -> SENDING -> STREAMING -> COMPLETED
               |           |
               +-----------+--> ERRORED

A session accepts a new send once the previous exchange has completed or
errored. ``close`` abandons an in-flight exchange without marking it as
errored and freezes the session's state.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Callable

import httpx

from chatstream.client.config import ClientConfig, get_client_config
from chatstream.client.decoder import StreamDecoder, StreamMode
from chatstream.client.reporting import HttpMetricsSink, MetricsReporter
from chatstream.client.tracker import RequestMetricsTracker
from chatstream.models import (
    ChatMessage,
    EndEvent,
    SessionState,
    SourcesEvent,
    StreamEvent,
    TokenEvent,
)
from chatstream.models.schemas import ChatRequest, HistoryItem

logger = logging.getLogger(__name__)

IN_FLIGHT_STATES = (SessionState.SENDING, SessionState.STREAMING)
CANCELLED_MESSAGE = "Request was cancelled"


class StreamingChatSession:
    """Sends chat messages and applies streamed responses to a live message.

    Args:
        config: Client configuration; loaded from environment if omitted.
        client: HTTP client to use. A client created by the session is
            closed by ``aclose``.
        reporter: Metrics side-channel. Defaults to posting to the server's
            logging endpoints.
        on_update: Called with the live assistant message after every
            applied event, and on state changes with the latest message.
        clock: Monotonic clock in seconds used for request timing.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        client: httpx.AsyncClient | None = None,
        reporter: MetricsReporter | None = None,
        on_update: Callable[[ChatMessage], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or get_client_config()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self._config.request_timeout)
        self.reporter = reporter or MetricsReporter(HttpMetricsSink(self._client, self._config))
        self.tracker = RequestMetricsTracker(reporter=self.reporter, clock=clock)
        self._on_update = on_update
        self._closed = asyncio.Event()
        self._task: asyncio.Task[ChatMessage | None] | None = None

        self.session_id: str = str(uuid.uuid4())
        self.state: SessionState = SessionState.IDLE
        self.messages: list[ChatMessage] = []
        self.live_message: ChatMessage | None = None
        self.last_error: str | None = None

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def in_flight(self) -> bool:
        return self.state in IN_FLIGHT_STATES

    async def send(self, text: str, rag: bool = False) -> ChatMessage | None:
        """Send a user message and stream the assistant's reply.

        Empty input, a send while another exchange is in flight, and a send
        on a closed session are rejected without issuing a request.

        Args:
            text: The user's message.
            rag: Use the structured (SSE) RAG endpoint instead of plain chat.

        Returns:
            The finalized assistant message, or None when the send was
            rejected, failed, or was abandoned by ``close``.
        """
        message = text.strip()
        if not message or self.in_flight or self.closed:
            logger.debug(
                f"Rejected send (empty={not message}, state={self.state.value}, closed={self.closed})"
            )
            return None

        # Claim the session before the first await so concurrent sends see it busy
        self.state = SessionState.SENDING
        self.last_error = None
        self._task = asyncio.create_task(self._exchange(message, rag))
        try:
            return await self._task
        except asyncio.CancelledError:
            if self.closed:
                return None
            self._abandon()
            raise
        finally:
            self._task = None

    def _abandon(self) -> None:
        """Settle the session after the caller cancelled an exchange."""
        logger.info("Chat exchange cancelled by caller")
        if self.live_message is not None:
            self.live_message.finalize()
            self.live_message = None
        self.last_error = CANCELLED_MESSAGE
        self.state = SessionState.ERRORED

    def close(self) -> None:
        """Abandon any in-flight exchange; the session stops mutating."""
        if self.closed:
            return
        self._closed.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def aclose(self) -> None:
        """Close the session, wait for pending reports and release the client."""
        self.close()
        await self.reporter.drain()
        if self._owns_client:
            await self._client.aclose()

    def _history(self) -> list[HistoryItem]:
        if self._config.history_limit == 0:
            return []
        completed = [m for m in self.messages if m.finalized]
        return [
            HistoryItem(role=m.role, content=m.content)
            for m in completed[-self._config.history_limit:]
        ]

    async def _exchange(self, message: str, rag: bool) -> ChatMessage | None:
        request = ChatRequest(message=message, history=self._history(), rag=rag)
        user_message = ChatMessage(role="user", content=message)
        user_message.finalize()
        self.messages.append(user_message)

        request_id = uuid.uuid4().hex
        self.tracker.start(request_id, message)

        mode = StreamMode.STRUCTURED if rag else StreamMode.PLAIN
        path = self._config.rag_path if rag else self._config.chat_path
        headers = {"Accept": "text/event-stream"} if rag else {}

        try:
            async with self._client.stream(
                "POST",
                f"{self._config.api_base_url}{path}",
                json=request.model_dump(),
                headers=headers,
            ) as response:
                if not response.is_success:
                    self._fail_api(request_id, response.status_code, len(message))
                    return None
                return await self._consume(request_id, response, mode)
        except httpx.RequestError as e:
            if self.closed:
                return None
            self._fail_network(request_id, e, len(message))
            return None
        except asyncio.CancelledError:
            self.tracker.discard(request_id)
            raise

    async def _consume(
        self, request_id: str, response: httpx.Response, mode: StreamMode
    ) -> ChatMessage | None:
        self.state = SessionState.STREAMING
        self.live_message = ChatMessage(role="assistant", sources=[] if mode is StreamMode.STRUCTURED else None)
        self.messages.append(self.live_message)
        self._notify(self.live_message)

        decoder = StreamDecoder(mode)
        async for event in decoder.decode(response.aiter_bytes()):
            if self.closed:
                self.tracker.discard(request_id)
                return None
            self._apply(request_id, event)
            if isinstance(event, EndEvent):
                break

        if self.closed:
            self.tracker.discard(request_id)
            return None
        return self._complete(request_id)

    def _apply(self, request_id: str, event: StreamEvent) -> None:
        message = self.live_message
        if isinstance(event, TokenEvent):
            if event.text:
                self.tracker.on_first_token(request_id)
            self.tracker.on_token_observed(request_id)
            message.append(event.text)
            self._notify(message)
        elif isinstance(event, SourcesEvent):
            message.set_sources(list(event.sources))
            self._notify(message)

    def _complete(self, request_id: str) -> ChatMessage:
        message = self.live_message
        message.finalize()
        self.tracker.finish(request_id)
        self.state = SessionState.COMPLETED
        self.live_message = None
        self._notify(message)
        return message

    def _fail_api(self, request_id: str, status_code: int, input_length: int) -> None:
        logger.error(f"Chat request failed with HTTP {status_code} (input length {input_length})")
        self.tracker.discard(request_id)
        self.last_error = f"Server responded with {status_code}"
        self.state = SessionState.ERRORED
        self.reporter.report_error("api_error", status_code, input_length)

    def _fail_network(self, request_id: str, error: Exception, input_length: int) -> None:
        logger.error(f"Chat request failed: {error!r}")
        self.tracker.discard(request_id)
        self.last_error = self._config.apology_message

        # Replace the partial reply, or surface the apology as a reply
        message = self.live_message
        if message is None:
            message = ChatMessage(role="assistant")
            self.messages.append(message)
        message.content = self._config.apology_message
        message.finalize()

        self.live_message = None
        self.state = SessionState.ERRORED
        self.reporter.report_error("network_error", 0, input_length)
        self._notify(message)

    def _notify(self, message: ChatMessage) -> None:
        if self._on_update is None or self.closed:
            return
        try:
            self._on_update(message)
        except Exception as e:
            logger.warning(f"Update callback failed: {e}")
