"""
Core logic: workspace sessions, turn execution, streaming chat.

A WorkspaceSession owns one workspace's conversations, event bus and running
turns. A turn appends the user message, snapshots history, streams a chat
completion from the active OpenAI-compatible provider and publishes
lifecycle events as the stream is decoded.
"""

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from vendorlink.bus import EventBus, Subscription
from vendorlink.config import (
    ABORTED_CODE, ERROR_BODY_LIMIT_BYTES, INTERRUPTED_CODE,
    Message, ProviderSource, SendMessageParams, get_chat_timeout_seconds,
    resolve_active_provider,
)
from vendorlink.errors import (
    ProtocolError, TransportError, TurnInterruptedError, VendorLinkError,
)
from vendorlink.events import (
    EngineType, SessionStarted, TextDelta, TurnCompleted, TurnError,
    TurnEvent, TurnStarted,
)
from vendorlink.sse import SSEDecoder
from vendorlink.store import ConversationStore

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return f"ses_{uuid.uuid4()}"


def new_turn_id() -> str:
    return f"turn_{uuid.uuid4()}"


def extract_delta(chunk: Any) -> Optional[str]:
    """
    Pull incremental text out of one decoded stream frame.

    OpenAI-style frames carry it at choices[0].delta.content; some gateways
    use choices[0].delta.text instead. Empty strings count as no text.
    """
    try:
        delta = chunk["choices"][0]["delta"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(delta, dict):
        return None
    for key in ("content", "text"):
        value = delta.get(key)
        if isinstance(value, str):
            return value or None
    return None


@dataclass
class _TurnState:
    """Which lifecycle events a turn has emitted so far."""

    turn_id: str
    started: bool = False
    finished: bool = False


# ─────────────────────────────────────────────────────────────────────
# WORKSPACE SESSION
# ─────────────────────────────────────────────────────────────────────

class WorkspaceSession:
    """
    Turn executor for one workspace.

    Cancellation has two tiers:
    - interrupt(): cooperative flag, checked before every network read of
      every in-flight turn of this workspace
    - interrupt_and_abort(): also cancels every tracked task at once
    """

    def __init__(
        self,
        workspace_id: str,
        provider_source: ProviderSource,
        bus: Optional[EventBus] = None,
        store: Optional[ConversationStore] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            workspace_id: Workspace this session serves
            provider_source: Callable returning the configured providers
            bus: Event bus (a private one is created if omitted)
            store: Conversation store (a private one is created if omitted)
            timeout_seconds: Chat request timeout (env default if omitted)
            transport: httpx transport override, used by tests
        """
        self.workspace_id = workspace_id
        self._provider_source = provider_source
        self.bus = bus or EventBus()
        self.store = store or ConversationStore()
        self.timeout_seconds = timeout_seconds or get_chat_timeout_seconds()
        self._transport = transport
        self._active_tasks: dict[str, asyncio.Task] = {}
        self.interrupted = False

    # ── Subscription and events ─────────────────────────────────────

    def subscribe(self) -> Subscription:
        return self.bus.subscribe()

    def _emit(self, turn: _TurnState, event) -> None:
        if isinstance(event, TurnStarted):
            turn.started = True
        elif isinstance(event, (TurnCompleted, TurnError)):
            turn.finished = True
        self.bus.publish(TurnEvent(turn_id=turn.turn_id, event=event))

    def emit_error(self, turn_id: str, error: str, code: Optional[str] = None) -> None:
        """Publish a TurnError for a turn that failed outside send_message."""
        self.bus.publish(TurnEvent(
            turn_id=turn_id,
            event=TurnError(workspace_id=self.workspace_id, error=error, code=code),
        ))

    # ── Task registry ───────────────────────────────────────────────

    def track_task(self, turn_id: str, task: asyncio.Task) -> None:
        self._active_tasks[turn_id] = task

    def _clear_task(self, turn_id: str) -> None:
        if self._active_tasks.get(turn_id) is asyncio.current_task():
            del self._active_tasks[turn_id]

    @property
    def active_turns(self) -> list[str]:
        return list(self._active_tasks)

    def spawn_turn(self, params: SendMessageParams, turn_id: Optional[str] = None) -> asyncio.Task:
        """
        Run a turn as a tracked background task.

        Failures that happen before the turn could emit its own terminal event
        (configuration, unknown session) are reported with emit_error so
        subscribers always learn how the turn ended.
        """
        turn = _TurnState(turn_id or new_turn_id())
        task = asyncio.create_task(self._run_spawned(params, turn))
        self.track_task(turn.turn_id, task)
        return task

    async def _run_spawned(self, params: SendMessageParams, turn: _TurnState) -> None:
        try:
            await self._run_turn(params, turn)
        except VendorLinkError as e:
            if not turn.finished:
                self.emit_error(turn.turn_id, str(e))
            logger.warning(f"Turn {turn.turn_id} failed: {e}")

    # ── Cancellation ────────────────────────────────────────────────

    def interrupt(self) -> None:
        """Ask every in-flight turn of this workspace to stop at its next read."""
        self.interrupted = True

    async def interrupt_and_abort(self) -> int:
        """
        Interrupt, then cancel and forget every tracked task.

        A cancelled turn that already announced TurnStarted gets a
        TurnError(code=ABORTED) so its event sequence still ends in exactly
        one terminal event. Returns the number of tasks cancelled.
        """
        self.interrupted = True
        tasks = list(self._active_tasks.values())
        self._active_tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Aborted {len(tasks)} turn(s) in workspace {self.workspace_id}")
        return len(tasks)

    # ── Turn execution ──────────────────────────────────────────────

    async def history(self, session_id: str) -> list[Message]:
        return await self.store.snapshot(session_id)

    async def sessions(self) -> list[str]:
        return await self.store.session_ids()

    async def send_message(self, params: SendMessageParams, turn_id: str) -> None:
        """
        Execute one turn and wait for it to finish.

        Raises:
            ConfigurationError: No complete, enabled provider
            SessionNotFoundError: continue_session for an unknown session
            ProtocolError: Vendor returned a non-2xx status
            TransportError: Connect/timeout/read failure
            TurnInterruptedError: Workspace interrupted mid-stream
        """
        await self._run_turn(params, _TurnState(turn_id))

    async def _run_turn(self, params: SendMessageParams, turn: _TurnState) -> None:
        try:
            await self._execute(params, turn)
        except asyncio.CancelledError:
            if turn.started and not turn.finished:
                self._emit(turn, TurnError(
                    workspace_id=self.workspace_id, error="Aborted", code=ABORTED_CODE,
                ))
            raise
        finally:
            self._clear_task(turn.turn_id)

    async def _execute(self, params: SendMessageParams, turn: _TurnState) -> None:
        self.interrupted = False

        vendor = resolve_active_provider(self._provider_source())
        model = (params.model or "").strip() or vendor.default_model

        is_new_session = not params.continue_session or not params.session_id
        session_id = new_session_id() if is_new_session else params.session_id
        await self.store.ensure_session(session_id, must_exist=not is_new_session)

        if is_new_session:
            self._emit(turn, SessionStarted(
                workspace_id=self.workspace_id,
                session_id=session_id,
                engine=EngineType.OPENAI,
            ))
        self._emit(turn, TurnStarted(workspace_id=self.workspace_id, turn_id=turn.turn_id))
        logger.info(f"Turn {turn.turn_id} started (session={session_id}, model={model})")

        await self.store.append(session_id, Message(role="user", content=params.text))
        messages = await self.store.snapshot(session_id)

        payload = {
            "model": model,
            "messages": [m.to_wire() for m in messages],
            "stream": True,
        }
        headers = {
            "Authorization": f"Bearer {vendor.api_key}",
            "Content-Type": "application/json",
        }

        assistant_text = await self._stream_chat(
            turn, f"{vendor.base_url}/chat/completions", payload, headers,
        )

        if assistant_text.strip():
            await self.store.append(session_id, Message(role="assistant", content=assistant_text))

        self._emit(turn, TurnCompleted(
            workspace_id=self.workspace_id,
            result={"engine": EngineType.OPENAI.value, "sessionId": session_id},
        ))
        logger.info(f"Turn {turn.turn_id} completed ({len(assistant_text)} chars)")

    async def _stream_chat(
        self,
        turn: _TurnState,
        url: str,
        payload: dict,
        headers: dict,
    ) -> str:
        """Stream one chat completion, emitting deltas. Returns the full text."""
        assistant_text = ""

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                async with client.stream("POST", url, json=payload, headers=headers) as response:
                    if not response.is_success:
                        body = await _read_error_body(response)
                        status = f"{response.status_code} {response.reason_phrase}".strip()
                        error = f"OpenAI Compatible request failed ({status}): {body}"
                        self._emit(turn, TurnError(
                            workspace_id=self.workspace_id,
                            error=error,
                            code=str(response.status_code),
                        ))
                        raise ProtocolError(error, status_code=response.status_code)

                    decoder = SSEDecoder()
                    chunks = response.aiter_bytes()
                    try:
                        while not decoder.done:
                            if self.interrupted:
                                self._emit(turn, TurnError(
                                    workspace_id=self.workspace_id,
                                    error="Interrupted",
                                    code=INTERRUPTED_CODE,
                                ))
                                raise TurnInterruptedError("Interrupted")
                            try:
                                chunk = await chunks.__anext__()
                            except StopAsyncIteration:
                                break
                            for data in decoder.feed(chunk):
                                try:
                                    frame = json.loads(data)
                                except json.JSONDecodeError:
                                    logger.debug(f"Skipping malformed frame: {data[:200]}")
                                    continue
                                text = extract_delta(frame)
                                if text:
                                    assistant_text += text
                                    self._emit(turn, TextDelta(workspace_id=self.workspace_id, text=text))
                    finally:
                        await chunks.aclose()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            error = f"OpenAI Compatible stream failed: {e}"
            self._emit(turn, TurnError(workspace_id=self.workspace_id, error=error))
            raise TransportError(error) from e

        return assistant_text


async def _read_error_body(response: httpx.Response) -> str:
    """Read at most ERROR_BODY_LIMIT_BYTES of an error response."""
    body = b""
    try:
        async for chunk in response.aiter_bytes():
            body += chunk
            if len(body) >= ERROR_BODY_LIMIT_BYTES:
                break
    except httpx.HTTPError:
        return "<failed to read error body>"
    return body[:ERROR_BODY_LIMIT_BYTES].decode("utf-8", errors="replace")


# ─────────────────────────────────────────────────────────────────────
# ENGINE MANAGER
# ─────────────────────────────────────────────────────────────────────

class EngineManager:
    """
    Owns one WorkspaceSession per workspace id.

    Usage:
        manager = EngineManager(load_providers_from_env)
        sub = manager.subscribe("ws-1")
        task = manager.send_message("ws-1", SendMessageParams(text="Hi"))
    """

    def __init__(self, provider_source: ProviderSource, **session_kwargs):
        self._provider_source = provider_source
        self._session_kwargs = session_kwargs
        self._sessions: dict[str, WorkspaceSession] = {}

    def get_session(self, workspace_id: str) -> WorkspaceSession:
        session = self._sessions.get(workspace_id)
        if session is None:
            session = WorkspaceSession(workspace_id, self._provider_source, **self._session_kwargs)
            self._sessions[workspace_id] = session
        return session

    def workspaces(self) -> list[str]:
        return list(self._sessions)

    def subscribe(self, workspace_id: str) -> Subscription:
        return self.get_session(workspace_id).subscribe()

    def send_message(
        self,
        workspace_id: str,
        params: SendMessageParams,
        turn_id: Optional[str] = None,
    ) -> asyncio.Task:
        """Start a turn in the background. Outcome arrives on the workspace bus."""
        return self.get_session(workspace_id).spawn_turn(params, turn_id)

    async def interrupt(self, workspace_id: str, force: bool = False) -> None:
        session = self._sessions.get(workspace_id)
        if session is None:
            return
        if force:
            await session.interrupt_and_abort()
        else:
            session.interrupt()
