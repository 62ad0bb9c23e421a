"""Interactive session state machine.

idle -> listening -> thinking -> speaking -> idle, with a listening -> idle
cancel path and a speaking -> listening barge-in path. Each user turn runs
exactly one pipeline turn while the session is ``thinking``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from voice_agent.errors import CaptureError
from voice_agent.llm.types import Message
from voice_agent.session.state import SessionState, is_question
from voice_agent.store.messages import StoredMessage
from voice_agent.utils import strip_markdown

if TYPE_CHECKING:
    from voice_agent.session.pipeline import ConversationPipeline
    from voice_agent.session.state import Narrator, QuestionPredicate, SpeechRecognizer
    from voice_agent.store.history import ConversationStore
    from voice_agent.store.pending import PendingQueue

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionState], None]
TranscriptCallback = Callable[[str, str], None]
ErrorCallback = Callable[[str], None]

DEFAULT_SETTLE_DELAY = 0.6
ERROR_NOTICE = "An error has occurred."


class SessionController:
    """Drives capture, turns and narration for the foreground session."""

    def __init__(
        self,
        pipeline: ConversationPipeline,
        recognizer: SpeechRecognizer,
        narrator: Narrator | None = None,
        *,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        always_narrate: bool = False,
        question_predicate: QuestionPredicate = is_question,
        wake_acknowledgement: str | None = None,
        pending: PendingQueue | None = None,
        history_store: ConversationStore | None = None,
        on_state: StateCallback | None = None,
        on_transcript: TranscriptCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._pipeline = pipeline
        self._recognizer = recognizer
        self._narrator = narrator
        self._settle_delay = settle_delay
        self._always_narrate = always_narrate
        self._is_question = question_predicate
        self._wake_acknowledgement = wake_acknowledgement
        self._pending = pending
        self._history_store = history_store
        self._on_state = on_state
        self._on_transcript = on_transcript
        self._on_error = on_error
        self._state = SessionState.IDLE
        self._capture_in_flight = False
        self._capture_epoch = 0
        self._resume_deferred = False
        self._auto_listen_task: asyncio.Task[None] | None = None
        pipeline.set_user_message_callback(self._narrate_side_channel)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def pipeline(self) -> ConversationPipeline:
        return self._pipeline

    @property
    def driving_mode(self) -> bool:
        return self._pipeline.driving_mode

    def set_driving_mode(self, enabled: bool) -> None:
        self._pipeline.set_driving_mode(enabled)

    @property
    def auto_listen_task(self) -> asyncio.Task[None] | None:
        """The scheduled driving-mode re-listen, if any."""
        return self._auto_listen_task

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        logger.debug("Session state %s -> %s", self._state.value, state.value)
        self._state = state
        if self._on_state is not None:
            self._on_state(state)

    def _should_narrate(self) -> bool:
        return self._narrator is not None and (self.driving_mode or self._always_narrate)

    def _emit_transcript(self, role: str, text: str) -> None:
        if self._on_transcript is not None:
            self._on_transcript(role, text)
        if self._history_store is not None:
            self._history_store.append(StoredMessage.now(role, text))  # type: ignore[arg-type]

    def _report_error(self, message: str) -> None:
        if self._on_error is not None:
            self._on_error(message)

    async def _narrate_side_channel(self, text: str) -> None:
        if self._should_narrate():
            await self._speak_quietly(strip_markdown(text))

    # -- user inputs -------------------------------------------------------

    async def press_mic(self) -> None:
        """Handle a manual mic press.

        Speaking: stop narration and listen at once (barge-in).
        Listening: cancel the capture and return to idle.
        Thinking: ignored.
        """
        if self._state is SessionState.SPEAKING:
            if self._narrator is not None:
                await self._narrator.stop()
            await self._listen(from_state=SessionState.SPEAKING)
        elif self._state is SessionState.LISTENING:
            await self.cancel_listening()
        elif self._state is SessionState.IDLE:
            await self._listen(from_state=SessionState.IDLE)

    async def handle_wake(self) -> None:
        """Start listening after a wake signal. Only honoured while idle."""
        if self._state is not SessionState.IDLE:
            return
        if self._wake_acknowledgement and self._narrator is not None:
            await self._speak_quietly(self._wake_acknowledgement)
        await self._listen(from_state=SessionState.IDLE)

    async def cancel_listening(self) -> None:
        """Abort the current capture. The model call of a running turn is unaffected."""
        if self._state is not SessionState.LISTENING:
            return
        self._capture_epoch += 1
        await self._recognizer.cancel()
        await self._become_idle()

    async def submit_text(self, text: str) -> str | None:
        """Run a typed turn. Returns None when the session is busy or the text is empty."""
        if self._state is not SessionState.IDLE or not text.strip():
            return None
        return await self._process(text.strip())

    # -- capture and turns ---------------------------------------------------

    async def _listen(self, *, from_state: SessionState) -> str | None:
        if self._capture_in_flight:
            logger.debug("Listen rejected: capture already in flight")
            return None
        if self._state is not from_state:
            return None
        self._capture_in_flight = True
        self._capture_epoch += 1
        epoch = self._capture_epoch
        self._set_state(SessionState.LISTENING)
        try:
            transcript = await self._recognizer.listen(self._pipeline.language)
        except CaptureError as exc:
            if not exc.transient:
                logger.warning("Capture failed: %s", exc)
                if epoch == self._capture_epoch:
                    self._set_state(SessionState.IDLE)
                    self._report_error(str(exc))
                    await self._drain_deferred()
                return None
            transcript = ""
        finally:
            self._capture_in_flight = False

        if epoch != self._capture_epoch:
            logger.debug("Discarding cancelled capture")
            return None
        if not transcript.strip():
            await self._become_idle()
            return None
        return await self._process(transcript.strip())

    async def _process(self, text: str) -> str | None:
        self._set_state(SessionState.THINKING)
        self._emit_transcript("user", text)
        try:
            reply = await self._pipeline.run_turn(text)
        except Exception as exc:
            self._set_state(SessionState.IDLE)
            self._report_error(str(exc))
            if self.driving_mode and self._narrator is not None:
                await self._speak_quietly(ERROR_NOTICE)
            await self._drain_deferred()
            return None

        self._emit_transcript("assistant", reply)
        if not self._should_narrate():
            await self._become_idle()
            return reply

        self._set_state(SessionState.SPEAKING)
        await self._speak_quietly(strip_markdown(reply))
        if self._state is not SessionState.SPEAKING:
            return reply
        await asyncio.sleep(self._settle_delay)
        if self._state is not SessionState.SPEAKING:
            return reply
        await self._become_idle()
        if self._state is SessionState.IDLE and self.driving_mode and self._is_question(reply):
            self._auto_listen_task = asyncio.create_task(self._auto_listen(self._capture_epoch))
        return reply

    async def _become_idle(self) -> None:
        self._set_state(SessionState.IDLE)
        await self._drain_deferred()

    async def _drain_deferred(self) -> None:
        if self._resume_deferred and self._state is SessionState.IDLE:
            await self.resume()

    async def _auto_listen(self, epoch: int) -> None:
        if epoch != self._capture_epoch:
            logger.debug("Auto re-listen superseded by a manual capture")
            return
        if self._state is not SessionState.IDLE or self._capture_in_flight:
            logger.debug("Auto re-listen skipped")
            return
        await self._listen(from_state=SessionState.IDLE)

    async def _speak_quietly(self, text: str) -> None:
        try:
            await self._narrator.speak(text, self._pipeline.language)  # type: ignore[union-attr]
        except Exception:
            logger.warning("Narration failed", exc_info=True)

    # -- lifecycle -------------------------------------------------------------

    def restore_history(self, stored: list[StoredMessage] | None = None) -> int:
        """Seed model history from persisted transcript entries.

        Only the newest ``max_history_messages`` entries are imported.
        """
        if stored is None:
            stored = self._history_store.load_history() if self._history_store else []
        cap = self._pipeline.max_history_messages
        messages = [Message(role=entry.role, content=entry.text) for entry in stored[-cap:]]
        if messages:
            self._pipeline.import_history(messages)
        return len(messages)

    def reconfigure(self, pipeline: ConversationPipeline) -> None:
        """Swap in a pipeline built for new settings, carrying the history over."""
        pipeline.import_history(
            self._pipeline.export_history(), cap=pipeline.max_history_messages
        )
        pipeline.set_user_message_callback(self._narrate_side_channel)
        self._pipeline = pipeline
        logger.info("Session reconfigured")

    async def resume(self) -> list[StoredMessage]:
        """Drain background results into the conversation.

        Entries are appended to model history, reported through the transcript
        callback and, in driving mode, assistant entries are narrated. Outside
        ``idle`` the drain is deferred until the current turn has finished.
        """
        if self._pending is None:
            return []
        if self._state is not SessionState.IDLE:
            logger.debug("Resume deferred while %s", self._state.value)
            self._resume_deferred = True
            return []
        self._resume_deferred = False
        entries = self._pending.drain()
        if not entries:
            return []
        self._pipeline.append_to_history(
            Message(role=entry.role, content=entry.text) for entry in entries
        )
        for entry in entries:
            self._emit_transcript(entry.role, entry.text)
        if self.driving_mode and self._narrator is not None:
            for entry in entries:
                if entry.role == "assistant":
                    await self._speak_quietly(strip_markdown(entry.text))
        return entries
