"""State-machine based live translation session orchestration.

All session state lives on a ``SerialDispatcher``. Provider callbacks,
worker-thread results, the restart timer and UI commands are all posted to
it, so no two transitions ever interleave. Only the audio sink runs
elsewhere; it forwards frames to the current stream and touches nothing else.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

from dispatch import SerialDispatcher
from errors import (
    AUTH_UNKNOWN,
    AUTHORIZATION_ERRORS,
    ENGINE_START_FAILURE,
    ERROR_MESSAGES,
    NEGOTIATION_FAILED,
    NO_AUDIO_INPUT,
    NO_INPUT_DEVICE,
    PROVIDER_UNAVAILABLE,
    STATUS_MESSAGES,
    TRANSLATE_FAILED,
    CaptureError,
)
from interfaces import Authorizer, LanguageIdentifier, Recorder, TranscriptionProvider, TranslationProvider
from languages import DEFAULT_TARGET_LANGUAGE, same_language
from models import (
    AudioFrame,
    AuthorizationStatus,
    PendingTranslationRequest,
    SessionSnapshot,
    SessionState,
    StreamingError,
    StreamingErrorKind,
    TranscriptEvent,
    TranslationConfiguration,
    TranslationSession,
)

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionState, SessionState], None]
SnapshotCallback = Callable[[SessionSnapshot], None]

STATUS_IDLE = "Idle"
STATUS_LISTENING = "Listening..."
STATUS_RESTARTING = "Restarting..."
STATUS_STOPPED = "Stopped"
STATUS_AUTHORIZING = "Requesting authorization..."
STATUS_TRANSLATING = "Translating..."

_ACTIVE_STATES = (
    SessionState.AWAITING_AUTHORIZATION,
    SessionState.LISTENING,
    SessionState.RESTARTING,
)


class SessionManager:
    def __init__(
        self,
        recorder: Recorder,
        transcriber: TranscriptionProvider,
        language_identifier: LanguageIdentifier,
        translator: TranslationProvider,
        authorizer: Authorizer,
        target_language: str = DEFAULT_TARGET_LANGUAGE,
        restart_cooldown_s: float = 0.3,
        dispatcher: Optional[SerialDispatcher] = None,
        max_workers: int = 4,
        on_state_change: Optional[StateCallback] = None,
    ) -> None:
        self._recorder = recorder
        self._transcriber = transcriber
        self._language_identifier = language_identifier
        self._translator = translator
        self._authorizer = authorizer
        self._restart_cooldown_s = restart_cooldown_s
        self._on_state_change = on_state_change

        self._dispatcher = dispatcher or SerialDispatcher()
        self._workers = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="session-worker")
        self._subscribers: list[SnapshotCallback] = []
        self._subscribers_lock = threading.Lock()

        self._state = SessionState.IDLE
        self._target_language = target_language
        self._snapshot = SessionSnapshot(status_message=STATUS_IDLE, target_language=target_language)

        self._start_attempt = 0
        self._stream: Any = None
        self._stream_id = 0
        self._restart_timer: Optional[threading.Timer] = None
        self._restart_id = 0

        self._translation_session: Optional[TranslationSession] = None
        self._negotiating: Optional[TranslationConfiguration] = None
        self._negotiation_id = 0
        self._generation = 0
        self._pending: Optional[PendingTranslationRequest] = None

    # ------------------------------------------------------------------
    # Public API (any thread)
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def has_translation_session(self) -> bool:
        return self._translation_session is not None

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Register for snapshot updates; returns an unsubscribe callable."""
        with self._subscribers_lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._subscribers_lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def start(self) -> None:
        self._dispatcher.call(self._start)

    def stop(self) -> None:
        """Stop listening. Capture is torn down before this returns."""
        self._dispatcher.call(self._stop)

    def set_target_language(self, code: str) -> None:
        self._dispatcher.call(self._set_target_language, code)

    def make_translation_configuration(self) -> Optional[TranslationConfiguration]:
        """Configuration for the detected source and the current target.

        ``None`` means the spoken language already is the target language.
        """
        detected = self._snapshot.detected_language
        if not detected:
            return TranslationConfiguration(source_language=None, target_language=self._target_language)
        if same_language(detected, self._target_language):
            return None
        return TranslationConfiguration(source_language=detected, target_language=self._target_language)

    def close(self) -> None:
        self.stop()
        self._dispatcher.shutdown()
        self._workers.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Lifecycle (dispatcher thread)
    # ------------------------------------------------------------------

    def _start(self) -> None:
        if self._state in _ACTIVE_STATES:
            return
        self._start_attempt += 1
        attempt = self._start_attempt
        self._transition(SessionState.AWAITING_AUTHORIZATION)
        self._update(error_message=None, status_message=STATUS_AUTHORIZING)
        self._run_in_background(self._authorize, attempt)

    def _authorize(self, attempt: int) -> None:
        try:
            status = self._authorizer.request_authorization()
        except Exception:
            logger.exception("Authorization request failed")
            status = AuthorizationStatus.UNKNOWN
        self._dispatcher.submit(self._on_authorization, attempt, status)

    def _on_authorization(self, attempt: int, status: AuthorizationStatus) -> None:
        if attempt != self._start_attempt or self._state != SessionState.AWAITING_AUTHORIZATION:
            return
        if status != AuthorizationStatus.AUTHORIZED:
            self._fail(AUTHORIZATION_ERRORS.get(status, AUTH_UNKNOWN))
            return
        self._begin_recognition()

    def _begin_recognition(self) -> None:
        if not self._transcriber.is_available():
            self._fail(PROVIDER_UNAVAILABLE)
            return

        try:
            self._recorder.start(self._forward_frame)
        except CaptureError as exc:
            code = NO_AUDIO_INPUT if exc.code == NO_INPUT_DEVICE else ENGINE_START_FAILURE
            self._fail(code, exc.message)
            return
        except Exception as exc:
            self._fail(ENGINE_START_FAILURE, str(exc))
            return

        self._stream_id += 1
        stream_id = self._stream_id
        try:
            self._stream = self._transcriber.open_stream(
                lambda event: self._dispatcher.submit(self._on_transcript, stream_id, event),
                lambda error: self._dispatcher.submit(self._on_stream_error, stream_id, error),
                partial_results=True,
                prefer_local=self._transcriber.supports_local_processing(),
            )
        except Exception as exc:
            self._safe_stop_recorder()
            self._fail(ENGINE_START_FAILURE, str(exc))
            return

        self._transition(SessionState.LISTENING)
        self._update(is_listening=True, status_message=STATUS_LISTENING)

    def _stop(self) -> None:
        if self._state not in _ACTIVE_STATES:
            return
        self._start_attempt += 1
        self._cancel_restart_timer()
        self._cancel_pending_translation()
        self._teardown_recognition()
        self._release_translation_session()
        self._transition(SessionState.STOPPED)
        self._update(is_listening=False, status_message=STATUS_STOPPED)

    def _fail(self, code: str, detail: str = "") -> None:
        if detail:
            logger.warning("Session failed (%s): %s", code, detail)
        else:
            logger.warning("Session failed (%s)", code)
        self._cancel_restart_timer()
        self._cancel_pending_translation()
        self._teardown_recognition()
        self._release_translation_session()
        message = ERROR_MESSAGES[code]
        if detail:
            message = f"{message} ({detail})"
        self._transition(SessionState.FAILED)
        self._update(
            is_listening=False,
            error_message=message,
            status_message=STATUS_MESSAGES[code],
        )

    # ------------------------------------------------------------------
    # Restart policy (dispatcher thread)
    # ------------------------------------------------------------------

    def _on_transcript(self, stream_id: int, event: TranscriptEvent) -> None:
        if stream_id != self._stream_id or self._state != SessionState.LISTENING:
            return
        if event.text:
            self._update(recognized_text=event.text)
            self._detect_language(event.text)
            self._refresh_translation()
        if event.is_final and self._state == SessionState.LISTENING:
            self._schedule_restart("final result")

    def _on_stream_error(self, stream_id: int, error: StreamingError) -> None:
        if error.kind == StreamingErrorKind.SELF_CANCELLED:
            return
        if stream_id != self._stream_id or self._state != SessionState.LISTENING:
            logger.debug("Ignoring %s from inactive stream %s", error.kind.value, stream_id)
            return
        logger.warning("Recognition error (%s): %s", error.kind.value, error.message)
        self._schedule_restart(error.kind.value)

    def _schedule_restart(self, reason: str) -> None:
        logger.info("Restarting recognition in %.2fs: %s", self._restart_cooldown_s, reason)
        self._teardown_recognition()
        self._transition(SessionState.RESTARTING)
        self._update(status_message=STATUS_RESTARTING)
        self._restart_id += 1
        restart_id = self._restart_id
        self._cancel_restart_timer()
        timer = threading.Timer(
            self._restart_cooldown_s,
            lambda: self._dispatcher.submit(self._finish_restart, restart_id),
        )
        timer.daemon = True
        self._restart_timer = timer
        timer.start()

    def _finish_restart(self, restart_id: int) -> None:
        if restart_id != self._restart_id or self._state != SessionState.RESTARTING:
            return
        self._restart_timer = None
        self._begin_recognition()

    def _cancel_restart_timer(self) -> None:
        timer = self._restart_timer
        self._restart_timer = None
        if timer is not None:
            timer.cancel()

    # ------------------------------------------------------------------
    # Language gating (dispatcher thread)
    # ------------------------------------------------------------------

    def _detect_language(self, text: str) -> None:
        try:
            detected = self._language_identifier.detect(text)
        except Exception:
            logger.exception("Language detection failed")
            return
        if detected:
            self._update(detected_language=detected)

    def _set_target_language(self, code: str) -> None:
        if code == self._target_language:
            return
        logger.info("Target language changed: %s -> %s", self._target_language, code)
        self._target_language = code
        self._cancel_pending_translation()
        self._release_translation_session()
        self._update(target_language=code)

    # ------------------------------------------------------------------
    # Translation coalescing (dispatcher thread unless noted)
    # ------------------------------------------------------------------

    def _refresh_translation(self) -> None:
        self._generation += 1
        configuration = self.make_translation_configuration()
        if configuration is None:
            self._cancel_pending_translation()
            self._release_translation_session()
            self._update(translated_text="")
            return

        session = self._translation_session
        if session is not None and session.configuration != configuration:
            self._cancel_pending_translation()
            self._translation_session = None
            session = None

        if session is None:
            self._negotiate(configuration)
            return
        self._translate_latest()

    def _negotiate(self, configuration: TranslationConfiguration) -> None:
        if self._negotiating == configuration:
            return
        self._negotiation_id += 1
        self._negotiating = configuration
        self._run_in_background(self._run_negotiation, self._negotiation_id, configuration)

    def _run_negotiation(self, negotiation_id: int, configuration: TranslationConfiguration) -> None:
        # worker thread
        try:
            session = self._translator.negotiate_session(configuration)
        except Exception as exc:
            self._dispatcher.submit(self._on_negotiation_failed, negotiation_id, exc)
            return
        self._dispatcher.submit(self._on_session_ready, negotiation_id, session)

    def _on_session_ready(self, negotiation_id: int, session: TranslationSession) -> None:
        if negotiation_id != self._negotiation_id:
            return
        self._negotiating = None
        if self._state not in (SessionState.LISTENING, SessionState.RESTARTING):
            return
        if session.configuration != self.make_translation_configuration():
            return
        self._translation_session = session
        if self._snapshot.recognized_text:
            self._translate_latest()

    def _on_negotiation_failed(self, negotiation_id: int, exc: Exception) -> None:
        if negotiation_id != self._negotiation_id:
            return
        self._negotiating = None
        logger.warning("Translation session negotiation failed: %s", exc)
        self._update(status_message=STATUS_MESSAGES[NEGOTIATION_FAILED])

    def _translate_latest(self) -> None:
        session = self._translation_session
        text = self._snapshot.recognized_text
        if session is None or not text:
            return
        self._cancel_pending_translation()
        request = PendingTranslationRequest(text=text, generation=self._generation)
        self._pending = request
        self._run_in_background(self._run_translation, session, request)

    def _run_translation(self, session: TranslationSession, request: PendingTranslationRequest) -> None:
        # worker thread
        if request.cancelled.is_set():
            return
        try:
            translated = self._translator.translate(session, request.text, request.cancelled)
        except Exception as exc:
            self._dispatcher.submit(self._on_translation_failed, request, exc)
            return
        self._dispatcher.submit(self._on_translation_done, request, translated)

    def _on_translation_done(self, request: PendingTranslationRequest, translated: str) -> None:
        if not self._is_current(request):
            return
        self._pending = None
        self._update(translated_text=translated, status_message=STATUS_TRANSLATING)

    def _on_translation_failed(self, request: PendingTranslationRequest, exc: Exception) -> None:
        if not self._is_current(request):
            return
        self._pending = None
        logger.warning("Translation failed: %s", exc)
        self._update(status_message=STATUS_MESSAGES[TRANSLATE_FAILED])

    def _is_current(self, request: PendingTranslationRequest) -> bool:
        return not request.cancelled.is_set() and request.generation == self._generation

    def _cancel_pending_translation(self) -> None:
        pending = self._pending
        self._pending = None
        if pending is not None:
            pending.cancel()

    def _release_translation_session(self) -> None:
        self._translation_session = None
        self._negotiating = None
        self._negotiation_id += 1

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    def _forward_frame(self, frame: AudioFrame) -> None:
        # audio callback thread: no state changes here
        stream = self._stream
        if stream is None:
            return
        try:
            self._transcriber.feed(stream, frame)
        except Exception:
            logger.debug("Dropping audio frame", exc_info=True)

    def _teardown_recognition(self) -> None:
        stream = self._stream
        self._stream = None
        if stream is not None:
            try:
                self._transcriber.close_stream(stream)
            except Exception:
                logger.warning("Closing recognition stream failed", exc_info=True)
        self._safe_stop_recorder()

    def _safe_stop_recorder(self) -> None:
        try:
            self._recorder.stop()
        except Exception:
            logger.warning("Stopping recorder failed", exc_info=True)

    def _run_in_background(self, fn: Callable[..., None], *args: Any) -> None:
        try:
            self._workers.submit(fn, *args)
        except RuntimeError:
            logger.debug("Worker pool is shut down; dropping %s", fn.__name__)

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    def _update(self, **changes: Any) -> None:
        snapshot = dataclasses.replace(self._snapshot, **changes)
        if snapshot == self._snapshot:
            return
        self._snapshot = snapshot
        with self._subscribers_lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Snapshot subscriber failed")

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        self._update(state=to_state)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
