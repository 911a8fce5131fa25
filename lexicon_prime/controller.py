"""Session controller: the stage state machine of a learning session."""

import asyncio
import time
from typing import Awaitable, Callable, Dict, FrozenSet, Mapping, Optional, Sequence, Union

import structlog
from pydantic import BaseModel, Field

from .config import CONNECTIVITY_ERROR_MESSAGE, PAGE_LOCK_MS
from .errors import InvalidTransitionError, LexiconError
from .image_fetcher import ArtifactMap, ImageFetch, ImageFetchOrchestrator, fetch_image
from .models import (
    EntryMode,
    ForgeLayers,
    LearningSession,
    NavigationCursor,
    SessionStage,
    WordEntry,
)
from .navigator import PageNavigator
from .openai_client import generate_session
from .pages import LAST_PAGE, PageContent, page_content
from .utils import dump_session_json, embedded_artifacts, parse_session_json

log = structlog.get_logger()

Generator = Callable[[str, EntryMode, Sequence[str]], Awaitable[LearningSession]]

S = SessionStage

TRANSITIONS: Dict[SessionStage, FrozenSet[SessionStage]] = {
    S.IDLE: frozenset({S.GENERATING, S.TEXT_SELECTION, S.FORGE_WIZARD, S.INTRO_CINEMATIC}),
    S.TEXT_SELECTION: frozenset({S.GENERATING, S.IDLE}),
    S.GENERATING: frozenset({S.INTRO_CINEMATIC, S.IDLE}),
    S.FORGE_WIZARD: frozenset({S.CUSTOM_VIEW, S.INTRO_CINEMATIC, S.IDLE}),
    S.CUSTOM_VIEW: frozenset({S.IDLE}),
    S.INTRO_CINEMATIC: frozenset({S.PARAGRAPH_PREVIEW}),
    S.PARAGRAPH_PREVIEW: frozenset({S.LEARNING_SEQUENCE}),
    S.LEARNING_SEQUENCE: frozenset({S.PARAGRAPH_REVIEW, S.PARAGRAPH_PREVIEW}),
    S.PARAGRAPH_REVIEW: frozenset({S.FINAL_ASSESSMENT}),
    S.FINAL_ASSESSMENT: frozenset({S.SESSION_COMPLETE}),
    S.SESSION_COMPLETE: frozenset({S.IDLE, S.LEARNING_SEQUENCE}),
}

# Stages a back/abort action may leave for IDLE
ABORTABLE = frozenset({S.TEXT_SELECTION, S.FORGE_WIZARD, S.CUSTOM_VIEW, S.GENERATING})

# Stages a session JSON may be loaded from
IMPORTABLE = frozenset({S.IDLE, S.FORGE_WIZARD})


class SessionState(BaseModel):
    """Everything the controller owns, in one place."""

    stage: SessionStage = SessionStage.IDLE
    mode: EntryMode = EntryMode.TOPIC
    input_text: str = ""
    session: Optional[LearningSession] = None
    cursor: NavigationCursor = Field(default_factory=NavigationCursor)
    error: Optional[str] = None
    forge_layers: Optional[ForgeLayers] = None


class SessionController:
    """Single source of truth for the active stage and the session data.

    Views read ``state`` and the read-model helpers and express intents by
    calling methods; they never mutate state directly. Page movement is
    delegated to ``navigator``, artwork to ``images``.
    """

    def __init__(self, generator: Generator = generate_session,
                 fetcher: ImageFetch = fetch_image,
                 lock_ms: int = PAGE_LOCK_MS,
                 clock: Callable[[], float] = time.monotonic):
        self.state = SessionState()
        self.artifacts = ArtifactMap()
        self.images = ImageFetchOrchestrator(self.artifacts, fetcher)
        self.navigator = PageNavigator(self, lock_ms=lock_ms, clock=clock)
        self._generator = generator
        self._request = 0

    @property
    def stage(self) -> SessionStage:
        return self.state.stage

    # -- transitions -------------------------------------------------------

    def _ensure(self, target: SessionStage):
        current = self.state.stage
        if target not in TRANSITIONS[current]:
            raise InvalidTransitionError(current, target)

    def _transition(self, target: SessionStage):
        self._ensure(target)
        source = self.state.stage
        self.state.stage = target
        log.info("Stage changed", source=source.value, stage=target.value)

    def _require(self, stage: SessionStage, target: SessionStage):
        if self.state.stage is not stage:
            raise InvalidTransitionError(self.state.stage, target)

    def _install(self, session: LearningSession, seeded: Mapping[int, str]):
        """Make ``session`` current. Callers have already checked the transition."""
        self.images.invalidate()
        self.artifacts.clear()
        for index, reference in seeded.items():
            self.artifacts.set(index, reference)

        self.state.session = session
        self.state.cursor = NavigationCursor()
        self.state.error = None
        self.navigator.release()
        self._transition(SessionStage.INTRO_CINEMATIC)

    # -- session lifecycle -------------------------------------------------

    async def start_session(self, input_text: str, mode: Union[EntryMode, str],
                            manual_words: Optional[Sequence[str]] = None) -> SessionStage:
        """Handle a submitted topic, text or forge request.

        TEXT input submitted from IDLE only opens the selection step; the
        selection step submits again (optionally with a manual word list) to
        generate. On success the session is installed, the intro stage is
        entered and one artwork request per word is started in the
        background. A failed generation leaves no session behind and
        returns to IDLE with ``state.error`` set.
        """
        mode = EntryMode(mode)

        if mode is EntryMode.FORGE:
            self._transition(SessionStage.FORGE_WIZARD)
            self.state.mode = mode
            self.state.error = None
            return self.state.stage

        if not input_text or not input_text.strip():
            log.warning("Ignoring empty session input", mode=mode.value)
            return self.state.stage

        if mode is EntryMode.TEXT and self.state.stage is SessionStage.IDLE:
            self._transition(SessionStage.TEXT_SELECTION)
            self.state.mode = mode
            self.state.input_text = input_text
            self.state.error = None
            return self.state.stage

        self._transition(SessionStage.GENERATING)
        self.state.mode = mode
        self.state.input_text = input_text
        self.state.error = None
        self._request += 1
        request = self._request

        words = list(manual_words or [])
        log.info("Generating session", mode=mode.value, manual_words=len(words))
        try:
            session = await self._generator(input_text, mode, words)
        except asyncio.CancelledError:
            if request == self._request:
                log.warning("Session generation cancelled", mode=mode.value)
                self._request += 1
                self._transition(SessionStage.IDLE)
            raise
        except Exception as e:
            if request != self._request:
                log.info("Ignoring failure of superseded generation", error=str(e))
                return self.state.stage
            log.error("Session generation failed", error=str(e), mode=mode.value)
            self.state.session = None
            self.state.error = CONNECTIVITY_ERROR_MESSAGE
            self._transition(SessionStage.IDLE)
            return self.state.stage

        if request != self._request:
            log.info("Discarding superseded session", topic=session.topic)
            return self.state.stage

        self._install(session, {})
        self.images.fetch_all(session.words)
        return self.state.stage

    def import_session(self, raw_json) -> LearningSession:
        """Install a session from JSON text.

        Raises ImportFormatError (state untouched) when the text is not a
        valid session, and InvalidTransitionError outside IDLE and the forge
        wizard. Artwork embedded as ``imageUrl`` is loaded straight
        into the artifact map; no artwork requests are made.
        """
        session = parse_session_json(raw_json)
        if self.state.stage not in IMPORTABLE:
            raise InvalidTransitionError(self.state.stage, SessionStage.INTRO_CINEMATIC)

        self._request += 1
        seeded = embedded_artifacts(session)
        self._install(session, seeded)
        log.info("Session imported", topic=session.topic, words=len(session.words),
                 artwork=len(seeded))
        return session

    def reset_to_idle(self):
        """Forget the session entirely and return to IDLE."""
        self._request += 1
        self.images.invalidate()
        self.artifacts.clear()
        self.navigator.release()
        previous = self.state.stage
        self.state = SessionState()
        log.info("Session reset", source=previous.value)

    def replay_from_start(self):
        """Run the learning sequence again with the same words and artwork."""
        self._require(SessionStage.SESSION_COMPLETE, SessionStage.LEARNING_SEQUENCE)
        self.state.cursor = NavigationCursor()
        self.navigator.release()
        self._transition(SessionStage.LEARNING_SEQUENCE)

    def abort(self):
        """Back out of a pre-session stage to IDLE."""
        if self.state.stage not in ABORTABLE:
            raise InvalidTransitionError(self.state.stage, SessionStage.IDLE)
        if self.state.stage is SessionStage.GENERATING:
            self._request += 1
        self.state.forge_layers = None
        self._transition(SessionStage.IDLE)

    # -- word boundaries ---------------------------------------------------

    def advance_from_word(self):
        """Move to the next word, or on to the paragraph review after the last one."""
        self._require(SessionStage.LEARNING_SEQUENCE, SessionStage.PARAGRAPH_REVIEW)
        cursor = self.state.cursor
        if cursor.word_index >= len(self.state.session.words) - 1:
            self._transition(SessionStage.PARAGRAPH_REVIEW)
            return

        cursor.word_index += 1
        cursor.page = 0
        cursor.direction = 1
        log.info("Next word", word_index=cursor.word_index)

    def retreat_from_word(self):
        """Move to the last page of the previous word, or back to the preview from the first."""
        self._require(SessionStage.LEARNING_SEQUENCE, SessionStage.PARAGRAPH_PREVIEW)
        cursor = self.state.cursor
        if cursor.word_index <= 0:
            self._transition(SessionStage.PARAGRAPH_PREVIEW)
            return

        cursor.word_index -= 1
        cursor.page = LAST_PAGE
        cursor.direction = -1
        log.info("Previous word", word_index=cursor.word_index)

    # -- view intents ------------------------------------------------------

    def finish_intro(self):
        self._transition(SessionStage.PARAGRAPH_PREVIEW)

    def continue_from_preview(self):
        self._require(SessionStage.PARAGRAPH_PREVIEW, SessionStage.LEARNING_SEQUENCE)
        self._transition(SessionStage.LEARNING_SEQUENCE)

    def continue_from_review(self):
        self._transition(SessionStage.FINAL_ASSESSMENT)

    def complete_assessment(self):
        self._transition(SessionStage.SESSION_COMPLETE)

    def complete_forge(self, layers: Union[ForgeLayers, Mapping[str, str]]):
        """Hand a custom fragment to the sandbox view."""
        layers = ForgeLayers.model_validate(layers)
        self._transition(SessionStage.CUSTOM_VIEW)
        self.state.forge_layers = layers

    # -- read model --------------------------------------------------------

    @property
    def current_word(self) -> Optional[WordEntry]:
        session = self.state.session
        if session is None:
            return None
        return session.words[self.state.cursor.word_index]

    @property
    def current_artifact(self) -> Optional[str]:
        return self.artifacts.get(self.state.cursor.word_index)

    def current_page(self) -> Optional[PageContent]:
        entry = self.current_word
        if entry is None:
            return None
        return page_content(entry, self.state.cursor.page, self.current_artifact)

    @property
    def progress(self) -> float:
        return self.navigator.progress

    def export_session(self) -> str:
        """Session JSON with every loaded artwork embedded."""
        if self.state.session is None:
            raise LexiconError("No session to export")
        return dump_session_json(self.state.session, self.artifacts.snapshot())
