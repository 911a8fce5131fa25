"""Page-by-page navigation through the words of a learning session."""

import time
from typing import Callable

import structlog

from .config import PAGE_LOCK_MS
from .errors import InvalidTransitionError
from .models import SessionStage
from .pages import PAGE_COUNT, progress_fraction

log = structlog.get_logger()


class PageNavigator:
    """Moves the cursor across the seven pages of the current word.

    Every accepted move holds an input lock for ``lock_ms`` milliseconds so
    that a burst of input cannot skip pages before the transition has played
    out. Input arriving while the lock is held is ignored, even when the
    previous move already left the learning sequence.
    Crossing the first or last page is handed to the controller, which owns
    word-level movement and the stage.
    """

    def __init__(self, controller, lock_ms: int = PAGE_LOCK_MS,
                 clock: Callable[[], float] = time.monotonic):
        self._controller = controller
        self._lock_seconds = lock_ms / 1000.0
        self._clock = clock
        self._locked_until = 0.0

    @property
    def locked(self) -> bool:
        return self._clock() < self._locked_until

    def release(self):
        self._locked_until = 0.0

    def _acquire(self):
        self._locked_until = self._clock() + self._lock_seconds

    def _require_sequence(self):
        stage = self._controller.state.stage
        if stage is not SessionStage.LEARNING_SEQUENCE:
            raise InvalidTransitionError(stage, SessionStage.LEARNING_SEQUENCE)

    def paginate(self, direction: int) -> bool:
        """Turn one page forward (+1) or back (-1).

        Every accepted turn holds the lock, including one that crosses into
        another word or out of the sequence. Returns False when the lock
        swallowed the request.
        """
        if direction not in (-1, 1):
            raise ValueError(f"direction must be -1 or 1, got {direction}")
        if self.locked:
            log.debug("Page turn ignored while locked", direction=direction)
            return False
        self._require_sequence()

        cursor = self._controller.state.cursor
        next_page = cursor.page + direction

        if next_page < 0:
            self._controller.retreat_from_word()
        elif next_page >= PAGE_COUNT:
            self._controller.advance_from_word()
        else:
            cursor.page = next_page
            cursor.direction = direction
            log.debug("Page turned", word_index=cursor.word_index, page=next_page)
        self._acquire()
        return True

    def skip_word(self, direction: int) -> bool:
        """Jump straight to the next or previous word."""
        if direction not in (-1, 1):
            raise ValueError(f"direction must be -1 or 1, got {direction}")
        if self.locked:
            return False
        self._require_sequence()

        if direction > 0:
            self._controller.advance_from_word()
        else:
            self._controller.retreat_from_word()
        self._acquire()
        return True

    @property
    def progress(self) -> float:
        session = self._controller.state.session
        if session is None:
            return 0.0
        cursor = self._controller.state.cursor
        return progress_fraction(cursor.word_index, cursor.page, len(session.words))
