"""
Quiz session state machine.

A session moves WELCOME -> LOADING -> QUIZ -> RESULTS and back to WELCOME, with
ERROR reachable from LOADING. Sessions live in memory only; the seen-question
history is the single piece of state that outlives them.
"""
from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Mapping, Sequence
from enum import Enum
from typing import Protocol

from dmvprep.core.config import settings
from dmvprep.schemas.quiz import FinalScore, LiveStats, QuizConfig, QuizData, UserAnswers
from dmvprep.services.handbook import demo_quiz
from dmvprep.services.history import HistoryStore
from dmvprep.services.key_bridge import KeySelector
from dmvprep.services.scoring import final_score, live_stats

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "We encountered an issue crafting your unique exam. Please try again."
AUTH_ERROR_MESSAGE = "Authentication Failed: Please re-select your Google API Key."

_AUTH_MARKERS = ("401", "UNAUTHENTICATED", "CREDENTIALS_MISSING", "Authentication failed")


class SessionState(str, Enum):
    WELCOME = "WELCOME"
    LOADING = "LOADING"
    QUIZ = "QUIZ"
    RESULTS = "RESULTS"
    ERROR = "ERROR"


class QuizSessionError(Exception):
    """Base exception for quiz session errors."""


class InvalidTransitionError(QuizSessionError):
    def __init__(self, action: str, state: SessionState):
        super().__init__(f"cannot {action} while in {state.value}")
        self.action = action
        self.state = state


class UnknownQuestionError(QuizSessionError):
    pass


class SessionNotFoundError(QuizSessionError):
    pass


class QuizGenerator(Protocol):
    async def generate_quiz(self, config: QuizConfig, seen_hashes: Sequence[str]) -> QuizData: ...


def normalize_error_message(message: str | None) -> str:
    msg = str(message or "").strip()
    if not msg:
        return GENERIC_ERROR_MESSAGE
    if any(marker in msg for marker in _AUTH_MARKERS):
        return AUTH_ERROR_MESSAGE
    return msg


class QuizSession:
    def __init__(
        self,
        *,
        generator: QuizGenerator,
        history: HistoryStore,
        key_selector: KeySelector | None = None,
        session_id: str | None = None,
    ):
        self.session_id = session_id or str(uuid.uuid4())
        self.generator = generator
        self.history = history
        self.key_selector = key_selector

        self.state = SessionState.WELCOME
        self.quiz: QuizData | None = None
        self.answers: UserAnswers = {}
        self.error: str | None = None
        self.last_active = time.monotonic()

        # Bumped by every transition that abandons an in-flight generation.
        self._ticket = 0

    def _require(self, action: str, *allowed: SessionState) -> None:
        if self.state not in allowed:
            raise InvalidTransitionError(action, self.state)

    async def start_quiz(self, config: QuizConfig) -> None:
        self._require("start a quiz", SessionState.WELCOME, SessionState.ERROR)

        self._ticket += 1
        ticket = self._ticket
        self.state = SessionState.LOADING
        self.error = None
        self.answers = {}
        self.quiz = None

        seen = self.history.seen_hashes()
        try:
            quiz = await self.generator.generate_quiz(config, seen)
        except Exception as e:
            if not self._is_current(ticket):
                logger.info("session %s: dropping failure of abandoned generation: %s", self.session_id, e)
                return
            logger.warning("session %s: quiz generation failed: %s: %s", self.session_id, type(e).__name__, e)
            self.error = normalize_error_message(str(e))
            self.state = SessionState.ERROR
            return

        if not self._is_current(ticket):
            logger.info("session %s: dropping result of abandoned generation", self.session_id)
            return
        self.quiz = quiz
        self.state = SessionState.QUIZ

    def _is_current(self, ticket: int) -> bool:
        return ticket == self._ticket and self.state == SessionState.LOADING

    def load_demo(self) -> None:
        self._ticket += 1
        self.quiz = demo_quiz()
        self.answers = {}
        self.error = None
        self.state = SessionState.QUIZ

    def answer(self, question_id: str, option: str) -> bool:
        self._require("answer", SessionState.QUIZ)
        if self.quiz is None or self.quiz.find_question(question_id) is None:
            raise UnknownQuestionError(f"unknown question {question_id!r}")
        if question_id in self.answers:
            return False
        self.answers[question_id] = option
        return True

    def complete_quiz(self, answers: Mapping[str, str] | None = None) -> FinalScore:
        self._require("complete the quiz", SessionState.QUIZ)
        if self.quiz is None:
            raise InvalidTransitionError("complete the quiz", self.state)
        if answers is not None:
            self.answers = dict(answers)
        self.state = SessionState.RESULTS
        self.history.record_seen(self.quiz.questions)
        return final_score(self.quiz, self.answers)

    def retry(self) -> None:
        self._require("retry", SessionState.RESULTS)
        self.quiz = None
        self.answers = {}
        self.state = SessionState.WELCOME

    def back_to_welcome(self) -> None:
        self._require("go back", SessionState.ERROR)
        self.error = None
        self.state = SessionState.WELCOME

    async def reselect_key(self) -> None:
        self._require("re-select the API key", SessionState.ERROR)
        if self.key_selector is not None:
            try:
                await self.key_selector.open_select_key()
            except Exception:
                logger.exception("session %s: key selection failed", self.session_id)
                return
        self.back_to_welcome()

    async def needs_api_key(self) -> bool:
        if self.key_selector is None:
            return False
        try:
            return not await self.key_selector.has_selected_api_key()
        except Exception:
            logger.exception("session %s: key bridge lookup failed", self.session_id)
            return False

    async def connect_key(self) -> None:
        if self.key_selector is None:
            return
        try:
            await self.key_selector.open_select_key()
        except Exception:
            logger.exception("session %s: key selection failed", self.session_id)

    def can_reselect_key(self) -> bool:
        if self.state != SessionState.ERROR or self.key_selector is None:
            return False
        msg = self.error or ""
        return "Authentication" in msg or "API Key" in msg

    def live_stats(self) -> LiveStats | None:
        if self.state != SessionState.QUIZ or self.quiz is None:
            return None
        return live_stats(self.quiz, self.answers)

    def final_score(self) -> FinalScore | None:
        if self.state != SessionState.RESULTS or self.quiz is None:
            return None
        return final_score(self.quiz, self.answers)


class SessionRegistry:
    def __init__(
        self,
        *,
        generator: QuizGenerator,
        history: HistoryStore,
        key_selector: KeySelector | None = None,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.generator = generator
        self.history = history
        self.key_selector = key_selector
        self.ttl_seconds = settings.session_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._sessions: dict[str, QuizSession] = {}

    def create(self) -> QuizSession:
        self.cleanup_inactive_sessions()
        s = QuizSession(generator=self.generator, history=self.history, key_selector=self.key_selector)
        s.last_active = self._clock()
        self._sessions[s.session_id] = s
        return s

    def get(self, session_id: str) -> QuizSession:
        self.cleanup_inactive_sessions()
        s = self._sessions.get(session_id)
        if s is None:
            raise SessionNotFoundError(f"session {session_id!r} not found")
        s.last_active = self._clock()
        return s

    def delete(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is None:
            raise SessionNotFoundError(f"session {session_id!r} not found")

    def cleanup_inactive_sessions(self) -> int:
        """Drop sessions idle for longer than the TTL. Sessions mid-generation are kept."""
        if self.ttl_seconds <= 0:
            return 0
        cutoff = self._clock() - self.ttl_seconds
        stale = [
            sid
            for sid, s in self._sessions.items()
            if s.last_active < cutoff and s.state != SessionState.LOADING
        ]
        for sid in stale:
            del self._sessions[sid]
        if stale:
            logger.info("evicted %d inactive sessions", len(stale))
        return len(stale)

    def __len__(self) -> int:
        return len(self._sessions)
