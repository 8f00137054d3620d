from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from dmvprep.schemas.quiz import FinalScore, LiveStats, QuizData


class _Camel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SessionView(_Camel):
    session_id: str = Field(alias="sessionId")
    state: str
    error: str | None = None
    quiz: QuizData | None = None
    answers: dict[str, str] = Field(default_factory=dict)
    live_stats: LiveStats | None = Field(default=None, alias="liveStats")
    result: FinalScore | None = None
    seen_count: int | None = Field(default=None, alias="seenCount")
    needs_api_key: bool | None = Field(default=None, alias="needsApiKey")
    can_reselect_key: bool | None = Field(default=None, alias="canReselectKey")


class AnswerRequest(_Camel):
    question_id: str = Field(alias="questionId")
    option: str


class AnswerResponse(_Camel):
    recorded: bool
    session: SessionView


class CompleteRequest(_Camel):
    answers: dict[str, str] | None = None


class HistoryResponse(_Camel):
    seen_count: int = Field(alias="seenCount")
