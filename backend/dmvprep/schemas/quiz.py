from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Difficulty = Literal["easy", "medium", "hard"]
DifficultyLevel = Literal["easy", "medium", "hard", "mix"]
QuestionStyle = Literal["scenario", "straightforward", "mixed"]
QuizFocus = Literal["mix", "numeric", "minors", "dui", "signs", "fines"]

OFFERED_QUESTION_COUNTS = (5, 10, 25, 50, 75, 100)

UserAnswers = dict[str, str]


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class QuizConfig(_CamelModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    difficulty: DifficultyLevel = "mix"
    style: QuestionStyle = "mixed"
    focus: QuizFocus = "mix"
    question_count: int = Field(default=25, gt=0, alias="questionCount")


class Question(_CamelModel):
    question_id: str = Field(alias="questionId")
    difficulty: Difficulty
    question: str
    options: list[str]
    correct_answer: str = Field(alias="correctAnswer")
    question_image_url: str | None = Field(default=None, alias="questionImageUrl")
    option_image_urls: list[str] | None = Field(default=None, alias="optionImageUrls")


class QuizData(_CamelModel):
    quiz_title: str = Field(alias="quizTitle")
    total_questions: int = Field(alias="totalQuestions")
    questions: list[Question]

    def find_question(self, question_id: str) -> Question | None:
        # First match wins; ids are made unique when a quiz is generated.
        for q in self.questions:
            if q.question_id == question_id:
                return q
        return None


class LiveStats(_CamelModel):
    correct: int
    incorrect: int
    unanswered: int
    percentage: int


class ReviewItem(_CamelModel):
    question_id: str = Field(alias="questionId")
    question: str
    selected_answer: str | None = Field(default=None, alias="selectedAnswer")
    correct_answer: str = Field(alias="correctAnswer")
    is_correct: bool = Field(alias="isCorrect")


class FinalScore(_CamelModel):
    correct: int
    incorrect: int
    unanswered: int
    score: int
    passed: bool
    review: list[ReviewItem] = Field(default_factory=list)
