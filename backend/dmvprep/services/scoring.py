from __future__ import annotations

import math
from collections.abc import Mapping

from dmvprep.schemas.quiz import FinalScore, LiveStats, QuizData, ReviewItem

PASSING_SCORE = 83


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def live_stats(quiz: QuizData, answers: Mapping[str, str]) -> LiveStats:
    """Running tally while the quiz is in progress.

    Percentage is accuracy over answered questions and reads 100 before the
    first answer.
    """
    correct = 0
    incorrect = 0
    for qid, selected in answers.items():
        q = quiz.find_question(qid)
        if q is None:
            continue
        if selected == q.correct_answer:
            correct += 1
        else:
            incorrect += 1

    answered = correct + incorrect
    percentage = round_half_up(100 * correct / answered) if answered > 0 else 100
    return LiveStats(
        correct=correct,
        incorrect=incorrect,
        unanswered=max(0, len(quiz.questions) - answered),
        percentage=percentage,
    )


def final_score(quiz: QuizData, answers: Mapping[str, str]) -> FinalScore:
    correct = 0
    incorrect = 0
    unanswered = 0
    review: list[ReviewItem] = []
    for q in quiz.questions:
        selected = answers.get(q.question_id)
        if not selected:
            unanswered += 1
            is_correct = False
            selected = None
        elif selected == q.correct_answer:
            correct += 1
            is_correct = True
        else:
            incorrect += 1
            is_correct = False
        review.append(
            ReviewItem(
                question_id=q.question_id,
                question=q.question,
                selected_answer=selected,
                correct_answer=q.correct_answer,
                is_correct=is_correct,
            )
        )

    total = quiz.total_questions if quiz.total_questions > 0 else len(quiz.questions)
    score = round_half_up(100 * correct / total) if total > 0 else 0
    return FinalScore(
        correct=correct,
        incorrect=incorrect,
        unanswered=unanswered,
        score=score,
        passed=score >= PASSING_SCORE,
        review=review,
    )
