from __future__ import annotations

import json
import logging
import os
from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import ValidationError

from dmvprep.core.config import settings
from dmvprep.schemas.quiz import QuizConfig, QuizData
from dmvprep.services.handbook import SYSTEM_INSTRUCTION
from dmvprep.services.prompt_builder import build_prompt

logger = logging.getLogger(__name__)

AUTH_ERROR_MARKERS = ("401", "UNAUTHENTICATED", "CREDENTIALS_MISSING", "API keys are not supported")

MISSING_KEY_MESSAGE = "API Key is missing. Please select your Google API Key."
AUTH_FAILED_MESSAGE = (
    "Authentication failed. Please re-select your Google API Key and ensure your project "
    "has the Generative Language API enabled."
)

RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "quizTitle": {"type": "STRING"},
        "totalQuestions": {"type": "INTEGER"},
        "questions": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "questionId": {"type": "STRING"},
                    "difficulty": {"type": "STRING", "enum": ["easy", "medium", "hard"]},
                    "question": {"type": "STRING"},
                    "options": {"type": "ARRAY", "items": {"type": "STRING"}},
                    "correctAnswer": {"type": "STRING"},
                    "questionImageUrl": {"type": "STRING", "nullable": True},
                    "optionImageUrls": {"type": "ARRAY", "items": {"type": "STRING"}, "nullable": True},
                },
                "required": ["questionId", "difficulty", "question", "options", "correctAnswer"],
            },
        },
    },
    "required": ["quizTitle", "totalQuestions", "questions"],
}


class QuizGenerationError(Exception):
    """Base class for failures of a single generation attempt."""


class CredentialsMissingError(QuizGenerationError):
    def __init__(self, message: str = MISSING_KEY_MESSAGE):
        super().__init__(message)


class AuthenticationFailedError(QuizGenerationError):
    def __init__(self, message: str = AUTH_FAILED_MESSAGE):
        super().__init__(message)


class EmptyResponseError(QuizGenerationError):
    def __init__(self, message: str = "Empty response from AI model."):
        super().__init__(message)


class InvalidResponseShapeError(QuizGenerationError):
    pass


class RemoteServiceError(QuizGenerationError):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def is_auth_error_message(message: str) -> bool:
    msg = str(message or "")
    return any(marker in msg for marker in AUTH_ERROR_MARKERS)


def resolve_api_key(raw: str | None = None, *, env_var: str | None = None) -> str | None:
    if raw is None:
        raw = os.environ.get(env_var or settings.api_key_env)
    if raw is None:
        return None

    key = str(raw)
    # Build shims sometimes inject the literal strings.
    if key in {"undefined", "null"}:
        return None
    key = key.strip()
    if key[:1] in {'"', "'"}:
        key = key[1:]
    if key[-1:] in {'"', "'"}:
        key = key[:-1]
    key = key.strip()
    return key or None


def thinking_budget_for(question_count: int, budget: int) -> int:
    # Large quizzes trade reasoning depth for latency.
    n = int(question_count)
    if n >= 50:
        return int(budget) // 4
    if n >= 25:
        return int(budget) // 2
    return int(budget)


def unique_question_ids(quiz: QuizData) -> QuizData:
    taken = {q.question_id for q in quiz.questions}
    used: set[str] = set()
    out = []
    for q in quiz.questions:
        qid = q.question_id
        if qid in used:
            n = 2
            while f"{qid}__{n}" in taken:
                n += 1
            new_id = f"{qid}__{n}"
            taken.add(new_id)
            logger.warning("gemini: duplicate questionId %r renamed to %r", qid, new_id)
            q = q.model_copy(update={"question_id": new_id})
        used.add(q.question_id)
        out.append(q)
    return quiz.model_copy(update={"questions": out})


def find_quiz_issues(quiz: QuizData) -> list[str]:
    issues: list[str] = []
    if quiz.total_questions != len(quiz.questions):
        issues.append(f"totalQuestions={quiz.total_questions} but {len(quiz.questions)} questions returned")
    for q in quiz.questions:
        if q.correct_answer not in q.options:
            issues.append(f"{q.question_id}: correctAnswer is not one of the options")
        if q.option_image_urls is not None and len(q.option_image_urls) != len(q.options):
            issues.append(f"{q.question_id}: {len(q.option_image_urls)} option images for {len(q.options)} options")
    return issues


def _error_message(r: httpx.Response) -> str:
    try:
        body = r.json()
    except Exception:
        body = None

    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict):
        code = err.get("code") or r.status_code
        status = str(err.get("status") or "").strip()
        message = str(err.get("message") or "").strip()
        head = f"{code} {status}".strip()
        return f"{head}: {message}" if message else head

    snip = ""
    try:
        snip = (r.text or "")[:300]
    except Exception:
        snip = ""
    return f"HTTP {r.status_code}" + (f": {snip}" if snip else "")


def _response_text(data: Any) -> str:
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    if not isinstance(candidates, list):
        raise InvalidResponseShapeError("AI response has malformed candidates")
    first = candidates[0] or {}
    if not isinstance(first, dict):
        raise InvalidResponseShapeError("AI response has a malformed candidate")
    content = first.get("content") or {}
    if not isinstance(content, dict):
        raise InvalidResponseShapeError("AI response has malformed candidate content")
    parts = content.get("parts") or []
    if not isinstance(parts, list):
        raise InvalidResponseShapeError("AI response has malformed content parts")
    chunks: list[str] = []
    for p in parts:
        if not isinstance(p, dict) or p.get("thought"):
            continue
        t = p.get("text")
        if isinstance(t, str):
            chunks.append(t)
    return "".join(chunks)


def parse_quiz(text: str) -> QuizData:
    try:
        obj = json.loads(text)
    except ValueError as e:
        raise InvalidResponseShapeError(f"AI response is not valid JSON: {e}") from e
    try:
        return QuizData.model_validate(obj)
    except ValidationError as e:
        raise InvalidResponseShapeError(
            f"AI response does not match the quiz schema ({e.error_count()} errors)"
        ) from e


class GeminiQuizClient:
    def __init__(
        self,
        *,
        base_url: str | None = None,
        model: str | None = None,
        timeout_read_seconds: float | None = None,
    ) -> None:
        self.base_url = ((str(base_url).strip() if base_url is not None else "") or settings.gemini_base_url).rstrip("/")
        self.model = (str(model).strip() if model is not None else "") or settings.gemini_model
        self.timeout_read_seconds = (
            float(timeout_read_seconds) if timeout_read_seconds is not None else float(settings.gemini_timeout_read)
        )

    def build_request(self, prompt: str, question_count: int) -> dict[str, Any]:
        generation_config: dict[str, Any] = {
            "responseMimeType": "application/json",
            "responseSchema": RESPONSE_SCHEMA,
            "maxOutputTokens": int(settings.gemini_max_output_tokens),
        }
        if settings.gemini_thinking_enabled:
            generation_config["thinkingConfig"] = {
                "thinkingBudget": thinking_budget_for(question_count, settings.gemini_thinking_budget)
            }

        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "systemInstruction": {"parts": [{"text": SYSTEM_INSTRUCTION}]},
            "generationConfig": generation_config,
        }

    async def _generate(self, config: QuizConfig, seen_hashes: Sequence[str]) -> QuizData:
        api_key = resolve_api_key()
        if not api_key:
            raise CredentialsMissingError()

        prompt = build_prompt(config, seen_hashes)
        payload = self.build_request(prompt, config.question_count)
        url = f"{self.base_url}/models/{self.model}:generateContent"

        timeout = httpx.Timeout(
            connect=float(settings.gemini_timeout_connect),
            read=self.timeout_read_seconds,
            write=float(settings.gemini_timeout_write),
            pool=3.0,
        )
        async with httpx.AsyncClient(timeout=timeout) as client:
            try:
                r = await client.post(url, json=payload, headers={"x-goog-api-key": api_key})
            except httpx.HTTPError as e:
                raise RemoteServiceError(str(e) or type(e).__name__) from e

        if r.status_code >= 400:
            raise RemoteServiceError(_error_message(r), status_code=r.status_code)

        try:
            data = r.json()
        except ValueError as e:
            raise InvalidResponseShapeError("AI service returned a non-JSON body") from e

        text = _response_text(data)
        if not text.strip():
            raise EmptyResponseError()

        quiz = unique_question_ids(parse_quiz(text))
        for issue in find_quiz_issues(quiz):
            logger.warning("gemini: %s", issue)
        return quiz

    async def generate_quiz(self, config: QuizConfig, seen_hashes: Sequence[str] = ()) -> QuizData:
        try:
            quiz = await self._generate(config, seen_hashes)
        except QuizGenerationError as e:
            logger.exception("gemini: quiz generation failed")
            if not isinstance(e, AuthenticationFailedError) and is_auth_error_message(str(e)):
                raise AuthenticationFailedError() from e
            raise

        logger.info(
            "gemini: generated quiz model=%s requested=%s returned=%s",
            self.model,
            config.question_count,
            len(quiz.questions),
        )
        return quiz
