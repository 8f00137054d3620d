import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))


class _MemoryRedis:
    def __init__(self):
        self._data: dict[str, str] = {}

    def ping(self):
        return True

    def get(self, key: str):
        return self._data.get(key)

    def set(self, key: str, value: str, ex: int | None = None):
        self._data[key] = value
        return True

    def delete(self, key: str):
        self._data.pop(key, None)
        return 1


# Stub Redis at import time, before the app module binds get_redis.
_mem_redis = _MemoryRedis()
import dmvprep.core.redis_client as redis_client_module

redis_client_module.get_redis = lambda: _mem_redis

import dmvprep.routers.health as health_router_module
health_router_module.get_redis = lambda: _mem_redis

from dmvprep.main import create_app  # noqa: E402
from dmvprep.schemas.quiz import QuizData  # noqa: E402
from dmvprep.services.history import HistoryStore  # noqa: E402


def _make_quiz(n: int = 3, *, correct: str = "A", title: str = "Test Quiz") -> QuizData:
    return QuizData.model_validate(
        {
            "quizTitle": title,
            "totalQuestions": n,
            "questions": [
                {
                    "questionId": f"q{i}",
                    "difficulty": "easy",
                    "question": f"Test question number {i}?",
                    "options": ["A", "B", "C", "D"],
                    "correctAnswer": correct,
                }
                for i in range(1, n + 1)
            ],
        }
    )


class FakeGenerator:
    def __init__(self, quiz: QuizData | None = None, error: Exception | None = None):
        self.quiz = quiz
        self.error = error
        self.calls: list[tuple] = []

    async def generate_quiz(self, config, seen_hashes):
        self.calls.append((config, list(seen_hashes)))
        if self.error is not None:
            raise self.error
        return self.quiz


@pytest.fixture()
def make_quiz():
    return _make_quiz


@pytest.fixture()
def mem_redis():
    return _MemoryRedis()


@pytest.fixture()
def history(mem_redis):
    return HistoryStore(mem_redis, key="test_seen_hashes", limit=500)


@pytest.fixture()
def generator():
    return FakeGenerator(quiz=_make_quiz(3))


@pytest.fixture()
def client(generator, history):
    app = create_app(generator=generator, history_store=history)
    return TestClient(app)
