import asyncio
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dmvprep.core.config import settings
from dmvprep.schemas.quiz import QuizConfig
from dmvprep.services.gemini import GeminiQuizClient, QuizGenerationError, find_quiz_issues, resolve_api_key

print("GEMINI_BASE_URL =", settings.gemini_base_url)
print("GEMINI_MODEL =", settings.gemini_model)
print("GEMINI_THINKING_ENABLED =", settings.gemini_thinking_enabled)
print(f"{settings.api_key_env} set =", bool(resolve_api_key()))

focus = os.environ.get("SAMPLE_FOCUS") or "mix"
count = int(os.environ.get("SAMPLE_COUNT") or 5)
config = QuizConfig(focus=focus, question_count=count)

try:
    quiz = asyncio.run(GeminiQuizClient().generate_quiz(config, []))
except QuizGenerationError as e:
    print("generation failed:", type(e).__name__, e)
    sys.exit(1)

print("title =", quiz.quiz_title)
print("questions n =", len(quiz.questions))
print("issues =", find_quiz_issues(quiz))
if quiz.questions:
    q = quiz.questions[0]
    print("sample:", q.question[:200], "->", q.correct_answer)
