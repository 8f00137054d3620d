from __future__ import annotations

from collections.abc import Sequence

from dmvprep.schemas.quiz import QuizConfig
from dmvprep.services.handbook import HANDBOOK_HIGHLIGHTS_2025, SIGN_LIBRARY

FOCUS_INSTRUCTIONS: dict[str, str] = {
    "numeric": 'The quiz MUST be "Math Oriented". Every question must involve numeric values.',
    "minors": 'The quiz MUST focus on "Students Under 21".',
    "dui": "The quiz MUST focus on Alcohol, Drugs, and DUI laws.",
    "signs": (
        "The quiz MUST focus on Traffic Signs. Use the SIGN LIBRARY URLs for questionImageUrl or optionImageUrls. "
        'For "Which sign means..." questions, provide 4 different URLs in optionImageUrls.'
    ),
    "fines": "The quiz MUST focus on Fines and Penalties.",
    "mix": "Generate a balanced mix of all handbook topics.",
}

STYLE_INSTRUCTIONS: dict[str, str] = {
    "scenario": 'All questions must be "Scenario-based".',
    "straightforward": 'All questions must be "Straightforward" factual questions.',
    "mixed": "Provide a mix of scenario-based and straightforward factual questions.",
}


def focus_instruction(focus: str) -> str:
    return FOCUS_INSTRUCTIONS.get(focus, FOCUS_INSTRUCTIONS["mix"])


def style_instruction(style: str) -> str:
    return STYLE_INSTRUCTIONS.get(style, STYLE_INSTRUCTIONS["mixed"])


def difficulty_instruction(difficulty: str) -> str:
    if difficulty == "mix":
        return (
            'Vary the difficulty of questions between "easy", "medium", and "hard". '
            'IMPORTANT: The "difficulty" field in JSON must NOT be "mix", it must be one of the specific levels.'
        )
    return f'All questions should be "{difficulty}" difficulty.'


def build_prompt(config: QuizConfig, seen_hashes: Sequence[str]) -> str:
    count = int(config.question_count)
    avoid = ", ".join(str(h) for h in seen_hashes)
    example_url = SIGN_LIBRARY["YIELD"]

    return f"""
You are an expert CA DMV examiner. Generate a JSON quiz.

PARAMETERS:
- Count: {count}
- Difficulty Setting: {difficulty_instruction(config.difficulty)}
- Focus: {focus_instruction(config.focus)}
- Style: {style_instruction(config.style)}

UNIQUENESS:
AVOID questions related to these hashes: [{avoid}].

IMAGE RELIABILITY:
- If a question is about a sign, ALWAYS provide a 'questionImageUrl'.
- Use the EXACT URLs from the SIGN LIBRARY provided in Section 4. Never invent an image URL.
- If asking "Identify this sign", provide the URL in questionImageUrl and text answers.
- If asking "Which of these is the YIELD sign", provide text in options and matching URLs in optionImageUrls.

JSON SCHEMA:
{{
  "quizTitle": "CA DMV Practice Test",
  "totalQuestions": {count},
  "questions": [
    {{
      "questionId": "u_1",
      "difficulty": "medium",
      "question": "What does this sign mean?",
      "options": ["Stop", "Yield", "No Entry", "Caution"],
      "correctAnswer": "Yield",
      "questionImageUrl": "{example_url}"
    }}
  ]
}}

{HANDBOOK_HIGHLIGHTS_2025}
"""
