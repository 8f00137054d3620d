from dmvprep.schemas.quiz import QuizConfig
from dmvprep.services.handbook import SIGN_LIBRARY
from dmvprep.services.prompt_builder import FOCUS_INSTRUCTIONS, STYLE_INSTRUCTIONS, build_prompt


def test_build_prompt_is_deterministic():
    config = QuizConfig(difficulty="hard", style="scenario", focus="dui", question_count=10)
    seen = ["2p", "-1abc", "zz9"]
    assert build_prompt(config, seen) == build_prompt(config, list(seen))


def test_build_prompt_embeds_count_and_hashes():
    config = QuizConfig(question_count=50)
    prompt = build_prompt(config, ["abc", "def"])
    assert "- Count: 50" in prompt
    assert '"totalQuestions": 50' in prompt
    assert "AVOID questions related to these hashes: [abc, def]" in prompt


def test_build_prompt_with_no_history():
    prompt = build_prompt(QuizConfig(), [])
    assert "AVOID questions related to these hashes: []" in prompt


def test_mix_difficulty_forbids_literal_mix():
    prompt = build_prompt(QuizConfig(difficulty="mix"), [])
    assert 'must NOT be "mix"' in prompt


def test_concrete_difficulty_is_requested_verbatim():
    prompt = build_prompt(QuizConfig(difficulty="medium"), [])
    assert 'All questions should be "medium" difficulty.' in prompt
    assert 'must NOT be "mix"' not in prompt


def test_every_focus_and_style_has_its_own_clause():
    for focus, text in FOCUS_INSTRUCTIONS.items():
        assert text in build_prompt(QuizConfig(focus=focus), [])
    for style, text in STYLE_INSTRUCTIONS.items():
        assert text in build_prompt(QuizConfig(style=style), [])


def test_sign_focus_points_at_sign_library():
    prompt = build_prompt(QuizConfig(focus="signs"), [])
    assert "SIGN LIBRARY URLs" in prompt
    for url in SIGN_LIBRARY.values():
        assert url in prompt


def test_different_configs_produce_different_prompts():
    a = build_prompt(QuizConfig(focus="fines"), [])
    b = build_prompt(QuizConfig(focus="minors"), [])
    assert a != b
