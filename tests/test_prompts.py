from __future__ import annotations

from prompts import (
    GENERATION_MODELS,
    HIGH_COST_TAG,
    PAYLOAD_HEADER,
    QTYPE_DEFINITION_TO_WORD,
    QTYPE_FILL_BLANK,
    QTYPE_WORD_TO_DEFINITION,
    QUESTION_TYPES,
    build_prompts,
    needs_sentence_count,
)
from vocab_models import VocabEntry

ENTRIES = [
    VocabEntry("bank", ["financial institution", "river edge"]),
    VocabEntry("conduct", ["behaviour"]),
]


def test_payload_lists_entries_after_header() -> None:
    _, payload = build_prompts(ENTRIES, QTYPE_DEFINITION_TO_WORD, 1)
    lines = payload.splitlines()
    assert lines[0] == PAYLOAD_HEADER
    assert lines[-3:] == [
        "[Vocabulary List]",
        "bank = financial institution, river edge",
        "conduct = behaviour",
    ]


def test_fill_blank_interpolates_sentence_count() -> None:
    instructions, _ = build_prompts(ENTRIES, QTYPE_FILL_BLANK, 3)
    assert "Provide exactly 3 distinct English sentences" in instructions
    assert "다음 빈칸에 공통으로 들어갈 말로 가장 적절한 것은?" in instructions
    assert "### Final Review" in instructions


def test_other_types_ignore_sentence_count() -> None:
    for question_type in (QTYPE_DEFINITION_TO_WORD, QTYPE_WORD_TO_DEFINITION):
        instructions, _ = build_prompts(ENTRIES, question_type, 7)
        assert instructions
        assert "7 distinct" not in instructions
        assert "[정답]" in instructions


def test_each_type_has_its_own_title() -> None:
    definition, _ = build_prompts(ENTRIES, QTYPE_DEFINITION_TO_WORD, 1)
    word, _ = build_prompts(ENTRIES, QTYPE_WORD_TO_DEFINITION, 1)
    assert "다음 영어 설명에 해당하는 단어는?" in definition
    assert "영영풀이로 가장 적절한 것은?" in word


def test_unknown_type_yields_empty_instructions() -> None:
    instructions, payload = build_prompts(ENTRIES, "essay", 2)
    assert instructions == ""
    assert "bank = financial institution, river edge" in payload


def test_catalogues_match_selection_order() -> None:
    assert [item.id for item in GENERATION_MODELS] == [
        "gpt-5-pro",
        "gpt-5",
        "gpt-5-mini",
        "gpt-5-nano",
        "gpt-4.1",
    ]
    assert GENERATION_MODELS[0].description == HIGH_COST_TAG
    assert [item.id for item in QUESTION_TYPES] == [
        QTYPE_FILL_BLANK,
        QTYPE_DEFINITION_TO_WORD,
        QTYPE_WORD_TO_DEFINITION,
    ]
    assert needs_sentence_count(QTYPE_FILL_BLANK)
    assert not needs_sentence_count(QTYPE_WORD_TO_DEFINITION)
