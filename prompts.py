from dataclasses import dataclass
from typing import Sequence

from vocab_models import VocabEntry


QTYPE_FILL_BLANK = "빈칸 추론"
QTYPE_DEFINITION_TO_WORD = "영영풀이"
QTYPE_WORD_TO_DEFINITION = "뜻풀이 판단"

DEFAULT_SENTENCE_COUNT = "2"
HIGH_COST_TAG = "Warning: High Cost"


@dataclass(frozen=True)
class ChoiceItem:
    """One row of a selection list: ``id`` is what gets recorded."""

    id: str
    title: str
    description: str = ""


GENERATION_MODELS: tuple[ChoiceItem, ...] = (
    ChoiceItem("gpt-5-pro", "GPT-5 pro", HIGH_COST_TAG),
    ChoiceItem("gpt-5", "GPT-5"),
    ChoiceItem("gpt-5-mini", "GPT-5 mini"),
    ChoiceItem("gpt-5-nano", "GPT-5 nano"),
    ChoiceItem("gpt-4.1", "GPT-4.1", "Legacy"),
)

QUESTION_TYPES: tuple[ChoiceItem, ...] = (
    ChoiceItem(QTYPE_FILL_BLANK, QTYPE_FILL_BLANK),
    ChoiceItem(QTYPE_DEFINITION_TO_WORD, QTYPE_DEFINITION_TO_WORD),
    ChoiceItem(QTYPE_WORD_TO_DEFINITION, QTYPE_WORD_TO_DEFINITION),
)


def needs_sentence_count(question_type: str) -> bool:
    return question_type == QTYPE_FILL_BLANK


_INTRO = "You are an expert English vocabulary test maker for Korean students."

_WORD_SELECTION_RULES = [
    "### Word Selection & Question Style Rule",
    "1. PRIORITY: Focus on polysemous words—those with multiple, distinct meanings (e.g., different parts of speech like 'conduct' as a noun vs. verb, or different senses like 'bank' of a river vs. a financial institution).",
    "2. GOAL: The questions should be intentionally challenging, designed to confuse the test-taker and test their ability to discern the correct meaning from context.",
]

_DISTRIBUTION_RULE = (
    "2. CRITICAL: The position of the correct answer MUST be truly and unpredictably randomized to ensure a balanced distribution. "
    "For the entire set of questions, each choice position (①, ②, ③, ④, ⑤) should be the correct answer approximately 20% of the time. "
    "DO NOT use any discernible pattern (e.g., 1, 2, 3, 4, 5 or 5, 4, 3, 2, 1). The sequence of correct answers must appear random and chaotic."
)

_ANSWER_RULES = [
    "### Answer Generation Rules",
    "1. CRITICAL: DO NOT mark the correct answer in the choices. Instead, create a separate `[정답]` section at the very end of the entire output, listing each question number and its correct choice number.",
    _DISTRIBUTION_RULE,
]

_FINAL_REVIEW = (
    "### Final Review\n"
    "Before concluding your response, you MUST review the entire generated text one last time to ensure every single rule has been followed. "
    "Pay special attention that every question has exactly 5 numbered choices (① to ⑤). "
    "If you find any mistake, you must correct it before finishing."
)

PAYLOAD_HEADER = (
    "Here is the list of vocabulary. Create test questions based on these words, "
    "strictly following all rules defined in the system instructions."
)


def _instructions(task: str, main_rule: str, structure: list[str]) -> str:
    lines = [
        _INTRO,
        task,
        "Strictly follow all rules below.",
        "",
        "### Main Rule",
        main_rule,
        "",
        *_WORD_SELECTION_RULES,
        "",
        *_ANSWER_RULES,
        "",
        "### Output Structure (per question)",
        *structure,
        "",
        _FINAL_REVIEW,
    ]
    return "\n".join(lines)


def _fill_blank_instructions(sentence_count: int) -> str:
    return _instructions(
        "Your task is to create multiple-choice questions that test understanding of words in context.",
        "For each WORD and for each of its SENSEs, you must generate a complete question block.",
        [
            "1. Start with the question number (e.g., '1.').",
            "2. Add the title: '다음 빈칸에 공통으로 들어갈 말로 가장 적절한 것은?'",
            f"3. Provide exactly {sentence_count} distinct English sentences as context. Each sentence must have the word blanked out as '_______'.",
            "4. Provide exactly 5 answer choices (①, ②, ③, ④, ⑤).",
            "5. The choices must include one correct answer (the original WORD) and four plausible but incorrect distractors.",
            "6. Separate each full question block with a '---' line.",
        ],
    )


def _definition_to_word_instructions() -> str:
    return _instructions(
        "Your task is to create multiple-choice questions based on English definitions.",
        "For each WORD, you must generate one complete multiple-choice question.",
        [
            "1. Start with the question number (e.g., '1.').",
            "2. Add the title: '다음 영어 설명에 해당하는 단어는?'",
            "3. Provide the English definition of the WORD as the question body.",
            "4. Provide exactly 5 answer choices (①, ②, ③, ④, ⑤): one correct answer (the original WORD) and four plausible distractors (e.g., synonyms, related words).",
            "5. Separate each full question block with a '---' line.",
        ],
    )


def _word_to_definition_instructions() -> str:
    return _instructions(
        "Your task is to create multiple-choice questions that test the precise definition of a word.",
        "For each WORD, you must generate one complete multiple-choice question asking for its correct definition.",
        [
            "1. Start with the question number (e.g., '1.').",
            "2. Add the title: '다음 단어 <WORD>의 영영풀이로 가장 적절한 것은?' (replace <WORD> with the actual word).",
            "3. Provide exactly 5 definition choices (①, ②, ③, ④, ⑤): one perfectly correct definition and four subtly incorrect but plausible definitions.",
            "4. Separate each full question block with a '---' line.",
        ],
    )


def build_instructions(question_type: str, sentence_count: int) -> str:
    if question_type == QTYPE_FILL_BLANK:
        return _fill_blank_instructions(sentence_count)
    if question_type == QTYPE_DEFINITION_TO_WORD:
        return _definition_to_word_instructions()
    if question_type == QTYPE_WORD_TO_DEFINITION:
        return _word_to_definition_instructions()
    return ""


def build_payload(entries: Sequence[VocabEntry]) -> str:
    vocabulary = "\n".join(entry.to_line() for entry in entries)
    return "\n".join([PAYLOAD_HEADER, "", "[Vocabulary List]", vocabulary])


def build_prompts(
    entries: Sequence[VocabEntry], question_type: str, sentence_count: int
) -> tuple[str, str]:
    """Return ``(instructions, payload)`` for one generation request.

    Unknown question types produce empty instructions; the payload is built
    regardless so the caller decides what to do with it.
    """
    return build_instructions(question_type, sentence_count), build_payload(entries)
