import re
from typing import List

from vocab_models import VocabEntry


_SENSE_SEPARATOR = re.compile(r"[;,]")


def _split_senses(raw: str) -> List[str]:
    senses: List[str] = []
    for part in _SENSE_SEPARATOR.split(raw):
        cleaned = part.strip()
        if cleaned:
            senses.append(cleaned)
    return senses


def parse_vocabulary(text: str) -> List[VocabEntry]:
    """Parse ``word = sense1, sense2; sense3`` lines into entries.

    Parsing is best-effort and never raises:
    - blank lines and lines without ``=`` are skipped;
    - only the first ``=`` splits word from senses;
    - senses are split on ``,`` or ``;``, trimmed, empties dropped;
    - a line without a word or without any sense is skipped.
    """
    entries: List[VocabEntry] = []
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        word, separator, remainder = line.partition("=")
        if not separator:
            continue
        word = word.strip()
        senses = _split_senses(remainder)
        if word and senses:
            entries.append(VocabEntry(word, senses))
    return entries


def to_vocabulary_text(entries: List[VocabEntry]) -> str:
    return "\n".join(entry.to_line() for entry in entries)
