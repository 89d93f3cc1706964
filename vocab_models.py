from dataclasses import dataclass, field
from typing import List


@dataclass
class VocabEntry:
    word: str
    senses: List[str] = field(default_factory=list)

    def to_line(self) -> str:
        # Same shape the parser accepts, so a rendered entry re-parses to itself.
        return f"{self.word} = {', '.join(self.senses)}"
