"""Answer checking for the generated worksheets."""
from __future__ import annotations

import re

from passage_workbook.models import (
    MultipleChoiceQuestion,
    ParagraphScrambleItem,
    SentenceScrambleItem,
)

_CHOICE_RE = re.compile(r"\[([^\[\]/]*)/([^\[\]]*)\]")


def split_choice_sentence(sentence: str) -> tuple[str, tuple[str, str], str] | None:
    """Split ``"He [go/goes] home."`` into ``("He ", ("go", "goes"), " home.")``.

    Returns None when the sentence has no ``[a/b]`` pair.
    """
    m = _CHOICE_RE.search(sentence)
    if m is None:
        return None
    return sentence[: m.start()], (m.group(1), m.group(2)), sentence[m.end():]


def _fold(text: str) -> str:
    return text.strip().lower()


def check_multiple_choice(item: MultipleChoiceQuestion, selected: str) -> bool:
    return _fold(selected) == _fold(item.answer)


def has_valid_choice_pair(item: MultipleChoiceQuestion) -> bool:
    """The sentence holds an ``[a/b]`` pair and the answer is one of the two."""
    parts = split_choice_sentence(item.sentence)
    if parts is None:
        return False
    _, options, _ = parts
    return _fold(item.answer) in {_fold(o) for o in options}


def normalize_sentence(text: str) -> str:
    """Lowercase, drop punctuation, trim."""
    return re.sub(r"[^\w\s]", "", text.lower()).strip()


def check_sentence_scramble(item: SentenceScrambleItem, attempt: str) -> bool:
    return normalize_sentence(attempt) == normalize_sentence(item.correct)


def check_paragraph_order(item: ParagraphScrambleItem, arrangement: list[int]) -> bool:
    """*arrangement* lists scrambled-paragraph indices in the order the user put them."""
    return list(arrangement) == list(item.correct_order)


def paragraph_label(index: int) -> str:
    return chr(ord("A") + index)


def format_paragraph_order(order: list[int], sep: str = " -> ") -> str:
    return sep.join(paragraph_label(i) for i in order)
