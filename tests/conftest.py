"""Shared test fixtures."""
from __future__ import annotations

import copy
import itertools

import pytest

from passage_workbook.db import Database
from passage_workbook.export import find_cjk_font
from passage_workbook.models import (
    ExpandedVocabularyItem,
    GeneratedContent,
    MultipleChoiceQuestion,
    ParagraphScrambleItem,
    PassageInput,
    PassageResult,
    SentenceScrambleItem,
    TranslatedSentence,
    VocabularyItem,
)
from passage_workbook.providers.base import LLMProvider

CATS_ENGLISH = "Cats are mammals. They sleep often."
CATS_KOREAN = "고양이는 포유류다. 그들은 자주 잔다."
CATS_GRADE = "중학교 1학년"

# Fixed structured replies, keyed by stage name
STAGE_PAYLOADS = {
    "vocabulary": [
        {"word": "mammal", "meaning": "포유류"},
        {"word": "often", "meaning": "자주"},
    ],
    "translatedSentences": [
        {"english": "Cats are mammals.", "korean": "고양이는 포유류다."},
        {"english": "They sleep often.", "korean": "그들은 자주 잔다."},
    ],
    "multipleChoiceWorksheet": [
        {"sentence": "Cats [is/are] mammals.", "answer": "are"},
        {"sentence": "They sleep [often/never].", "answer": "often"},
    ],
    "sentenceScrambleWorksheet": [
        {"scrambled": ["mammals", "Cats", "are"], "correct": "Cats are mammals."},
        {"scrambled": ["often", "They", "sleep"], "correct": "They sleep often."},
    ],
    "paragraphScrambleWorksheet": {
        "scrambledParagraphs": ["They sleep often.", "Cats are mammals."],
        "correctOrder": [1, 0],
    },
    "analysis": {
        "koreanTopic": "고양이의 특징",
        "englishTitle": "All About Cats",
        "koreanSummary": "고양이는 포유류이며 자주 잔다.",
        "textFlow": ["고양이는 포유류이다", "고양이는 자주 잔다"],
    },
    "expandedVocabulary": [
        {"word": "Mammal", "definition": "a warm-blooded animal", "synonym": "beast", "antonym": "reptile"},
        {"word": "often", "definition": "many times", "synonym": "frequently", "antonym": "rarely"},
    ],
}

# Distinctive prompt phrases; expansion is checked first because its prompt
# also mentions vocabulary.
_STAGE_MARKERS = [
    ("expandedVocabulary", "For the following vocabulary list"),
    ("vocabulary", "extract key vocabulary"),
    ("translatedSentences", "Align the following"),
    ("multipleChoiceWorksheet", "multiple-choice"),
    ("sentenceScrambleWorksheet", "scramble the words"),
    ("paragraphScrambleWorksheet", "Divide the following"),
    ("analysis", "Analyze the following"),
]


def stage_of(prompt: str) -> str:
    for stage, marker in _STAGE_MARKERS:
        if marker in prompt:
            return stage
    raise AssertionError(f"unrecognised prompt: {prompt[:80]!r}")


class ScriptedLLM(LLMProvider):
    """Fake LLM returning fixed structured payloads per stage.

    fail_stages: stage -> number of leading calls that raise before succeeding.
    fail_when: predicate(stage, prompt) -> True makes that call raise.
    overrides: stage -> payload replacing the default.
    """

    def __init__(self, fail_stages=None, fail_when=None, overrides=None):
        self.fail_stages = dict(fail_stages or {})
        self.fail_when = fail_when
        self.payloads = {**copy.deepcopy(STAGE_PAYLOADS), **(overrides or {})}
        self.calls: list[tuple[str, str]] = []

    async def generate(self, prompt: str, temperature: float = 0.7) -> str:
        raise AssertionError("structured calls only")

    async def generate_structured(self, prompt, schema, temperature=0.3):
        stage = stage_of(prompt)
        self.calls.append((stage, prompt))
        if self.fail_when is not None and self.fail_when(stage, prompt):
            raise RuntimeError(f"model unavailable for {stage}")
        if self.fail_stages.get(stage, 0) > 0:
            self.fail_stages[stage] -= 1
            raise RuntimeError(f"transient failure in {stage}")
        return copy.deepcopy(self.payloads[stage])

    def name(self) -> str:
        return "scripted-llm"

    def calls_for(self, stage: str) -> int:
        return sum(1 for s, _ in self.calls if s == stage)


class RecordingSleep:
    """Stand-in for asyncio.sleep that records delays instead of waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def scripted_llm():
    """Factory for ScriptedLLM instances."""
    return ScriptedLLM


@pytest.fixture
def no_sleep():
    return RecordingSleep()


@pytest.fixture
def seq_ids():
    """Deterministic id factory: id-1, id-2, ..."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def fast_pipeline(no_sleep):
    """Pipeline keyword arguments that skip real backoff waits."""
    return {"sleep": no_sleep, "jitter": lambda: 0.0}


@pytest.fixture
def tmp_db(tmp_path):
    """Create a fresh temporary database."""
    db = Database(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def sample_content():
    """A fully populated GeneratedContent."""
    return GeneratedContent(
        vocabulary=[
            VocabularyItem("v1", "mammal", "포유류"),
            VocabularyItem("v2", "often", "자주"),
        ],
        expanded_vocabulary=[
            ExpandedVocabularyItem("v1", "mammal", "포유류", "a warm-blooded animal", "beast", "reptile"),
            ExpandedVocabularyItem("v2", "often", "자주", "many times", "frequently", "rarely"),
        ],
        translated_sentences=[
            TranslatedSentence("t1", "Cats are mammals.", "고양이는 포유류다."),
            TranslatedSentence("t2", "They sleep often.", "그들은 자주 잔다."),
        ],
        multiple_choice_worksheet=[
            MultipleChoiceQuestion("m1", "Cats [is/are] mammals.", "are"),
            MultipleChoiceQuestion("m2", "They sleep [often/never].", "often"),
        ],
        sentence_scramble_worksheet=[
            SentenceScrambleItem("s1", ["mammals", "Cats", "are"], "Cats are mammals."),
        ],
        paragraph_scramble_worksheet=ParagraphScrambleItem(
            "p1", ["They sleep often.", "Cats are mammals."], [1, 0],
        ),
        korean_topic="고양이의 특징",
        english_title="All About Cats",
        korean_summary="고양이는 포유류이며 자주 잔다.",
        text_flow=["고양이는 포유류이다", "고양이는 자주 잔다"],
    )


@pytest.fixture
def sample_result(sample_content):
    return PassageResult(
        passage=PassageInput("passage-1", CATS_ENGLISH, CATS_KOREAN),
        content=sample_content,
        source_index=0,
    )


@pytest.fixture
def cjk_font():
    """An installed font with Hangul glyphs; skips where the system has none."""
    path = find_cjk_font()
    if path is None:
        pytest.skip("no CJK font installed")
    return path
