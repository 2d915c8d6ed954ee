"""Orchestrate the LLM to build study material bundles from reading passages.

Each passage goes through six generation stages.  Five of them only need the
passage text; vocabulary expansion needs the word list produced by vocabulary
extraction, so the stages form a two-level task graph::

    vocabulary ──► expandedVocabulary
    translatedSentences
    multipleChoiceWorksheet
    sentenceScrambleWorksheet
    paragraphScrambleWorksheet
    analysis

Every stage call has its own retry budget with exponential backoff.  A stage
that exhausts its budget fails the passage; a failed passage is skipped by
the batch orchestrator, which only gives up when every passage fails.
"""
from __future__ import annotations

import asyncio
import logging
import random
import uuid
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from passage_workbook.errors import (
    BatchExhaustionError,
    GenerationError,
    PassageProcessingError,
    RetryExhaustedError,
)
from passage_workbook.models import (
    NOT_AVAILABLE,
    ExpandedVocabularyItem,
    GeneratedContent,
    MultipleChoiceQuestion,
    ParagraphScrambleItem,
    PassageFailure,
    PassageInput,
    PassageResult,
    Progress,
    SentenceScrambleItem,
    TranslatedSentence,
    VocabularyItem,
)
from passage_workbook.prompts import (
    ANALYSIS_PROMPT,
    EXPANDED_VOCABULARY_PROMPT,
    MULTIPLE_CHOICE_PROMPT,
    PARAGRAPH_SCRAMBLE_PROMPT,
    SENTENCE_SCRAMBLE_PROMPT,
    TRANSLATION_PROMPT,
    VOCABULARY_PROMPT,
    format_word_list,
)
from passage_workbook.schemas import (
    ANALYSIS_SCHEMA,
    EXPANDED_VOCABULARY_SCHEMA,
    MULTIPLE_CHOICE_SCHEMA,
    PARAGRAPH_SCRAMBLE_SCHEMA,
    SENTENCE_SCRAMBLE_SCHEMA,
    TRANSLATION_SCHEMA,
    VOCABULARY_SCHEMA,
    validate,
    validate_paragraph_order,
)

if TYPE_CHECKING:
    from passage_workbook.providers.base import LLMProvider

_log = logging.getLogger("passage_workbook.pipeline")

MAX_RETRIES = 5
BASE_DELAY_MS = 1000

ProgressCallback = Callable[[Progress], None]
FailureCallback = Callable[[PassageFailure], None]


def new_id() -> str:
    return str(uuid.uuid4())


# ── Structured generation call ──────────────────────────────────────────


async def generate_structured(
    llm: LLMProvider,
    prompt: str,
    schema: dict,
    check: Callable[[Any], str | None] | None = None,
) -> Any:
    """One model call returning data that matches *schema*.

    Raises ``GenerationError`` if the provider fails, the reply holds no JSON,
    or the JSON does not fit the schema (or the optional *check*).
    """
    try:
        data = await llm.generate_structured(prompt, schema)
    except GenerationError:
        raise
    except Exception as e:
        raise GenerationError(f"model call failed: {e}") from e

    if data is None:
        raise GenerationError("response did not contain valid JSON")
    reason = validate(data, schema)
    if reason is None and check is not None:
        reason = check(data)
    if reason:
        raise GenerationError(f"invalid response: {reason}")
    return data


# ── Retry with backoff ──────────────────────────────────────────────────


def backoff_delay_ms(
    attempt: int,
    base_delay_ms: float = BASE_DELAY_MS,
    jitter: Callable[[], float] = random.random,
) -> float:
    """Delay after the failed 0-based *attempt*: ``2**attempt * base + [0, 1000)``."""
    return (2 ** attempt) * base_delay_ms + jitter() * 1000


async def with_retry(
    call: Callable[[], Awaitable[Any]],
    *,
    max_retries: int = MAX_RETRIES,
    base_delay_ms: float = BASE_DELAY_MS,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    jitter: Callable[[], float] = random.random,
    label: str = "",
) -> Any:
    """Call *call* up to *max_retries* times, backing off on ``GenerationError``.

    Other exceptions propagate immediately.  When the budget is spent the last
    error is re-raised as ``RetryExhaustedError``.
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    last_error: GenerationError | None = None
    for attempt in range(max_retries):
        try:
            return await call()
        except GenerationError as e:
            last_error = e
            if attempt == max_retries - 1:
                break
            delay = backoff_delay_ms(attempt, base_delay_ms, jitter)
            _log.warning("  %s: attempt %d/%d failed (%s), retrying in %.0f ms",
                         label, attempt + 1, max_retries, e, delay)
            await sleep(delay / 1000)

    _log.error("  %s: giving up after %d attempts", label, max_retries)
    raise RetryExhaustedError(label, max_retries, last_error) from last_error


# ── Stage graph ─────────────────────────────────────────────────────────


@dataclass
class Stage:
    name: str
    prompt: str
    schema: dict
    check: Callable[[Any], str | None] | None = None


VOCABULARY_STAGE = "vocabulary"
EXPANSION_STAGE = "expandedVocabulary"

INDEPENDENT_STAGES = (
    VOCABULARY_STAGE,
    "translatedSentences",
    "multipleChoiceWorksheet",
    "sentenceScrambleWorksheet",
    "paragraphScrambleWorksheet",
    "analysis",
)


def build_independent_stages(english: str, korean: str, grade: str) -> dict[str, Stage]:
    fmt = {"english": english, "korean": korean, "grade": grade}
    stages = [
        Stage(VOCABULARY_STAGE, VOCABULARY_PROMPT.format(**fmt), VOCABULARY_SCHEMA),
        Stage("translatedSentences", TRANSLATION_PROMPT.format(**fmt), TRANSLATION_SCHEMA),
        Stage("multipleChoiceWorksheet", MULTIPLE_CHOICE_PROMPT.format(**fmt), MULTIPLE_CHOICE_SCHEMA),
        Stage("sentenceScrambleWorksheet", SENTENCE_SCRAMBLE_PROMPT.format(**fmt), SENTENCE_SCRAMBLE_SCHEMA),
        Stage("paragraphScrambleWorksheet", PARAGRAPH_SCRAMBLE_PROMPT.format(**fmt), PARAGRAPH_SCRAMBLE_SCHEMA,
              check=validate_paragraph_order),
        Stage("analysis", ANALYSIS_PROMPT.format(**fmt), ANALYSIS_SCHEMA),
    ]
    return {s.name: s for s in stages}


def build_expansion_stage(words: list[str], grade: str) -> Stage:
    prompt = EXPANDED_VOCABULARY_PROMPT.format(words=format_word_list(words), grade=grade)
    return Stage(EXPANSION_STAGE, prompt, EXPANDED_VOCABULARY_SCHEMA)


def _or_na(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value
    return NOT_AVAILABLE


def expand_vocabulary(
    vocabulary: list[VocabularyItem],
    expansions: list[dict],
) -> list[ExpandedVocabularyItem]:
    """Join expansion entries onto vocabulary items by case-insensitive word.

    Always returns one item per vocabulary item, in the same order and with
    the same id.  Missing or blank expansion fields become ``"N/A"``.
    """
    by_word: dict[str, dict] = {}
    for e in expansions:
        by_word.setdefault(str(e.get("word", "")).strip().lower(), e)

    expanded = []
    for v in vocabulary:
        e = by_word.get(v.word.strip().lower(), {})
        expanded.append(ExpandedVocabularyItem(
            id=v.id,
            word=v.word,
            meaning=v.meaning,
            definition=_or_na(e.get("definition")),
            synonym=_or_na(e.get("synonym")),
            antonym=_or_na(e.get("antonym")),
        ))
    return expanded


def _assemble(
    raw: dict[str, Any],
    expansions: list[dict],
    id_factory: Callable[[], str],
) -> GeneratedContent:
    vocabulary = [
        VocabularyItem(id=id_factory(), word=v["word"], meaning=v["meaning"])
        for v in raw[VOCABULARY_STAGE]
    ]
    para = raw["paragraphScrambleWorksheet"]
    analysis = raw["analysis"]
    return GeneratedContent(
        vocabulary=vocabulary,
        expanded_vocabulary=expand_vocabulary(vocabulary, expansions),
        translated_sentences=[
            TranslatedSentence(id=id_factory(), english=s["english"], korean=s["korean"])
            for s in raw["translatedSentences"]
        ],
        multiple_choice_worksheet=[
            MultipleChoiceQuestion(id=id_factory(), sentence=q["sentence"], answer=q["answer"])
            for q in raw["multipleChoiceWorksheet"]
        ],
        sentence_scramble_worksheet=[
            SentenceScrambleItem(id=id_factory(), scrambled=list(q["scrambled"]), correct=q["correct"])
            for q in raw["sentenceScrambleWorksheet"]
        ],
        paragraph_scramble_worksheet=ParagraphScrambleItem(
            id=id_factory(),
            scrambled_paragraphs=list(para["scrambledParagraphs"]),
            correct_order=list(para["correctOrder"]),
        ),
        korean_topic=analysis["koreanTopic"],
        english_title=analysis["englishTitle"],
        korean_summary=analysis["koreanSummary"],
        text_flow=list(analysis["textFlow"]),
    )


async def _gather_or_cancel(*aws: Awaitable[Any]) -> list[Any]:
    """Like ``asyncio.gather`` but cancels the siblings when one fails."""
    tasks = [asyncio.ensure_future(a) for a in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def generate_passage_content(
    llm: LLMProvider,
    english: str,
    korean: str,
    grade: str,
    *,
    id_factory: Callable[[], str] = new_id,
    max_retries: int = MAX_RETRIES,
    base_delay_ms: float = BASE_DELAY_MS,
    concurrent: bool = True,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    jitter: Callable[[], float] = random.random,
) -> GeneratedContent:
    """Run all six stages for one passage and assemble the bundle.

    Raises ``RetryExhaustedError`` if any stage runs out of retries.
    """
    stages = build_independent_stages(english, korean, grade)

    async def run(stage: Stage) -> Any:
        _log.info("  Stage %s", stage.name)
        return await with_retry(
            lambda: generate_structured(llm, stage.prompt, stage.schema, stage.check),
            max_retries=max_retries,
            base_delay_ms=base_delay_ms,
            sleep=sleep,
            jitter=jitter,
            label=stage.name,
        )

    async def expand(vocab: list[dict]) -> list[dict]:
        words = [v["word"] for v in vocab]
        if not words:
            return []
        return await run(build_expansion_stage(words, grade))

    async def vocabulary_chain() -> tuple[list[dict], list[dict]]:
        vocab = await run(stages[VOCABULARY_STAGE])
        return vocab, await expand(vocab)

    others = [name for name in INDEPENDENT_STAGES if name != VOCABULARY_STAGE]
    raw: dict[str, Any] = {}
    if concurrent:
        (vocab, expansions), *rest = await _gather_or_cancel(
            vocabulary_chain(), *(run(stages[name]) for name in others),
        )
        raw.update(zip(others, rest))
    else:
        for name in INDEPENDENT_STAGES:
            raw[name] = await run(stages[name])
        vocab = raw[VOCABULARY_STAGE]
        expansions = await expand(vocab)
    raw[VOCABULARY_STAGE] = vocab

    return _assemble(raw, expansions, id_factory)


# ── Batch orchestration ─────────────────────────────────────────────────


async def _process_passage(
    llm: LLMProvider,
    passage: Mapping[str, str],
    grade: str,
    source_index: int,
    id_factory: Callable[[], str],
    pipeline_kwargs: dict,
) -> PassageResult:
    try:
        content = await generate_passage_content(
            llm, passage["english"], passage["korean"], grade,
            id_factory=id_factory, **pipeline_kwargs,
        )
    except Exception as e:
        raise PassageProcessingError(source_index + 1, source_index, e) from e
    return PassageResult(
        passage=PassageInput(id=id_factory(), english=passage["english"], korean=passage["korean"]),
        content=content,
        source_index=source_index,
    )


async def generate_all_content(
    llm: LLMProvider,
    passages: Sequence[Mapping[str, str]],
    grade: str,
    *,
    on_progress: ProgressCallback | None = None,
    on_failure: FailureCallback | None = None,
    max_concurrent_passages: int = 1,
    id_factory: Callable[[], str] = new_id,
    **pipeline_kwargs: Any,
) -> list[PassageResult]:
    """Generate content for every passage, skipping the ones that fail.

    Results keep the input order.  Raises ``BatchExhaustionError`` only when
    the batch is non-empty and no passage succeeded.
    """
    total = len(passages)
    if total == 0:
        return []

    slots: list[PassageResult | None] = [None] * total
    failures: list[PassageFailure] = []
    pending = iter(enumerate(passages))

    async def worker() -> None:
        # Taking the next passage and reporting progress happen without an
        # await in between, so progress stays monotonic across workers.
        for source_index, passage in pending:
            index = source_index + 1
            if on_progress:
                on_progress(Progress(current=index, total=total))
            _log.info("[%d/%d] Generating passage", index, total)
            try:
                slots[source_index] = await _process_passage(
                    llm, passage, grade, source_index, id_factory, pipeline_kwargs,
                )
            except PassageProcessingError as e:
                _log.warning("[%d/%d] Skipped: %s", index, total, e.cause)
                failure = PassageFailure(index=e.index, source_index=e.source_index, error=str(e.cause))
                failures.append(failure)
                if on_failure:
                    on_failure(failure)

    n_workers = max(1, min(max_concurrent_passages, total))
    await asyncio.gather(*(worker() for _ in range(n_workers)))

    results = [r for r in slots if r is not None]
    if not results:
        failures.sort(key=lambda f: f.index)
        _log.error("All %d passages failed", total)
        raise BatchExhaustionError(failures)
    _log.info("Generated %d/%d passages", len(results), total)
    return results
