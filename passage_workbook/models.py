from __future__ import annotations

from dataclasses import dataclass, field

NOT_AVAILABLE = "N/A"


@dataclass
class PassageInput:
    id: str
    english: str
    korean: str

    def to_dict(self) -> dict:
        return {"id": self.id, "english": self.english, "korean": self.korean}

    @classmethod
    def from_dict(cls, d: dict) -> PassageInput:
        return cls(id=d.get("id", ""), english=d["english"], korean=d["korean"])


@dataclass
class VocabularyItem:
    id: str
    word: str
    meaning: str

    def to_dict(self) -> dict:
        return {"id": self.id, "word": self.word, "meaning": self.meaning}

    @classmethod
    def from_dict(cls, d: dict) -> VocabularyItem:
        return cls(id=d["id"], word=d["word"], meaning=d["meaning"])


@dataclass
class ExpandedVocabularyItem(VocabularyItem):
    definition: str = NOT_AVAILABLE
    synonym: str = NOT_AVAILABLE
    antonym: str = NOT_AVAILABLE

    def to_dict(self) -> dict:
        d = super().to_dict()
        d.update(definition=self.definition, synonym=self.synonym, antonym=self.antonym)
        return d

    @classmethod
    def from_dict(cls, d: dict) -> ExpandedVocabularyItem:
        return cls(
            id=d["id"],
            word=d["word"],
            meaning=d["meaning"],
            definition=d.get("definition", NOT_AVAILABLE),
            synonym=d.get("synonym", NOT_AVAILABLE),
            antonym=d.get("antonym", NOT_AVAILABLE),
        )


@dataclass
class TranslatedSentence:
    id: str
    english: str
    korean: str

    def to_dict(self) -> dict:
        return {"id": self.id, "english": self.english, "korean": self.korean}

    @classmethod
    def from_dict(cls, d: dict) -> TranslatedSentence:
        return cls(id=d["id"], english=d["english"], korean=d["korean"])


@dataclass
class MultipleChoiceQuestion:
    id: str
    sentence: str  # contains one "[optionA/optionB]" pair
    answer: str

    def to_dict(self) -> dict:
        return {"id": self.id, "sentence": self.sentence, "answer": self.answer}

    @classmethod
    def from_dict(cls, d: dict) -> MultipleChoiceQuestion:
        return cls(id=d["id"], sentence=d["sentence"], answer=d["answer"])


@dataclass
class SentenceScrambleItem:
    id: str
    scrambled: list[str]
    correct: str

    def to_dict(self) -> dict:
        return {"id": self.id, "scrambled": list(self.scrambled), "correct": self.correct}

    @classmethod
    def from_dict(cls, d: dict) -> SentenceScrambleItem:
        return cls(id=d["id"], scrambled=list(d["scrambled"]), correct=d["correct"])


@dataclass
class ParagraphScrambleItem:
    id: str
    scrambled_paragraphs: list[str]
    correct_order: list[int]  # permutation of range(len(scrambled_paragraphs))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "scrambledParagraphs": list(self.scrambled_paragraphs),
            "correctOrder": list(self.correct_order),
        }

    @classmethod
    def from_dict(cls, d: dict) -> ParagraphScrambleItem:
        return cls(
            id=d["id"],
            scrambled_paragraphs=list(d["scrambledParagraphs"]),
            correct_order=[int(i) for i in d["correctOrder"]],
        )


# JSON section key -> (attribute name, item class) for the list sections
LIST_SECTIONS = {
    "vocabulary": ("vocabulary", VocabularyItem),
    "expandedVocabulary": ("expanded_vocabulary", ExpandedVocabularyItem),
    "translatedSentences": ("translated_sentences", TranslatedSentence),
    "multipleChoiceWorksheet": ("multiple_choice_worksheet", MultipleChoiceQuestion),
    "sentenceScrambleWorksheet": ("sentence_scramble_worksheet", SentenceScrambleItem),
}

SCALAR_SECTIONS = {
    "koreanTopic": "korean_topic",
    "englishTitle": "english_title",
    "koreanSummary": "korean_summary",
    "textFlow": "text_flow",
}


@dataclass
class GeneratedContent:
    vocabulary: list[VocabularyItem]
    expanded_vocabulary: list[ExpandedVocabularyItem]
    translated_sentences: list[TranslatedSentence]
    multiple_choice_worksheet: list[MultipleChoiceQuestion]
    sentence_scramble_worksheet: list[SentenceScrambleItem]
    paragraph_scramble_worksheet: ParagraphScrambleItem
    korean_topic: str
    english_title: str
    korean_summary: str
    text_flow: list[str] = field(default_factory=list)

    def remove_item(self, section: str, item_id: str) -> bool:
        """Delete one item from a list section in place.

        Remaining items keep their ids.  Returns False if no item had *item_id*.
        """
        if section not in LIST_SECTIONS:
            raise ValueError(f"not a list section: {section!r}")
        attr, _ = LIST_SECTIONS[section]
        items = getattr(self, attr)
        kept = [it for it in items if it.id != item_id]
        if len(kept) == len(items):
            return False
        items[:] = kept
        return True

    def replace_section(self, section: str, value) -> None:
        """Replace a whole section; *value* may be model objects or JSON dicts."""
        if section in LIST_SECTIONS:
            attr, item_cls = LIST_SECTIONS[section]
            setattr(self, attr, [
                v if isinstance(v, item_cls) else item_cls.from_dict(v) for v in value
            ])
        elif section == "paragraphScrambleWorksheet":
            if not isinstance(value, ParagraphScrambleItem):
                value = ParagraphScrambleItem.from_dict(value)
            self.paragraph_scramble_worksheet = value
        elif section in SCALAR_SECTIONS:
            if section == "textFlow":
                value = [str(v) for v in value]
            setattr(self, SCALAR_SECTIONS[section], value)
        else:
            raise ValueError(f"unknown section: {section!r}")

    def to_dict(self) -> dict:
        d: dict = {
            key: [it.to_dict() for it in getattr(self, attr)]
            for key, (attr, _) in LIST_SECTIONS.items()
        }
        d["paragraphScrambleWorksheet"] = self.paragraph_scramble_worksheet.to_dict()
        d["koreanTopic"] = self.korean_topic
        d["englishTitle"] = self.english_title
        d["koreanSummary"] = self.korean_summary
        d["textFlow"] = list(self.text_flow)
        return d

    @classmethod
    def from_dict(cls, d: dict) -> GeneratedContent:
        lists = {
            attr: [item_cls.from_dict(it) for it in d.get(key, [])]
            for key, (attr, item_cls) in LIST_SECTIONS.items()
        }
        return cls(
            **lists,
            paragraph_scramble_worksheet=ParagraphScrambleItem.from_dict(d["paragraphScrambleWorksheet"]),
            korean_topic=d.get("koreanTopic", ""),
            english_title=d.get("englishTitle", ""),
            korean_summary=d.get("koreanSummary", ""),
            text_flow=list(d.get("textFlow", [])),
        )


@dataclass
class PassageResult:
    passage: PassageInput
    content: GeneratedContent
    source_index: int = 0  # position of the passage in the submitted batch

    def to_dict(self) -> dict:
        return {
            "passage": self.passage.to_dict(),
            "content": self.content.to_dict(),
            "sourceIndex": self.source_index,
        }

    @classmethod
    def from_dict(cls, d: dict) -> PassageResult:
        return cls(
            passage=PassageInput.from_dict(d["passage"]),
            content=GeneratedContent.from_dict(d["content"]),
            source_index=d.get("sourceIndex", 0),
        )


@dataclass
class StoredMaterial:
    doc_id: str
    title: str
    created_at: str  # ISO-8601, UTC
    results: list[PassageResult]

    def to_dict(self) -> dict:
        return {
            "docId": self.doc_id,
            "title": self.title,
            "createdAt": self.created_at,
            "results": [r.to_dict() for r in self.results],
        }

    @classmethod
    def from_dict(cls, d: dict) -> StoredMaterial:
        return cls(
            doc_id=d["docId"],
            title=d["title"],
            created_at=d["createdAt"],
            results=[PassageResult.from_dict(r) for r in d.get("results", [])],
        )


@dataclass
class Progress:
    current: int  # 1-based
    total: int

    def to_dict(self) -> dict:
        return {"current": self.current, "total": self.total}


@dataclass
class PassageFailure:
    index: int  # 1-based, as shown to the user
    source_index: int
    error: str

    def to_dict(self) -> dict:
        return {"index": self.index, "sourceIndex": self.source_index, "error": self.error}
