"""Prompt templates for the content-generation stages."""
from __future__ import annotations

VOCABULARY_PROMPT = """\
From the following English text, extract key vocabulary suitable for a {grade} \
student. Provide the Korean translation for each word.

English Text: "{english}"
"""

TRANSLATION_PROMPT = """\
Align the following English text and its Korean translation sentence by sentence.

English: "{english}"
Korean: "{korean}"
"""

MULTIPLE_CHOICE_PROMPT = """\
From the following English text, create a worksheet with multiple-choice questions \
focusing on key vocabulary and grammar. For each question, provide a sentence with \
two options in the format "[option1/option2]". Also provide the correct option as \
the answer.

English Text: "{english}"
"""

SENTENCE_SCRAMBLE_PROMPT = """\
For each sentence in the provided English text, scramble the words or phrases.

English Text: "{english}"
"""

PARAGRAPH_SCRAMBLE_PROMPT = """\
Divide the following English text into four logical paragraphs. Then, present them \
in a scrambled order and provide the correct sequence as 0-based indices into the \
scrambled list.

English Text: "{english}"
"""

ANALYSIS_PROMPT = """\
Analyze the following English text for a {grade} student. Provide:
1. A concise topic in Korean.
2. A suitable title in English.
3. A summary in Korean.
4. A step-by-step breakdown of the text's flow in Korean.

English Text: "{english}"
"""

EXPANDED_VOCABULARY_PROMPT = """\
For the following vocabulary list, provide an English definition (영영풀이), a \
synonym (동의어), and an antonym (반의어) for each word, suitable for a {grade} student.

Vocabulary: {words}
"""

STRUCTURED_SUFFIX = """\

Respond with JSON only, with no other text. The JSON must match this schema:
{schema}
"""


def format_word_list(words: list[str]) -> str:
    return ", ".join(w.strip() for w in words if w.strip())
