"""
Lightweight NLP over extracted document text.

- Named entities via spaCy NER, plus regex matching for emails and phones
- Keywords ranked by term frequency (scikit-learn CountVectorizer)
- Naive table detection from delimiter patterns in plain text
- Text statistics and a sentence-based fallback summary

Every extractor accepts empty text and returns an empty result. Entity types
are extracted independently so one failing type never hides the others.
"""

import logging
import math
import re
from functools import lru_cache

from ..models import ExtractedEntity, ExtractedTable, TextStatistics

logger = logging.getLogger(__name__)

MAX_KEYWORDS = 15
MIN_NAME_LENGTH = 3
WORDS_PER_MINUTE = 200
NO_SUMMARY = "No summary available."

# (entity type, spaCy labels, confidence), in extraction order
NAMED_ENTITY_TYPES: list[tuple[str, tuple[str, ...], float]] = [
    ("person", ("PERSON",), 0.8),
    ("organization", ("ORG",), 0.75),
    ("location", ("GPE", "LOC", "FAC"), 0.7),
    ("date", ("DATE",), 0.85),
    ("money", ("MONEY",), 0.9),
]
# Short person/organization/location names are usually tagging noise
NAME_TYPES = {"person", "organization", "location"}

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_PATTERN = re.compile(r"(\+?\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")
SENTENCE_SPLIT = re.compile(r"[.!?]+")
PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
KEYWORD_TOKEN = r"(?u)\b[a-zA-Z]{4,}\b"


@lru_cache
def get_nlp(model_name: str = "en_core_web_sm"):
    """
    Load a spaCy pipeline once per process.

    Falls back to a blank English pipeline (no NER) when the model
    package is not installed.
    """
    import spacy

    try:
        nlp = spacy.load(model_name, disable=["lemmatizer"])
        logger.info("Loaded spaCy model '%s'", model_name)
    except OSError:
        logger.warning(
            "spaCy model '%s' not installed; named entities disabled. "
            "Run: python -m spacy download %s",
            model_name,
            model_name,
        )
        nlp = spacy.blank("en")
    return nlp


def _default_nlp():
    from ..config import get_settings

    return get_nlp(get_settings().spacy_model)


def extract_entities(text: str, nlp=None) -> list[ExtractedEntity]:
    """
    Extract typed entities from text.

    Args:
        text: Plain document text.
        nlp: Optional spaCy pipeline; the configured model is used otherwise.

    Returns:
        Entities de-duplicated case-insensitively across all types.
    """
    if not text or not text.strip():
        return []

    entities: list[ExtractedEntity] = []
    seen: set[str] = set()

    def add(entity_type: str, value: str, confidence: float) -> None:
        value = value.strip()
        if not value or value.lower() in seen:
            return
        if entity_type in NAME_TYPES and len(value) < MIN_NAME_LENGTH:
            return
        seen.add(value.lower())
        entities.append(ExtractedEntity(type=entity_type, text=value, confidence=confidence))

    doc = None
    try:
        pipeline = nlp if nlp is not None else _default_nlp()
        if len(text) >= pipeline.max_length:
            pipeline.max_length = len(text) + 1
        doc = pipeline(text)
    except Exception as e:
        logger.warning("spaCy pipeline failed: %s", e)

    if doc is not None:
        for entity_type, labels, confidence in NAMED_ENTITY_TYPES:
            try:
                for ent in doc.ents:
                    if ent.label_ in labels:
                        add(entity_type, ent.text, confidence)
            except Exception as e:
                logger.warning("Failed to extract %s entities: %s", entity_type, e)

    try:
        for match in EMAIL_PATTERN.finditer(text):
            add("email", match.group(0), 0.95)
    except Exception as e:
        logger.warning("Failed to extract emails: %s", e)

    try:
        for match in PHONE_PATTERN.finditer(text):
            add("phone", match.group(0), 0.85)
    except Exception as e:
        logger.warning("Failed to extract phones: %s", e)

    return entities


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """
    Rank terms of four or more letters by frequency.

    English stop words are removed. Ties keep the order in which the terms
    first appear in the text.
    """
    if not text or not text.strip():
        return []

    from sklearn.feature_extraction.text import CountVectorizer

    vectorizer = CountVectorizer(
        stop_words="english",
        lowercase=True,
        token_pattern=KEYWORD_TOKEN,
    )
    try:
        counts = vectorizer.fit_transform([text])
    except ValueError:
        # Only stop words or short tokens
        return []

    terms = vectorizer.get_feature_names_out()
    totals = counts.toarray()[0]

    # Whole-token positions, so "data" is not placed by "metadata"
    first_seen: dict[str, int] = {}
    for position, token in enumerate(vectorizer.build_analyzer()(text)):
        first_seen.setdefault(token, position)

    ranked = sorted(
        zip(terms, totals),
        key=lambda item: (-int(item[1]), first_seen.get(str(item[0]), len(first_seen))),
    )
    return [str(term) for term, _ in ranked[:limit]]


def _split_cells(line: str, delimiter: str) -> list[str]:
    if delimiter == "pipe":
        return [c.strip() for c in line.split("|") if c.strip()]
    if delimiter == "tab":
        return [c.strip() for c in line.split("\t") if c.strip()]
    if delimiter == "spaces":
        return [c.strip() for c in re.split(r"\s{2,}", line) if c.strip()]
    return line.split()


def _detect_delimiter(line: str) -> str:
    if line.count("|") >= 2:
        return "pipe"
    if "\t" in line:
        return "tab"
    if re.search(r"\s{2,}", line):
        return "spaces"
    return "whitespace"


def extract_tables(text: str) -> list[ExtractedTable]:
    """
    Detect table-like runs of lines.

    A line with three or more cells starts a table; following lines with at
    least two cells (split the same way as the header) become its rows.
    Lines consumed as rows are not reconsidered as headers.
    """
    if not text or not text.strip():
        return []

    lines = [line.strip() for line in text.split("\n")]
    lines = [line for line in lines if line]
    tables: list[ExtractedTable] = []

    i = 0
    while i < len(lines):
        delimiter = _detect_delimiter(lines[i])
        headers = _split_cells(lines[i], delimiter)

        if len(headers) >= 3 and i + 1 < len(lines):
            rows: list[list[str]] = []
            for next_line in lines[i + 1:]:
                cells = _split_cells(next_line, delimiter)
                if len(cells) < 2:
                    break
                rows.append(cells)

            if rows:
                tables.append(ExtractedTable(headers=headers, rows=rows, confidence=0.7))
                i += len(rows)
        i += 1

    return tables


def _sentences(text: str) -> list[str]:
    return [s.strip() for s in SENTENCE_SPLIT.split(text) if s.strip()]


def get_text_statistics(text: str) -> TextStatistics:
    """Count words, characters, sentences and paragraphs."""
    if not text or not text.strip():
        return TextStatistics(character_count=len(text or ""))

    word_count = len(text.split())
    sentence_count = len(_sentences(text))
    paragraph_count = len([p for p in PARAGRAPH_SPLIT.split(text) if p.strip()])

    return TextStatistics(
        word_count=word_count,
        character_count=len(text),
        sentence_count=sentence_count,
        paragraph_count=paragraph_count,
        avg_words_per_sentence=round(word_count / sentence_count, 1) if sentence_count else 0.0,
        reading_time=math.ceil(word_count / WORDS_PER_MINUTE),
    )


def summarize_text(text: str, max_sentences: int = 3) -> str:
    """First few substantial sentences, used when no LLM summary exists."""
    if not text:
        return NO_SUMMARY
    sentences = [s for s in _sentences(text) if len(s) > 20][:max_sentences]
    if not sentences:
        return NO_SUMMARY
    return ". ".join(sentences) + "."
