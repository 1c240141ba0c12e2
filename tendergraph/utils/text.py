"""
Text Processing Utilities

Functions for entity name normalization and embedding text.
"""

from __future__ import annotations

import json
import re
from typing import Any

# Russian and English legal-form abbreviations, matched as whole words
LEGAL_FORMS = frozenset(
    {"ооо", "зао", "оао", "пао", "ао", "ип", "нко", "llc", "ltd", "inc", "corp", "jsc", "gmbh"}
)

_QUOTES = re.compile(r"[«»“”„\"'`]")
_PUNCTUATION = re.compile(r"[^\w\s-]")
_WHITESPACE = re.compile(r"\s+")


def normalize_entity_name(name: str) -> str:
    """
    Build the deduplication key for an entity name.

    Lower-cases, folds "ё" to "е", strips quotes and punctuation, drops
    legal-form words and collapses whitespace.

    Args:
        name: Display name, e.g. 'ООО "Ромашка"'

    Returns:
        Normalized key, e.g. "ромашка"
    """
    text = name.lower().replace("ё", "е")
    text = _QUOTES.sub(" ", text)
    text = _PUNCTUATION.sub(" ", text)
    words = [w.strip("-") for w in text.split()]
    words = [w for w in words if w and w not in LEGAL_FORMS]
    return " ".join(words)


def clean_entity_name(name: str) -> str:
    """
    Tidy a display name from extraction.

    Args:
        name: Raw entity name

    Returns:
        Name with collapsed whitespace and stray edge punctuation removed
    """
    name = _WHITESPACE.sub(" ", name)
    return name.strip().strip(",;:")


def normalize_relation_type(label: str) -> str:
    """
    Normalize a relation label to UPPER_SNAKE_CASE.

    Args:
        label: e.g. "has cert" or "has-cert"

    Returns:
        e.g. "HAS_CERT"
    """
    text = re.sub(r"[^A-Za-z0-9]+", " ", label)
    return "_".join(text.upper().split())


def format_entity_embedding_text(entity_type: str, name: str, data: dict[str, Any]) -> str:
    """
    Build the text embedded for an entity: "{type}: {name}. {data as JSON}".

    Resolution and backfill must embed the same representation.
    """
    return f"{entity_type}: {name}. {json.dumps(data or {}, ensure_ascii=False, sort_keys=True)}"


def generate_chunk_id(doc_id: str, sequence: int) -> str:
    """Generate chunk ID: {doc_id}_chunk_{sequence:04d}"""
    return f"{doc_id}_chunk_{sequence:04d}"
