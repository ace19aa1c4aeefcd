"""
Text chunking for sequential synthesis.

Text is split into sentences with NLTK's Punkt detector, then sentences are
packed greedily into chunks of at most ``max_words`` whitespace-delimited
words. A sentence is never cut: one that alone exceeds the budget becomes
its own chunk.

Punkt uses the trained model for the request language when its data is
installed (``nltk.download("punkt_tab")``); otherwise it runs untrained with
a built-in abbreviation table, so "Dr. Smith" stays one sentence either way.
Nothing is downloaded at runtime.

Example:
    >>> chunk_text("First one. Second one!", max_words=2).chunks
    ['First one.', 'Second one!']
    >>> chunk_text("Dr. Smith went home. Then he slept.", max_words=4).chunks
    ['Dr. Smith went home.', 'Then he slept.']
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Optional

from nltk.tokenize.punkt import PunktParameters, PunktSentenceTokenizer, PunktTokenizer

from voxkit.core.logging import debug, get_logger, verbose
from voxkit.utils.timeit import timeit

_LOG = get_logger("voxkit.chunker")

DEFAULT_MAX_WORDS = 200
DEFAULT_LANGUAGE = "english"

# Language codes and Qwen3-TTS language names -> Punkt model names.
_PUNKT_LANGUAGES = {
    "en": "english", "de": "german", "fr": "french", "es": "spanish",
    "it": "italian", "pt": "portuguese", "ru": "russian", "tr": "turkish",
    "nl": "dutch", "pl": "polish", "cs": "czech", "da": "danish",
    "et": "estonian", "fi": "finnish", "el": "greek", "no": "norwegian",
    "sl": "slovene", "sv": "swedish",
}

# Lower case, without the trailing period, as Punkt stores them.
_ABBREVIATIONS = {
    "english": {
        "mr", "mrs", "ms", "dr", "prof", "sr", "jr", "st", "mt", "vs", "etc",
        "e.g", "i.e", "approx", "dept", "est", "fig", "inc", "ltd", "co", "corp",
        "no", "vol", "jan", "feb", "mar", "apr", "jun", "jul", "aug", "sep",
        "sept", "oct", "nov", "dec", "a.m", "p.m", "u.s", "u.k",
    },
    "german": {"dr", "prof", "hr", "fr", "nr", "str", "bzw", "z.b", "d.h", "usw", "ca", "vgl", "s"},
    "french": {"m", "mme", "mlle", "dr", "pr", "st", "ste", "etc", "cf", "p", "n"},
    "spanish": {"sr", "sra", "srta", "dr", "dra", "ud", "uds", "etc", "pág", "p.ej"},
    "turkish": {"dr", "prof", "doç", "sn", "vb", "vs", "bkz", "yy", "no"},
}

# Full-width terminators end a sentence without a following space, which
# Punkt never sees as a boundary.
_CJK_SPLIT = re.compile(r".+?(?:[。！？]+[」』”’)]*|$)", re.DOTALL)


@dataclass
class ChunkResult:
    chunks: List[str]
    timings_s: Dict[str, float]


def punkt_language(language: Optional[str]) -> str:
    """
    Map a language code or name to a Punkt model name.

    >>> punkt_language("en"), punkt_language("German"), punkt_language(None)
    ('english', 'german', 'english')
    """
    key = (language or "").strip().lower()
    if key in _PUNKT_LANGUAGES.values():
        return key
    return _PUNKT_LANGUAGES.get(key.split("-")[0].split("_")[0], DEFAULT_LANGUAGE)


def _trained_tokenizer(language: str) -> Optional[PunktSentenceTokenizer]:
    try:
        return PunktTokenizer(language)
    except (LookupError, OSError, ValueError):
        return None


@lru_cache(maxsize=None)
def sentence_tokenizer(language: str = DEFAULT_LANGUAGE) -> PunktSentenceTokenizer:
    """
    Return the Punkt tokenizer for a Punkt language name.

    The trained model is preferred; without it an untrained tokenizer that
    knows the language's common abbreviations is built.
    """
    tokenizer = _trained_tokenizer(language)
    if tokenizer is not None:
        debug(_LOG, "punkt_loaded", language=language, trained=True)
        return tokenizer

    params = PunktParameters()
    params.abbrev_types = set(_ABBREVIATIONS.get(language, _ABBREVIATIONS[DEFAULT_LANGUAGE]))
    debug(_LOG, "punkt_loaded", language=language, trained=False, abbreviations=len(params.abbrev_types))
    return PunktSentenceTokenizer(params)


def split_sentences(text: str, language: Optional[str] = None) -> List[str]:
    """
    Split ``text`` into trimmed sentences using the model for ``language``.

    >>> split_sentences("Dr. Smith arrived. He sat down.")
    ['Dr. Smith arrived.', 'He sat down.']
    """
    out: List[str] = []
    for sentence in sentence_tokenizer(punkt_language(language)).tokenize(text):
        out.extend(m.group(0).strip() for m in _CJK_SPLIT.finditer(sentence) if m.group(0).strip())
    return out


def word_count(text: str) -> int:
    """Whitespace-delimited token count, the unit of the chunk budget."""
    return len(text.split())


def chunk_text(text: str, max_words: int = DEFAULT_MAX_WORDS, language: Optional[str] = None) -> ChunkResult:
    """
    Split ``text`` into word-bounded, sentence-respecting chunks.

    Empty or whitespace-only input yields no chunks. When no sentence can
    be detected the whole trimmed text is treated as one sentence.
    Sentences inside a chunk are joined with a single space.

    Args:
        text: Input text.
        max_words: Word budget per chunk.
        language: Language code or name used to pick the sentence model.

    Raises:
        ValueError: If ``max_words`` is not positive.
    """
    if max_words <= 0:
        raise ValueError(f"max_words must be positive, got {max_words}")

    with timeit("chunk") as t:
        trimmed = text.strip()
        out: List[str] = []

        if trimmed:
            sentences = split_sentences(trimmed, language) or [trimmed]

            current: List[str] = []
            current_words = 0
            for sentence in sentences:
                words = word_count(sentence)
                if current and current_words + words > max_words:
                    out.append(" ".join(current))
                    current, current_words = [], 0
                current.append(sentence)
                current_words += words
            if current:
                out.append(" ".join(current))

    verbose(_LOG, "chunked", chunks=len(out), max_words=max_words, seconds=round(t.seconds, 4))
    return ChunkResult(chunks=out, timings_s={"chunk": t.seconds})
