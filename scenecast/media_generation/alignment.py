"""
Word-level subtitle timing from character-level TTS alignment.

The first pass groups characters into words; the second pass makes the word
list readable as one-word-at-a-time captions without touching any timing.
"""

import re
from typing import List, Optional

from .media_models import CharacterAlignment, WordTimestamp

WORD_BREAK_PUNCTUATION = frozenset(".,;!?")
_PUNCTUATION_ONLY = re.compile(r'^[.,;!?]+$')

SHORT_WORDS = frozenset({
    "A", "I", "AN", "TO", "IN", "IS", "IT", "OF", "ON",
    "OR", "BE", "AS", "AT", "BY", "MY", "WE", "HE", "SHE",
})


def _ends_word(next_char: Optional[str]) -> bool:
    return next_char is None or next_char.isspace() or next_char in WORD_BREAK_PUNCTUATION


def character_to_word_timestamps(alignment: Optional[CharacterAlignment]) -> List[WordTimestamp]:
    """Group aligned characters into upper-cased words.

    A word ends when the next character is whitespace, one of `.,;!?`, or
    the end of text. Its start/end are the first/last character's times.
    Punctuation becomes its own token here and is dropped by
    optimize_words_for_subtitles.
    """
    if alignment is None or not alignment.characters:
        return []

    chars = alignment.characters
    starts = alignment.character_start_times_seconds
    ends = alignment.character_end_times_seconds

    words: List[WordTimestamp] = []
    current = ""
    word_start = 0.0
    for i, char in enumerate(chars):
        next_char = chars[i + 1] if i + 1 < len(chars) else None
        if not current and char.isspace():
            continue
        if not current:
            word_start = starts[i]
        current += char
        if _ends_word(next_char):
            text = current.strip()
            if text:
                words.append(WordTimestamp(word=text.upper(), start=word_start, end=ends[i]))
            current = ""
    return words


def optimize_words_for_subtitles(words: List[WordTimestamp]) -> List[WordTimestamp]:
    """Drop punctuation tokens and pair short function words with the next word.

    A merged unit starts where the short word starts and ends where the
    following word ends. A trailing short word stays on its own.
    """
    filtered = [w for w in words if not _PUNCTUATION_ONLY.match(w.word.strip())]

    optimized: List[WordTimestamp] = []
    i = 0
    while i < len(filtered):
        current = filtered[i]
        if current.word.upper() in SHORT_WORDS and i + 1 < len(filtered):
            following = filtered[i + 1]
            optimized.append(WordTimestamp(
                word=f"{current.word} {following.word}",
                start=current.start,
                end=following.end,
            ))
            i += 2
        else:
            optimized.append(current.model_copy())
            i += 1
    return optimized


def words_from_alignment(alignment: Optional[CharacterAlignment]) -> List[WordTimestamp]:
    return optimize_words_for_subtitles(character_to_word_timestamps(alignment))
