"""Deterministic script segmentation into scenes.

Given the same script and target duration the output is always identical,
which keeps re-renders reproducible.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

from ..services.base import count_words, estimate_speech_duration

SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")
PARAGRAPH_BOUNDARY = re.compile(r"\n\s*\n")


@dataclass(frozen=True)
class SceneDraft:
    """A scene before any assets exist."""

    id: str
    text: str
    duration: float


def split_sentences(text: str) -> List[str]:
    return [s.strip() for s in SENTENCE_BOUNDARY.split(text.strip()) if s.strip()]


def split_script(script: str, target_words: int = 50, max_words: int = 60) -> List[str]:
    """Group sentences into scene texts.

    Paragraph breaks always end a scene. Within a paragraph sentences are
    added until the scene reaches `target_words`; a sentence that would push
    it past `max_words` starts a new scene instead. A single sentence longer
    than `max_words` becomes its own scene.
    """
    scenes: List[str] = []
    for paragraph in PARAGRAPH_BOUNDARY.split(script.strip()):
        current: List[str] = []
        current_words = 0
        for sentence in split_sentences(" ".join(paragraph.split())):
            words = count_words(sentence)
            if current and current_words + words > max_words:
                scenes.append(" ".join(current))
                current, current_words = [], 0
            current.append(sentence)
            current_words += words
            if current_words >= target_words:
                scenes.append(" ".join(current))
                current, current_words = [], 0
        if current:
            scenes.append(" ".join(current))
    return scenes


def allocate_durations(texts: List[str], total_duration: float, minimum: float = 2.0) -> List[float]:
    """Split a total duration across scenes in proportion to text length.

    Scenes whose share falls below `minimum` are pinned to it and the rest of
    the time is redistributed among the others. When the floor alone exceeds
    the total, every scene gets the floor. Values are rounded to hundredths;
    the longest scene absorbs the rounding difference.
    """
    if not texts:
        return []
    n = len(texts)
    if total_duration <= minimum * n:
        return [minimum] * n

    weights = [max(1, len(text)) for text in texts]
    pinned: set[int] = set()
    while True:
        free = [i for i in range(n) if i not in pinned]
        remaining = total_duration - minimum * len(pinned)
        free_weight = sum(weights[i] for i in free)
        newly_pinned = {i for i in free if remaining * weights[i] / free_weight < minimum}
        if not newly_pinned:
            break
        pinned |= newly_pinned

    durations = [
        minimum if i in pinned else remaining * weights[i] / free_weight
        for i in range(n)
    ]
    durations = [round(d, 2) for d in durations]

    diff = round(total_duration - sum(durations), 2)
    if diff:
        longest = max(range(n), key=lambda i: durations[i])
        durations[longest] = round(durations[longest] + diff, 2)
    return durations


def segment_script(
    script: str,
    target_duration: Optional[float] = None,
    target_words: int = 50,
    max_words: int = 60,
    words_per_minute: int = 150,
    min_duration: float = 2.0,
) -> List[SceneDraft]:
    """Split a script into ordered scene drafts with estimated durations.

    Args:
        script: Narration script.
        target_duration: Requested overall length in seconds. None estimates
            each scene from its word count instead.
        target_words: Words at which a scene is closed.
        max_words: Upper bound on words per scene.
        words_per_minute: Narration pace for estimates.
        min_duration: Floor for any scene's duration.

    Returns:
        Scene drafts with ids scene-1, scene-2, ... in script order.
    """
    texts = split_script(script, target_words, max_words)
    if target_duration:
        durations = allocate_durations(texts, target_duration, min_duration)
    else:
        durations = [estimate_speech_duration(t, words_per_minute, min_duration) for t in texts]
    return [
        SceneDraft(id=f"scene-{i + 1}", text=text, duration=duration)
        for i, (text, duration) in enumerate(zip(texts, durations))
    ]
