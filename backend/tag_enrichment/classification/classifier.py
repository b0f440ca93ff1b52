"""
Content classifier.

Maps free-text game/category names to tags from the shared pattern table.
Everything here is pure: output depends only on the arguments and the
pattern table.
"""

from typing import List, Optional, Sequence

from tag_enrichment.classification.patterns import PatternTable, load_pattern_table, normalize
from tag_enrichment.models.schemas import (
    Confidence,
    InferenceSource,
    StreamerRecord,
    TagInferenceResult,
)


def classify(text: Optional[str], table: Optional[PatternTable] = None) -> List[str]:
    """
    Detect the tag for one game or category name.

    The first category in table order whose keywords match wins.

    Args:
        text: Free-text game/category name (any case)
        table: Pattern table; the configured one by default

    Returns:
        ``[tag]`` for a match, otherwise ``[]``
    """
    normalized = normalize(text)
    if not normalized:
        return []

    table = table or load_pattern_table()
    for category in table.tag_categories():
        if category.matches_keywords(normalized):
            return [category.tag]

    return []


def _classify_all(texts: Sequence[Optional[str]], table: PatternTable) -> List[str]:
    tags: List[str] = []
    for text in texts:
        for tag in classify(text, table):
            if tag not in tags:
                tags.append(tag)
    return tags


def infer_tags(
    record: StreamerRecord,
    extra_signals: Sequence[str] = (),
    table: Optional[PatternTable] = None
) -> TagInferenceResult:
    """
    Infer tags for a streamer from its content signals.

    ``current_game`` plus any freshly fetched platform strings count as the
    current-game signal; ``top_games`` is the historical signal.

    Confidence:
        high    both signals matched, or two or more distinct tags were found
        medium  exactly one signal matched
        low     nothing matched

    Tags already on the record are never proposed again.

    Args:
        record: Streamer snapshot
        extra_signals: Raw strings from a platform fetch (tags, game name)
        table: Pattern table; the configured one by default

    Returns:
        TagInferenceResult with only new tags in ``inferred_tags``
    """
    table = table or load_pattern_table()

    current_tags = _classify_all([record.current_game, *extra_signals], table)
    top_tags = _classify_all(record.top_games, table)

    inferred = list(dict.fromkeys(current_tags + top_tags))

    if current_tags and top_tags:
        confidence, source = Confidence.HIGH, InferenceSource.BOTH
    elif current_tags:
        confidence, source = Confidence.MEDIUM, InferenceSource.CURRENT_GAME
    elif top_tags:
        confidence, source = Confidence.MEDIUM, InferenceSource.TOP_GAMES
    else:
        confidence, source = Confidence.LOW, InferenceSource.CURRENT_GAME

    if len(inferred) >= 2:
        confidence = Confidence.HIGH

    existing = set(record.tags)

    return TagInferenceResult(
        record_id=record.id,
        platform=record.platform,
        username=record.username,
        inferred_tags=[tag for tag in inferred if tag not in existing],
        confidence=confidence,
        source=source
    )
