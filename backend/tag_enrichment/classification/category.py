"""Map a streamer's content to exactly one coarse category."""

from typing import List, Optional, Sequence

from tag_enrichment.classification.patterns import PatternTable, load_pattern_table, normalize
from tag_enrichment.models.schemas import Category


def infer_category(
    current_game: Optional[str],
    tags: Optional[Sequence[str]] = None,
    top_games: Optional[Sequence[str]] = None,
    table: Optional[PatternTable] = None
) -> Category:
    """
    Infer a category from game names and tags.

    Categories are tried in table order (iGaming, IRL, Music, Creative,
    Sports, Education, Gaming); a category matches when any game name is
    one of its games or hits one of its keywords, or when any tag is one
    of its tags. A non-empty but unknown current game falls back to
    Gaming, and no signal at all gives Variety.

    Args:
        current_game: Current game/category name
        tags: Existing streamer tags
        top_games: Historical game names
        table: Pattern table; the configured one by default

    Returns:
        One Category, never None
    """
    table = table or load_pattern_table()

    game = normalize(current_game)
    games = [g for g in [game, *(normalize(t) for t in top_games or [])] if g]
    tag_list = list(tags or [])

    for category in table.categories:
        if any(category.matches_game(g) for g in games) or category.matches_tags(tag_list):
            return category.label

    if game:
        return table.fallback_label

    return table.default_label


def is_gaming_related(game: Optional[str], table: Optional[PatternTable] = None) -> bool:
    """True for any non-empty game that no non-Gaming category claims."""
    normalized = normalize(game)
    if not normalized:
        return False

    table = table or load_pattern_table()
    for category in table.categories:
        if category.label != Category.GAMING and category.matches_game(normalized):
            return False

    return True


def all_categories() -> List[Category]:
    return list(Category)
