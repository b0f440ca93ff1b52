"""Pattern table shared by the tag detector and the category mapper."""

from functools import lru_cache
from pathlib import Path
from typing import Iterable, List, Optional, Pattern
import json
import re

from pydantic import BaseModel, Field, PrivateAttr

from tag_enrichment.config import settings
from tag_enrichment.models.schemas import Category

DEFAULT_PATTERNS_FILE = Path(__file__).with_name("patterns.json")


def normalize(text: Optional[str]) -> str:
    """Lower-case and trim a free-text signal."""
    return (text or "").strip().lower()


def _phrase_regex(phrases: Iterable[str]) -> Optional[Pattern]:
    """
    Compile phrases into one word-boundary alternation.

    Longer phrases come first so "online casino" wins over "casino".
    ``None`` when there is nothing to match.
    """
    cleaned = sorted({normalize(p) for p in phrases if normalize(p)}, key=len, reverse=True)
    if not cleaned:
        return None

    alternation = "|".join(re.escape(phrase) for phrase in cleaned)
    return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)", re.IGNORECASE)


class CategoryPatterns(BaseModel):
    """
    Matching rules for one category.

    keywords: phrases matched anywhere in the text on word boundaries
    games: exact (normalized) game or category names
    tags: lower-case tag values that imply the category
    exclusions: phrases removed from the text before keyword matching
    """

    label: Category
    tag: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    games: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    exclusions: List[str] = Field(default_factory=list)

    _keyword_regex: Optional[Pattern] = PrivateAttr(default=None)
    _exclusion_regex: Optional[Pattern] = PrivateAttr(default=None)
    _games: frozenset = PrivateAttr(default=frozenset())
    _tags: frozenset = PrivateAttr(default=frozenset())

    def model_post_init(self, __context) -> None:
        self._keyword_regex = _phrase_regex(self.keywords)
        self._exclusion_regex = _phrase_regex(self.exclusions)
        self._games = frozenset(normalize(game) for game in self.games)
        self._tags = frozenset(normalize(tag) for tag in self.tags)

    def matches_keywords(self, text: str) -> bool:
        if self._keyword_regex is None or not text:
            return False
        if self._exclusion_regex is not None:
            text = self._exclusion_regex.sub(" ", text)
        return self._keyword_regex.search(text) is not None

    def matches_game(self, game: str) -> bool:
        """Exact game name, or a keyword hit inside it."""
        return game in self._games or self.matches_keywords(game)

    def matches_tags(self, tags: Iterable[str]) -> bool:
        return any(normalize(tag) in self._tags for tag in tags)


class PatternTable(BaseModel):
    """Ordered categories; earlier entries take priority."""

    categories: List[CategoryPatterns]
    fallback_label: Category = Category.GAMING
    default_label: Category = Category.VARIETY

    def tag_categories(self) -> List[CategoryPatterns]:
        """Categories that map to a tag, in priority order."""
        return [category for category in self.categories if category.tag]

    def get(self, label: Category) -> Optional[CategoryPatterns]:
        for category in self.categories:
            if category.label == label:
                return category
        return None


def load_pattern_table(path: Optional[str] = None) -> PatternTable:
    """
    Load and validate a pattern table.

    Args:
        path: JSON file; CLASSIFIER_PATTERNS_FILE or the packaged table by default

    Returns:
        PatternTable (cached per path)
    """
    resolved = path or settings.CLASSIFIER_PATTERNS_FILE or str(DEFAULT_PATTERNS_FILE)
    return _load_cached(str(Path(resolved).resolve()))


@lru_cache(maxsize=8)
def _load_cached(path: str) -> PatternTable:
    with open(path, encoding="utf-8") as f:
        return PatternTable.model_validate(json.load(f))
