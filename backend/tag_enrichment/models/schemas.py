"""Pydantic schemas for the enrichment pipeline."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict, Callable
from datetime import datetime
from enum import Enum
from uuid import UUID
import threading


# ============================================
# Enumerations
# ============================================

class Platform(str, Enum):
    """Supported platforms, in the order the orchestrator processes them."""
    TWITCH = "TWITCH"
    KICK = "KICK"
    YOUTUBE = "YOUTUBE"
    FACEBOOK = "FACEBOOK"
    TIKTOK = "TIKTOK"
    INSTAGRAM = "INSTAGRAM"
    X = "X"
    LINKEDIN = "LINKEDIN"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class InferenceSource(str, Enum):
    CURRENT_GAME = "currentGame"
    TOP_GAMES = "topGames"
    BOTH = "both"


class Category(str, Enum):
    """Coarse content category; exactly one is assigned per streamer."""
    GAMING = "Gaming"
    IGAMING = "iGaming"
    IRL = "IRL"
    MUSIC = "Music"
    CREATIVE = "Creative"
    SPORTS = "Sports"
    EDUCATION = "Education"
    VARIETY = "Variety"


# ============================================
# Streamer Record Schemas
# ============================================

class StreamerRecord(BaseModel):
    """Detached snapshot of a streamer row."""
    id: UUID
    platform: Platform
    username: str
    current_game: Optional[str] = None
    top_games: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    inferred_category: Optional[str] = None
    last_enrichment_update: Optional[datetime] = None
    version: int = 1

    model_config = ConfigDict(from_attributes=True)

    @field_validator("top_games", "tags", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return value or []


# ============================================
# Inference Schemas
# ============================================

class TagInferenceResult(BaseModel):
    """Tags proposed for one streamer during one run. Never persisted."""
    record_id: UUID
    platform: Platform
    username: str
    inferred_tags: List[str] = Field(default_factory=list)
    fetched_tags: List[str] = Field(default_factory=list)
    confidence: Confidence = Confidence.LOW
    source: InferenceSource = InferenceSource.CURRENT_GAME

    @property
    def new_tags(self) -> List[str]:
        """Fetched platform tags followed by inferred tags, without repeats."""
        return list(dict.fromkeys(self.fetched_tags + self.inferred_tags))


# ============================================
# Orchestrator Schemas
# ============================================

class EnrichmentOptions(BaseModel):
    """Options for a full enrichment or tag inference run."""
    batch_size: int = Field(default=50, ge=1, le=1000)
    dry_run: bool = False
    platform_filter: Optional[Platform] = None
    fetch_remote: bool = True
    only_missing_enrichment: bool = False
    progress_interval: int = Field(default=100, ge=1)
    on_progress: Optional[Callable[[int, int, int], None]] = None
    cancel_event: Optional[threading.Event] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()


class EnrichmentSummary(BaseModel):
    """Aggregate outcome of one orchestrator run."""
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    cancelled: bool = False
    results: List[TagInferenceResult] = Field(default_factory=list)


class AnalysisReport(BaseModel):
    """Dry-run report of how many streamers would gain the target tag."""
    total_records: int
    records_with_target_tag: int
    records_matching_content: int
    potential_new_tags: int
    sample_results: List[TagInferenceResult] = Field(default_factory=list)
    confidence_breakdown: Dict[str, int] = Field(default_factory=dict)
    tag_distribution: Dict[str, int] = Field(default_factory=dict)


class CategoryBackfillSummary(BaseModel):
    processed: int = 0
    updated: int = 0
    errors: int = 0
    dry_run: bool = False
    distribution: Dict[str, int] = Field(default_factory=dict)


class TagCoverage(BaseModel):
    total: int
    with_tags: int
    without_tags: int
    percentage: float
