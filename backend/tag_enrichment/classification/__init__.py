"""Content classification."""

from tag_enrichment.classification.classifier import classify, infer_tags
from tag_enrichment.classification.category import infer_category, is_gaming_related, all_categories

__all__ = ["classify", "infer_tags", "infer_category", "is_gaming_related", "all_categories"]
