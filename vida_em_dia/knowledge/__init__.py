"""Remote knowledge cache and answer validation."""

from vida_em_dia.knowledge.cache import (
    TTL_MAP,
    KnowledgeCache,
    calculate_expiration,
    hash_question,
    normalize_question,
)
from vida_em_dia.knowledge.validator import (
    FORBIDDEN_TERMS,
    TRUSTED_DOMAINS,
    KnowledgeValidator,
    strip_accents,
)

__all__ = [
    "FORBIDDEN_TERMS",
    "TRUSTED_DOMAINS",
    "TTL_MAP",
    "KnowledgeCache",
    "KnowledgeValidator",
    "calculate_expiration",
    "hash_question",
    "normalize_question",
    "strip_accents",
]
