"""
Remote Knowledge Cache

Validated answers are stored as KnowledgeFacts and reused until their
valid_until passes. Lookups are keyed by domain plus fact_key when the
caller has one, otherwise by the SHA-256 of the normalized question.

CRITICAL: The cache is read-only on lookup. Only save_fact writes, and
it refuses anything the validator rejects.
"""

import hashlib
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog

from vida_em_dia.audit.logger import AuditLogger
from vida_em_dia.knowledge.validator import KnowledgeValidator, strip_accents
from vida_em_dia.models.audit import AuditEventBuilder
from vida_em_dia.models.finance import utc_now
from vida_em_dia.models.knowledge import AnswerJson, CandidateAnswer, KnowledgeFact
from vida_em_dia.services.storage.interface import KnowledgeStorageInterface, StorageError


logger = structlog.get_logger()


# Days a fact stays valid, per knowledge category
TTL_MAP: dict[str, int] = {
    "traffic_general": 365,
    "traffic_links": 90,
    "traffic_procedures": 45,
    "irpf_deadlines": 30,
    "docs_models": 180,
    "docs_portals": 60,
    "general": 60,
}

# The IRPF 2026 cycle ends on a fixed date instead of a day count
IRPF_2026_CATEGORY = "irpf_2026"
IRPF_2026_END = datetime(2026, 12, 31, 23, 59, 59, tzinfo=timezone.utc)

_PUNCTUATION = re.compile(r"[^\w\s]", re.ASCII)
_WHITESPACE = re.compile(r"\s+")


def normalize_question(text: str) -> str:
    """Lower-case, strip accents and punctuation, collapse whitespace."""
    text = strip_accents(text.lower())
    text = _PUNCTUATION.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def hash_question(text: str) -> str:
    return hashlib.sha256(normalize_question(text).encode("utf-8")).hexdigest()


def calculate_expiration(
    category: str,
    model_ttl_days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> datetime:
    """
    When a fact of this category stops being served.

    Unknown categories use the general TTL. A positive model-suggested
    TTL wins only when it is shorter than the category's.
    """
    if category == IRPF_2026_CATEGORY:
        return IRPF_2026_END

    days = TTL_MAP.get(category, TTL_MAP["general"])
    if model_ttl_days and model_ttl_days < days:
        days = model_ttl_days

    return (now or utc_now()) + timedelta(days=days)


class KnowledgeCache:
    """
    Cache-first access to validated knowledge.

    Storage failures on lookup are misses; on save they drop the fact.
    Neither reaches the caller.
    """

    def __init__(
        self,
        storage: KnowledgeStorageInterface,
        audit: Optional[AuditLogger] = None,
        validator: Optional[KnowledgeValidator] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._storage = storage
        self._audit = audit
        self._validator = validator or KnowledgeValidator()
        self._clock = clock

    async def get(
        self,
        domain: str,
        question: str,
        fact_key: Optional[str] = None,
        user_id: Optional[str] = None,
        household_id: Optional[str] = None,
    ) -> Optional[KnowledgeFact]:
        """Return a fact still valid now, or None."""
        now = self._clock()
        try:
            fact = await self._storage.find_fact(
                domain=domain,
                now=now,
                question_hash=None if fact_key else hash_question(question),
                fact_key=fact_key,
            )
        except StorageError as e:
            logger.warning("knowledge_lookup_failed", domain=domain, error=str(e))
            return None

        # Storage backends filter already; this guards a stale row.
        if fact is None or not fact.is_valid_at(now):
            return None

        if self._audit:
            self._audit.emit(
                AuditEventBuilder.knowledge_used(fact.id, domain, user_id, household_id)
            )
        return fact

    async def save_fact(
        self,
        domain: str,
        question: str,
        candidate: CandidateAnswer,
        category: Optional[str] = None,
        fact_key: Optional[str] = None,
        model_name: Optional[str] = None,
        model_provider: str = "google",
        user_id: Optional[str] = None,
        household_id: Optional[str] = None,
    ) -> Optional[KnowledgeFact]:
        """
        Validate and store a generated answer.

        Returns the stored fact, or None when it was rejected or the
        write failed.
        """
        outcome = self._validator.validate(candidate)
        if not outcome.ok:
            if self._audit:
                self._audit.emit(
                    AuditEventBuilder.knowledge_rejected(
                        domain, outcome.reason.value, outcome.detail, user_id
                    )
                )
            return None

        now = self._clock()
        fact = KnowledgeFact(
            domain=domain,
            fact_key=fact_key,
            question_hash=hash_question(question),
            question_text=question,
            question_normalized=normalize_question(question),
            answer_text=candidate.answer_text,
            answer_json=candidate.answer_json or AnswerJson(),
            sources=candidate.sources,
            confidence_level=candidate.confidence_level,
            valid_until=calculate_expiration(category or domain, candidate.ttl_days, now),
            model_provider=model_provider,
            model_name=model_name,
            retrieved_at=now,
        )

        try:
            await self._storage.save_fact(fact)
        except StorageError as e:
            logger.error("knowledge_save_failed", domain=domain, error=str(e))
            return None

        if self._audit:
            self._audit.emit(
                AuditEventBuilder.knowledge_created(
                    fact.id, domain, fact.valid_until, user_id, household_id
                )
            )
        return fact

    async def purge_expired(self) -> int:
        """Delete facts past valid_until. Returns how many were removed."""
        try:
            deleted = await self._storage.delete_expired(self._clock())
        except StorageError as e:
            logger.error("knowledge_purge_failed", error=str(e))
            return 0

        if self._audit and deleted:
            self._audit.emit(AuditEventBuilder.knowledge_purged(deleted))
        return deleted
