"""
Knowledge Validation

DESIGN DECISION: A generated answer is checked in four ordered stages
and the first failure wins:

1. STRUCTURE - answer_text, answer_json and confidence_level are present
2. SOURCES - at least one citation
3. TRUST - every citation's hostname matches a trusted domain glob
4. CERTAINTY - the text avoids over-certain legal phrasing

IMPORTANT: Validation NEVER fixes an answer. A rejected answer is not
cached and not shown; the caller falls back to the next step.
"""

import re
import unicodedata
from typing import Any, Iterable, Union
from urllib.parse import urlparse

from pydantic import ValidationError

from vida_em_dia.models.knowledge import (
    CandidateAnswer,
    RejectionReason,
    ValidationOutcome,
)


TRUSTED_DOMAINS = [
    "*.gov.br",
    "planalto.gov.br",
    "senatran.gov.br",
    "detran.*.gov.br",
    "*.jus.br",
    "jusbrasil.com.br",
    "usezapay.com.br",
    "gringo.com.vc",
    "senatran.serpro.gov.br",
    "zuldigital.com.br",
]

# Matched against the lower-cased, accent-stripped answer text
FORBIDDEN_TERMS = [
    "e nula",
    "garantido",
    "nao existe duvida",
    "certeza absoluta",
    "decisao definitiva",
]


def strip_accents(text: str) -> str:
    """Drop combining marks after NFD decomposition ("ação" -> "acao")."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def domain_pattern(glob: str) -> re.Pattern:
    """
    Compile a hostname glob into an anchored regex.

    `*` matches any run of characters; everything else is literal.
    """
    body = ".*".join(re.escape(part) for part in glob.lower().split("*"))
    return re.compile(f"^{body}$")


class KnowledgeValidator:
    """
    Decides whether a generated answer may be cached and served.
    """

    def __init__(
        self,
        trusted_domains: Iterable[str] = TRUSTED_DOMAINS,
        forbidden_terms: Iterable[str] = FORBIDDEN_TERMS,
    ):
        self._patterns = [domain_pattern(d) for d in trusted_domains]
        self._forbidden = list(forbidden_terms)

    def is_trusted_url(self, url: str) -> bool:
        """True when the URL parses and its hostname matches a trusted glob."""
        try:
            hostname = urlparse(url).hostname
        except ValueError:
            return False
        if not hostname:
            return False
        return any(p.match(hostname) for p in self._patterns)

    def has_excessive_certainty(self, text: str) -> bool:
        normalized = strip_accents(text.lower())
        return any(term in normalized for term in self._forbidden)

    def validate(self, candidate: Union[CandidateAnswer, dict[str, Any]]) -> ValidationOutcome:
        """
        Run the four stages in order.

        Accepts a raw dict as returned by the model; a dict that does
        not even parse is an invalid structure.
        """
        if not isinstance(candidate, CandidateAnswer):
            try:
                candidate = CandidateAnswer.model_validate(candidate)
            except ValidationError as e:
                return ValidationOutcome(
                    ok=False,
                    reason=RejectionReason.INVALID_STRUCTURE,
                    detail=str(e),
                )

        # Stage 1: structure
        if (
            not candidate.answer_text
            or candidate.answer_json is None
            or candidate.confidence_level is None
        ):
            return ValidationOutcome(ok=False, reason=RejectionReason.INVALID_STRUCTURE)

        # Stage 2: sources
        if not candidate.sources:
            return ValidationOutcome(ok=False, reason=RejectionReason.NO_SOURCES)

        # Stage 3: trust
        untrusted = [s.url for s in candidate.sources if not self.is_trusted_url(s.url)]
        if untrusted:
            return ValidationOutcome(
                ok=False,
                reason=RejectionReason.UNTRUSTED_SOURCES,
                detail=", ".join(untrusted),
            )

        # Stage 4: certainty
        if self.has_excessive_certainty(candidate.answer_text):
            return ValidationOutcome(ok=False, reason=RejectionReason.EXCESSIVE_CERTAINTY)

        return ValidationOutcome(ok=True)
