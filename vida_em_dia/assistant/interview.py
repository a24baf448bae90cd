"""
Traffic Fine Defense Interview

A fixed list of yes/no questions asked one at a time after the user
confirms ANALYZE_DEFENSE. Answers are only ever appended; there is no
skip and no going back. When the last question is answered the session
proposes GENERATE_TRAFFIC_DEFENSE carrying every answer.
"""

import re
from typing import Optional

from pydantic import BaseModel, Field

from vida_em_dia.knowledge.validator import strip_accents
from vida_em_dia.models.assistant import DefenseAnswer, Suggestion
from vida_em_dia.models.finance import TrafficFineDetails


DEFENSE_QUESTIONS: tuple[str, ...] = (
    "Você era o condutor do veículo no momento da infração?",
    "A sinalização no local estava visível e em bom estado?",
    "Os dados da notificação (placa, modelo, cor) estão corretos?",
    "Você recebeu a notificação de autuação em até 30 dias após a infração?",
    "Havia alguma situação de emergência no momento?",
)

CANCEL_WORDS = frozenset({"cancelar", "cancela", "parar", "sair"})
_YES = frozenset({"sim", "s", "yes", "claro", "isso"})
_NO = frozenset({"nao", "n", "no"})

_PUNCTUATION = re.compile(r"[^\w\s]", re.ASCII)


def _normalize_reply(text: str) -> str:
    return _PUNCTUATION.sub("", strip_accents(text.lower())).strip()


def parse_yes_no(text: str) -> Optional[bool]:
    """True for yes, False for no, None when the reply is neither."""
    words = _normalize_reply(text).split()
    if not words:
        return None
    if words[0] in _YES:
        return True
    if words[0] in _NO:
        return False
    return None


def is_cancel_request(text: str) -> bool:
    return _normalize_reply(text) in CANCEL_WORDS


def yes_no_chips() -> list[Suggestion]:
    return [Suggestion(title="Sim"), Suggestion(title="Não")]


class DefenseInterview(BaseModel):
    """Progress through DEFENSE_QUESTIONS for one fine."""

    fine: TrafficFineDetails
    step: int = Field(default=0, ge=0)
    answers: list[DefenseAnswer] = Field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.step >= len(DEFENSE_QUESTIONS)

    @property
    def current_question(self) -> Optional[str]:
        if self.is_complete:
            return None
        return DEFENSE_QUESTIONS[self.step]

    def record(self, answer: bool) -> None:
        """Append the answer to the current question and advance."""
        if self.is_complete:
            raise ValueError("Interview already complete")
        self.answers.append(DefenseAnswer(question=DEFENSE_QUESTIONS[self.step], answer=answer))
        self.step += 1

    def question_text(self) -> str:
        """The current question with its position, e.g. (2/5)."""
        return f"**({self.step + 1}/{len(DEFENSE_QUESTIONS)})** {self.current_question}"
