"""Fixed Portuguese copy used by the assistant."""

import random
from typing import Optional, Sequence


LEAD_INS = (
    "Entendi!",
    "Claro, olha só:",
    "Boa pergunta!",
    "Isso é importante saber:",
)

NON_ANSWERS = (
    "Ainda estou aprendendo sobre esse ponto específico.",
    "Essa dúvida é bem específica e eu ainda não tenho todos os detalhes.",
    "Puxa, ainda não sei te responder isso com precisão baseada nas regras atuais.",
)

NON_ANSWER_CLOSING = "\n\nQue tal detalharmos seu caso ou verificarmos as regras gerais no painel?"

DISCLAIMER = (
    "\n\n*Este é um guia educativo baseado na Base de Conhecimento Oficial IR 2026. "
    "O Vida em Dia não realiza o envio oficial nem substitui um contador.*"
)

CLARIFY_TASK = "Identifiquei sua intenção, mas qual tarefa você quer tratar exatamente?"
UPLOAD_GUIDANCE = (
    "Pronto para receber! Suba um recibo médico ou escolar e eu analiso se ele "
    "abate seu imposto."
)
NO_FINANCIAL_DATA = "Ainda não tenho acesso aos seus dados financeiros."
REPORT_UNAVAILABLE = "Não consegui carregar seus dados agora. Tente de novo em instantes."

ACTION_CANCELLED = "Ação cancelada."
ACTION_EXPIRED = (
    "Essa confirmação expirou. Por segurança, ações propostas valem por apenas "
    "{minutes} minutos. Me peça de novo para eu preparar uma nova."
)
ACTION_FAILED = "Não consegui concluir essa ação agora. Você pode tentar confirmar de novo."
DEFENSE_FAILED = (
    "Tive um problema ao gerar sua defesa agora. Suas respostas estão guardadas; "
    "confirme de novo para tentar outra vez."
)

UPLOAD_FAILED = "Não consegui subir o arquivo. Verifique sua conexão."
NO_HOUSEHOLD = "Erro ao identificar sua casa."
ANALYSIS_FAILED = "O documento foi salvo, mas não consegui analisar agora."
TRAFFIC_ANALYSIS_FAILED = (
    "Consegui subir a multa, mas tive um problema ao analisar os detalhes agora."
)


class PhrasePicker:
    """
    Picks one phrase from a fixed set.

    Tests pass a seeded random.Random (or any object with choice()) to
    make the pick deterministic.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def pick(self, phrases: Sequence[str]) -> str:
        return self._rng.choice(phrases)

    def lead_in(self) -> str:
        return self.pick(LEAD_INS)

    def non_answer(self) -> str:
        return self.pick(NON_ANSWERS) + NON_ANSWER_CLOSING
