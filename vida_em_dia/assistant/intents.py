"""
Keyword Intent Classifier

Deterministic and total: every text maps to exactly one Intent, with
UNKNOWN as the fallback. Rules are tested in order and the first match
wins, so the traffic and tax groups must stay ahead of the generic
action and financial groups ("quanto" alone is an action proposal,
"quanto de restituição" is a tax question).

Matching is plain substring search on the lower-cased text; accents are
kept, so "saúde" and "saude" are different words here.
"""

from typing import Callable

from vida_em_dia.models.assistant import Intent


def _contains_any(*keywords: str) -> Callable[[str], bool]:
    return lambda lower: any(k in lower for k in keywords)


def _is_status_report(lower: str) -> bool:
    if "hoje" in lower and any(k in lower for k in ("como tá", "status", "resumo")):
        return True
    return "resumo rápido" in lower or ("financeiro" in lower and "ir" in lower)


# Order is significant
INTENT_RULES: list[tuple[Intent, Callable[[str], bool]]] = [
    (Intent.TRAFFIC_ANALYSIS, _contains_any("multa", "pontos", "cnh", "detran", "senatran")),
    (Intent.IR_BASICS, _contains_any(
        "o que é", "por que existe", "isento", "diferença entre pagar",
        "retenção", "ajuste anual", "malha fina",
    )),
    (Intent.IR_INCOME, _contains_any(
        "salário", "aluguel", "pensão", "clt", "autônomo", "pró-labore",
        "vale-refeição", "13º", "plr",
    )),
    (Intent.IR_DEDUCTIONS, _contains_any(
        "dedução", "abater", "psicólogo", "escola", "dentista", "academia",
        "material escolar", "curso", "estética",
    )),
    (Intent.IR_DEPENDENTS, _contains_any("dependente", "filho", "cônjuge", "vale a pena")),
    (Intent.IR_INVESTMENTS, _contains_any(
        "investimento", "ação", "cdb", "tesouro", "prejuízo", "dividendo",
    )),
    (Intent.IR_PATRIMONY, _contains_any(
        "carro", "imóvel", "patrimônio", "financiamento", "vendi", "comprei",
    )),
    (Intent.IR_REFUND, _contains_any("restituição", "lote", "prioridade", "quando recebo")),
    (Intent.IR_CHECKLIST, _contains_any(
        "como faço para declarar", "checklist", "passo a passo", "pronto para declarar",
    )),
    (Intent.STATUS_REPORT, _is_status_report),
    (Intent.GENERAL_HEALTH, _contains_any("tudo certo", "saúde", "geral")),
    # Completing, delegating, rescheduling, pricing
    (Intent.ACTION_PROPOSAL, _contains_any("paga", "resolv", "conclu", "feito", "quit")),
    (Intent.ACTION_PROPOSAL, _contains_any("pass", "deleg", "manda", "transf")),
    (Intent.ACTION_PROPOSAL, _contains_any("lembr", "reagend", "adi", "muda", "posterg")),
    (Intent.ACTION_PROPOSAL, _contains_any("preço", "valor", "quanto", "é")),
    (Intent.FINANCIAL_STATUS, _contains_any(
        "dinheiro", "finança", "saldo", "conta", "gast", "econom",
    )),
    (Intent.RISK_STATUS, _contains_any("risco", "atraso", "problema", "vence", "urgente")),
    (Intent.UPLOAD_INTENT, _contains_any("anexa", "manda", "upload", "arquivo", "recibo", "foto")),
]


def classify_intent(text: str) -> Intent:
    lower = text.lower()
    for intent, matches in INTENT_RULES:
        if matches(lower):
            return intent
    return Intent.UNKNOWN


def knowledge_domain(intent: Intent) -> str:
    """Cache domain a question is answered under."""
    if intent in (Intent.UPLOAD_INTENT, Intent.TRAFFIC_ANALYSIS):
        return "documents"
    return "general"


def knowledge_category(intent: Intent, text: str) -> str:
    """TTL category of a cached answer (see knowledge.cache.TTL_MAP)."""
    lower = text.lower()
    if intent.is_tax_module:
        if "praz" in lower or "ate quando" in lower:
            return "irpf_deadlines"
        return "irpf_2026"
    if "multa" in lower or "pontos" in lower or "cnh" in lower:
        return "traffic_general"
    if intent == Intent.UPLOAD_INTENT:
        return "docs_portals"
    return "general"
