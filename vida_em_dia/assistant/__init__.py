"""Conversational action pipeline: classify, answer, propose, confirm."""

from vida_em_dia.assistant.executor import ActionExecutionError, ActionExecutor
from vida_em_dia.assistant.faq import LocalKnowledgeMatcher, load_faq_corpus, normalize_faq_text
from vida_em_dia.assistant.intents import classify_intent, knowledge_category, knowledge_domain
from vida_em_dia.assistant.interview import DEFENSE_QUESTIONS, DefenseInterview
from vida_em_dia.assistant.phrases import PhrasePicker
from vida_em_dia.assistant.resolver import ActionResolver

__all__ = [
    "ActionExecutionError",
    "ActionExecutor",
    "ActionResolver",
    "DEFENSE_QUESTIONS",
    "DefenseInterview",
    "LocalKnowledgeMatcher",
    "PhrasePicker",
    "classify_intent",
    "knowledge_category",
    "knowledge_domain",
    "load_faq_corpus",
    "normalize_faq_text",
]
