"""Tests for the keyword intent classifier."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from vida_em_dia.assistant.intents import (
    classify_intent,
    knowledge_category,
    knowledge_domain,
)
from vida_em_dia.models.assistant import Intent


class TestClassifyIntent:
    """Tests for classify_intent."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Recebi uma multa de trânsito", Intent.TRAFFIC_ANALYSIS),
            ("Quantos pontos tenho na CNH?", Intent.TRAFFIC_ANALYSIS),
            ("O que é malha fina?", Intent.IR_BASICS),
            ("Como declarar salário de CLT?", Intent.IR_INCOME),
            ("Posso abater o psicólogo?", Intent.IR_DEDUCTIONS),
            ("Devo colocar meu filho?", Intent.IR_DEPENDENTS),
            ("Como declarar CDB?", Intent.IR_INVESTMENTS),
            ("Comprei um carro financiado", Intent.IR_PATRIMONY),
            ("Quando recebo a restituição?", Intent.IR_REFUND),
            ("Me dá um checklist", Intent.IR_CHECKLIST),
            ("Resumo rápido", Intent.STATUS_REPORT),
            ("Qual o status de hoje?", Intent.STATUS_REPORT),
            ("Tudo certo com minha vida adulta?", Intent.GENERAL_HEALTH),
            ("Já resolvi o boleto", Intent.ACTION_PROPOSAL),
            ("Meu saldo", Intent.FINANCIAL_STATUS),
            ("Tem algo urgente?", Intent.RISK_STATUS),
            ("upload", Intent.UPLOAD_INTENT),
            ("bom dia", Intent.UNKNOWN),
        ],
    )
    def test_examples(self, text, expected):
        """Test representative phrases land on their intent."""
        assert classify_intent(text) == expected

    def test_empty_string_is_unknown(self):
        """Test empty input falls back to UNKNOWN."""
        assert classify_intent("") == Intent.UNKNOWN

    def test_case_insensitive(self):
        """Test matching ignores case."""
        assert classify_intent("MULTA") == Intent.TRAFFIC_ANALYSIS

    def test_traffic_wins_over_action(self):
        """Test earlier groups shadow later ones."""
        assert classify_intent("quero pagar a multa") == Intent.TRAFFIC_ANALYSIS

    def test_tax_wins_over_pricing(self):
        """Test 'quanto' alone is an action, with restituição it is tax."""
        assert classify_intent("quanto") == Intent.ACTION_PROPOSAL
        assert classify_intent("quanto de restituição") == Intent.IR_REFUND

    def test_accents_are_significant(self):
        """Test 'saude' without accent is not the GENERAL_HEALTH keyword."""
        assert classify_intent("saúde") == Intent.GENERAL_HEALTH
        assert classify_intent("saude") != Intent.GENERAL_HEALTH

    @given(st.text())
    def test_total(self, text):
        """Test every string maps to exactly one known intent."""
        assert classify_intent(text) in set(Intent)

    @given(st.text())
    def test_deterministic(self, text):
        """Test the same text always yields the same intent."""
        assert classify_intent(text) == classify_intent(text)


class TestKnowledgeRouting:
    """Tests for the cache domain and TTL category helpers."""

    def test_domain(self):
        """Test documents and traffic questions share the documents domain."""
        assert knowledge_domain(Intent.UPLOAD_INTENT) == "documents"
        assert knowledge_domain(Intent.TRAFFIC_ANALYSIS) == "documents"
        assert knowledge_domain(Intent.IR_REFUND) == "general"

    def test_tax_deadline_category(self):
        """Test deadline questions get the short IRPF TTL."""
        assert knowledge_category(Intent.IR_BASICS, "Qual o prazo?") == "irpf_deadlines"
        assert knowledge_category(Intent.IR_BASICS, "O que é IR?") == "irpf_2026"

    def test_traffic_category(self):
        """Test traffic questions use the traffic TTL."""
        assert knowledge_category(Intent.TRAFFIC_ANALYSIS, "multa de radar") == "traffic_general"

    def test_fallback_categories(self):
        """Test uploads and everything else."""
        assert knowledge_category(Intent.UPLOAD_INTENT, "recibo") == "docs_portals"
        assert knowledge_category(Intent.UNKNOWN, "oi") == "general"
