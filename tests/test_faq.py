"""Tests for the local FAQ matcher."""

import json
from pathlib import Path

import pytest
from hypothesis import given
from hypothesis import strategies as st

import vida_em_dia
from vida_em_dia.assistant.faq import (
    LocalKnowledgeMatcher,
    load_faq_corpus,
    normalize_faq_text,
)
from vida_em_dia.models.knowledge import FaqItem


CORPUS = load_faq_corpus(Path(vida_em_dia.__file__).parent / "data" / "ir_faq_2026.json")


class TestNormalizeFaqText:
    """Tests for the canonical comparison form."""

    def test_lowercases_and_strips_accents(self):
        """Test case and diacritics are dropped."""
        assert normalize_faq_text("Declaração") == "declaracao"

    def test_strips_punctuation_and_whitespace(self):
        """Test punctuation goes and runs of spaces collapse."""
        assert normalize_faq_text("  O que é   malha fina?! ") == "o que e malha fina"

    def test_expands_abbreviations(self):
        """Test informal spellings become full words."""
        assert normalize_faq_text("Vc tá pronto pra declarar?") == "voce esta pronto para declarar"

    def test_abbreviations_are_whole_words(self):
        """Test 'p' inside a word is left alone."""
        assert normalize_faq_text("pagar p mim") == "pagar para mim"

    def test_unaccented_ta_is_kept(self):
        """Test only the accented 'tá' is read as 'está'."""
        assert normalize_faq_text("ta") == "ta"


class TestLoadFaqCorpus:
    """Tests for loading the JSON corpus."""

    def test_packaged_corpus(self):
        """Test the shipped corpus loads with unique ids."""
        assert len(CORPUS) == 24
        assert len({item.id for item in CORPUS}) == len(CORPUS)

    def test_invalid_items_skipped(self, tmp_path):
        """Test a malformed item does not sink the whole corpus."""
        path = tmp_path / "faq.json"
        path.write_text(
            json.dumps({
                "items": [
                    {"id": "ok", "question": "Pergunta?", "answer": "Resposta."},
                    {"id": "bad", "question": "Sem resposta?", "answer": ""},
                    {"question": "Sem id"},
                ]
            }),
            encoding="utf-8",
        )
        items = load_faq_corpus(path)
        assert [item.id for item in items] == ["ok"]

    def test_missing_file_raises(self, tmp_path):
        """Test a missing corpus is an error, not an empty FAQ."""
        with pytest.raises(FileNotFoundError):
            load_faq_corpus(tmp_path / "nope.json")


class TestLocalKnowledgeMatcher:
    """Tests for find_best_match."""

    def test_exact_question(self, faq):
        """Test the literal corpus question returns its item."""
        item = faq.find_best_match("O que é malha fina?")
        assert item is not None
        assert item.id == "fund-004"

    def test_exact_after_normalization(self, faq):
        """Test case, accents and punctuation don't break exact matching."""
        item = faq.find_best_match("o que e MALHA FINA")
        assert item is not None
        assert item.id == "fund-004"

    def test_contained_query_matches(self, faq):
        """Test a query inside a corpus question gets the containment bonus."""
        item = faq.find_best_match("despesas médicas posso deduzir")
        assert item is not None
        assert item.id == "ded-001"

    def test_no_shared_tokens(self, faq):
        """Test unrelated text returns None."""
        assert faq.find_best_match("bom dia") is None

    def test_below_threshold(self, faq):
        """Test scattered overlap is not enough for a long query."""
        assert faq.find_best_match("imposto declarar dividendos aluguel salário") is None

    def test_empty_query(self, faq):
        """Test punctuation-only input returns None."""
        assert faq.find_best_match("???") is None

    def test_ties_keep_corpus_order(self):
        """Test equal scores resolve to the earlier item."""
        matcher = LocalKnowledgeMatcher([
            FaqItem(id="first", question="imposto renda carro", answer="a"),
            FaqItem(id="second", question="carro imposto renda", answer="b"),
        ])
        assert matcher.find_best_match("renda carro imposto").id == "first"

    def test_len(self, faq):
        """Test the matcher reports its corpus size."""
        assert len(faq) == len(CORPUS)

    @given(st.sampled_from(CORPUS))
    def test_every_question_matches_itself(self, item):
        """Test each corpus question resolves to its own item."""
        matcher = LocalKnowledgeMatcher(CORPUS)
        assert matcher.find_best_match(item.question) is item
