"""Tests for the use-case fit check."""

from salesflow.conversation.state_machine import FlowName
from salesflow.conversation.use_case import UseCaseMatcher, extract_use_keywords


class TestKeywordExtraction:
    def test_purpose_phrase(self):
        assert extract_use_keywords("es para mi invernadero") == ["invernadero"]

    def test_standalone_word(self):
        assert "cochera" in extract_use_keywords("cuánto para la cochera?")

    def test_no_duplicates(self):
        keywords = extract_use_keywords("para el vivero, un vivero grande")
        assert keywords.count("vivero") == 1

    def test_nothing(self):
        assert extract_use_keywords("hola") == []
        assert extract_use_keywords(None) == []


class TestUseCaseMatcher:
    def test_greenhouse_on_confeccionada_suggests_monofilamento(self, snapshot):
        analysis = UseCaseMatcher(snapshot).analyze("es para mi invernadero", FlowName.MALLA_SOMBRA)
        assert analysis.detected
        assert not analysis.fits
        assert analysis.best_use_case.id == "uc_invernadero"
        assert [e.id for e in analysis.suggestions][0] == "mono_4_35"
        assert analysis.suggested_flow == FlowName.MONOFILAMENTO
        assert analysis.should_suggest_change

    def test_greenhouse_on_rollo_fits(self, snapshot):
        analysis = UseCaseMatcher(snapshot).analyze("para invernadero", FlowName.ROLLO)
        assert analysis.fits
        assert not analysis.should_suggest_change

    def test_garage_fits_confeccionada(self, snapshot):
        analysis = UseCaseMatcher(snapshot).analyze("es para la cochera", FlowName.MALLA_SOMBRA)
        assert analysis.fits
        assert analysis.best_use_case.id == "uc_cochera"

    def test_unknown_usage(self, snapshot):
        analysis = UseCaseMatcher(snapshot).analyze("es para mi abuela", FlowName.MALLA_SOMBRA)
        assert analysis.detected
        assert analysis.fits
        assert analysis.best_use_case is None

    def test_no_usage_mentioned(self, snapshot):
        analysis = UseCaseMatcher(snapshot).analyze("4x5", FlowName.MALLA_SOMBRA)
        assert not analysis.detected
