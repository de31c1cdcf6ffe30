"""
Unit tests for the translation collaborator.

WHAT: Phrase lookup order, memoisation, failure fallback, script detection
WHY: Chat translation must never break message delivery
HOW: Async tests with a zero-latency service instance
"""

from unittest.mock import patch

import pytest

from mandi.services.translation import SUPPORTED_LANGUAGES, TranslationService


pytestmark = pytest.mark.unit


@pytest.fixture
def service():
    return TranslationService(delay_seconds=0)


class TestTranslate:

    @pytest.mark.asyncio
    async def test_exact_phrase(self, service):
        result = await service.translate("Hello", "en", "hi")
        assert result.translated_text == "नमस्ते"
        assert result.confidence == 0.85

    @pytest.mark.asyncio
    async def test_phrase_substitution_keeps_rest_of_text(self, service):
        result = await service.translate("The PRICE is fair", "en", "ta")
        assert result.translated_text == "The விலை is fair"

    @pytest.mark.asyncio
    async def test_prices_and_numbers_pass_through(self, service):
        assert (await service.translate("₹45 per kg", "en", "hi")).translated_text == "₹45 per kg"
        assert (await service.translate("120", "en", "bn")).translated_text == "120"

    @pytest.mark.asyncio
    async def test_unknown_text_gets_language_marker(self, service):
        result = await service.translate("Fresh stock arrived", "en", "mr")
        assert result.translated_text == "[MR] Fresh stock arrived"

    @pytest.mark.asyncio
    async def test_same_language_is_identity(self, service):
        result = await service.translate("Hello", "hi", "hi")
        assert result.translated_text == "Hello"
        assert result.confidence == 1.0

    @pytest.mark.asyncio
    async def test_results_are_memoised(self, service):
        with patch.object(service, "_translate_text", wraps=service._translate_text) as translate_text:
            first = await service.translate("how much", "en", "gu")
            second = await service.translate("how much", "en", "gu")

        assert translate_text.call_count == 1
        assert first == second

    @pytest.mark.asyncio
    async def test_failure_returns_original_with_low_confidence(self, service):
        with patch.object(service, "_translate_text", side_effect=RuntimeError("provider down")):
            result = await service.translate("too expensive", "en", "hi")

        assert result.translated_text == "too expensive"
        assert result.confidence == 0.1

    @pytest.mark.asyncio
    async def test_clear_cache_forces_retranslation(self, service):
        with patch.object(service, "_translate_text", wraps=service._translate_text) as translate_text:
            await service.translate("how much", "en", "gu")
            service.clear_cache()
            await service.translate("how much", "en", "gu")

        assert translate_text.call_count == 2


class TestDetectLanguage:

    @pytest.mark.parametrize("text,expected", [
        ("How much for 5 kg?", "en"),
        ("कितना है", "hi"),
        ("দাম কত", "bn"),
        ("ఎంత", "te"),
        ("விலை என்ன", "ta"),
        ("કેટલું", "gu"),
        ("ಎಷ್ಟು", "kn"),
        ("എത്ര", "ml"),
        ("ਕਿੰਨਾ", "pa"),
    ])
    def test_scripts(self, service, text, expected):
        assert service.detect_language(text) == expected

    def test_unknown_defaults_to_hindi(self, service):
        assert service.detect_language("₹₹₹") == "hi"


def test_supported_languages():
    assert len(SUPPORTED_LANGUAGES) == 12
    assert SUPPORTED_LANGUAGES["or"] == "Odia"
