"""
Translation collaborator for cross-language negotiation chat.

WHAT: Phrase-table translation, script-based language detection
WHY: Buyers and vendors often prefer different Indian languages
HOW: Async translate with simulated provider latency, memoised per
     (text, from, to); failures degrade to the original text
"""

import asyncio
import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from ..core.config import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

SUPPORTED_LANGUAGES: Dict[str, str] = {
    "hi": "Hindi",
    "en": "English",
    "bn": "Bengali",
    "te": "Telugu",
    "mr": "Marathi",
    "ta": "Tamil",
    "gu": "Gujarati",
    "kn": "Kannada",
    "ml": "Malayalam",
    "pa": "Punjabi",
    "or": "Odia",
    "as": "Assamese",
}

DEFAULT_LANGUAGE = "hi"
TRANSLATION_CONFIDENCE = 0.85
FALLBACK_CONFIDENCE = 0.1

# Common market phrases, keyed by lowercase English
PHRASES: Dict[str, Dict[str, str]] = {
    "hello": {
        "hi": "नमस्ते", "bn": "হ্যালো", "te": "హలో", "mr": "नमस्कार",
        "ta": "வணக்கம்", "gu": "નમસ્તે", "kn": "ನಮಸ್ಕಾರ", "ml": "നമസ്കാരം",
        "pa": "ਸਤ ਸ੍ਰੀ ਅਕਾਲ", "or": "ନମସ୍କାର", "as": "নমস্কাৰ",
    },
    "price": {
        "hi": "कीमत", "bn": "দাম", "te": "ధర", "mr": "किंमत",
        "ta": "விலை", "gu": "કિંમત", "kn": "ಬೆಲೆ", "ml": "വില",
        "pa": "ਕੀਮਤ", "or": "ଦାମ", "as": "দাম",
    },
    "quantity": {
        "hi": "मात्रा", "bn": "পরিমাণ", "te": "పరిమాణం", "mr": "प्रमाण",
        "ta": "அளவு", "gu": "માત્રા", "kn": "ಪ್ರಮಾಣ", "ml": "അളവ്",
        "pa": "ਮਾਤਰਾ", "or": "ପରିମାଣ", "as": "পৰিমাণ",
    },
    "how much": {
        "hi": "कितना", "bn": "কত", "te": "ఎంత", "mr": "किती",
        "ta": "எவ்வளவு", "gu": "કેટલું", "kn": "ಎಷ್ಟು", "ml": "എത്ര",
        "pa": "ਕਿੰਨਾ", "or": "କେତେ", "as": "কিমান",
    },
    "too expensive": {
        "hi": "बहुत महंगा", "bn": "খুব দামি", "te": "చాలా ఖరీదు", "mr": "खूप महाग",
        "ta": "மிகவும் விலை அதிகம்", "gu": "ખૂબ મોંઘું", "kn": "ತುಂಬಾ ದುಬಾರಿ",
        "ml": "വളരെ വിലയേറിയത്", "pa": "ਬਹੁਤ ਮਹਿੰਗਾ", "or": "ବହୁତ ମହଙ୍ଗା", "as": "বহুত দামী",
    },
    "good quality": {
        "hi": "अच्छी गुणवत्ता", "bn": "ভাল মানের", "te": "మంచి నాణ్యత", "mr": "चांगली गुणवत्ता",
        "ta": "நல்ல தரம்", "gu": "સારી ગુણવત્તા", "kn": "ಉತ್ತಮ ಗುಣಮಟ್ಟ", "ml": "നല്ല നിലവാരം",
        "pa": "ਚੰਗੀ ਗੁਣਵੱਤਾ", "or": "ଭଲ ଗୁଣବତ୍ତା", "as": "ভাল মানৰ",
    },
    "vegetables": {
        "hi": "सब्जियां", "bn": "সবজি", "te": "కూరగాయలు", "mr": "भाज्या",
        "ta": "காய்கறிகள்", "gu": "શાકભાજી", "kn": "ತರಕಾರಿಗಳು", "ml": "പച്ചക്കറികൾ",
        "pa": "ਸਬਜ਼ੀਆਂ", "or": "ପନିପରିବା", "as": "পাচলি",
    },
}

_LATIN_ONLY = re.compile(r"^[a-zA-Z0-9\s.,!?]+$")
_NUMBER_ONLY = re.compile(r"^\d+(\.\d+)?$")

# Checked in order; Latin is handled separately above
SCRIPT_RANGES: Tuple[Tuple[str, str], ...] = (
    ("hi", r"[\u0900-\u097F]"),  # Devanagari
    ("bn", r"[\u0980-\u09FF]"),
    ("te", r"[\u0C00-\u0C7F]"),
    ("ta", r"[\u0B80-\u0BFF]"),
    ("gu", r"[\u0A80-\u0AFF]"),
    ("kn", r"[\u0C80-\u0CFF]"),
    ("ml", r"[\u0D00-\u0D7F]"),
    ("pa", r"[\u0A00-\u0A7F]"),  # Gurmukhi
)


@dataclass(frozen=True)
class TranslationResult:
    translated_text: str
    confidence: float


class TranslationService:
    """
    Mock translation provider.

    WHAT: Exact phrase, then phrase substitution, then pass-through for
          numbers and prices, else a "[XX] text" marker
    WHY: Stand-in for a real provider with the same async contract
    HOW: asyncio.sleep for latency; results memoised in a plain dict
    """

    def __init__(self, delay_seconds: Optional[float] = None):
        self.delay_seconds = settings.TRANSLATION_DELAY_SECONDS if delay_seconds is None else delay_seconds
        self._cache: Dict[Tuple[str, str, str], TranslationResult] = {}

    async def translate(self, text: str, from_lang: str, to_lang: str) -> TranslationResult:
        """
        Translate text between two supported languages.

        Never raises: on internal failure the original text comes back with
        confidence 0.1.
        """
        if from_lang == to_lang:
            return TranslationResult(text, 1.0)

        key = (text, from_lang, to_lang)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            translated = await self._translate_text(text, to_lang)
        except Exception as e:
            logger.error(f"Translation {from_lang}->{to_lang} failed: {e}", exc_info=True)
            return TranslationResult(text, FALLBACK_CONFIDENCE)

        result = TranslationResult(translated, TRANSLATION_CONFIDENCE)
        self._cache[key] = result
        return result

    async def _translate_text(self, text: str, to_lang: str) -> str:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        lowered = text.lower().strip()

        exact = PHRASES.get(lowered, {}).get(to_lang)
        if exact:
            return exact

        for phrase, translations in PHRASES.items():
            replacement = translations.get(to_lang)
            if replacement and phrase in lowered:
                return re.sub(re.escape(phrase), replacement, text, flags=re.IGNORECASE)

        if _NUMBER_ONLY.match(text) or "₹" in text or "Rs" in text:
            return text

        return f"[{to_lang.upper()}] {text}"

    def detect_language(self, text: str) -> str:
        """Guess a language code from the script of the text, defaulting to Hindi."""
        if _LATIN_ONLY.match(text):
            return "en"

        for code, pattern in SCRIPT_RANGES:
            if re.search(pattern, text):
                return code

        return DEFAULT_LANGUAGE

    def clear_cache(self) -> None:
        self._cache.clear()

    def get_supported_languages(self) -> Dict[str, str]:
        return dict(SUPPORTED_LANGUAGES)


# Singleton instance
translation_service = TranslationService()
