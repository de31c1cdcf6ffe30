"""
Translation endpoints.

WHAT: Translate text, detect language, list supported languages
WHY: Lets clients preview translations outside the realtime chat
HOW: Async handlers over the shared TranslationService
"""

from fastapi import APIRouter

from ....models.api_schemas import DetectLanguageRequest, TranslateRequest, success_response
from ....services.translation import translation_service

router = APIRouter()


@router.post("/translation/translate")
async def translate(request: TranslateRequest):
    result = await translation_service.translate(request.text, request.from_language, request.to_language)
    return success_response({
        "translated_text": result.translated_text,
        "confidence": result.confidence,
    })


@router.post("/translation/detect")
async def detect_language(request: DetectLanguageRequest):
    language = translation_service.detect_language(request.text)
    return success_response({"language": language, "confidence": 0.9})


@router.get("/translation/languages")
async def supported_languages():
    return success_response(translation_service.get_supported_languages())
