"""
Translation Engines

The pipeline only depends on TranslationEngine.translate(); concrete engines:
- RemoteEngine: LocalTranslation HTTP service (ONNX Marian behind a REST API)
- AgentEngine: local AI translation agent (Ollama/Qwen behind a REST API)
- GoogleEngine: Google Translate via deep-translator (free)
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from loguru import logger

# Free translation library
from deep_translator import GoogleTranslator

from ..config import settings


class TranslationError(Exception):
    """Backend-specific translation failure"""


class PlaceholderLostError(TranslationError):
    """The engine altered or dropped protection placeholders"""

    def __init__(self, placeholders: Sequence[str]):
        self.placeholders = list(placeholders)
        super().__init__(f"Protected term placeholders lost in translation: {', '.join(self.placeholders)}")


@dataclass
class TranslationOptions:
    """Per-call engine options"""
    max_length: int = 96


def get_httpx_client_kwargs(timeout: Optional[float] = None) -> dict:
    """Get httpx client kwargs including proxy if configured"""
    kwargs = {"timeout": timeout if timeout is not None else settings.HTTP_TIMEOUT}
    if settings.PROXY_URL:
        kwargs["proxy"] = settings.PROXY_URL
        logger.debug(f"Using proxy: {settings.PROXY_URL}")
    return kwargs


def _preview(text: str, limit: int = 50) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."


class TranslationEngine(ABC):
    """Abstract base class for translation engines"""

    @abstractmethod
    async def translate(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        options: Optional[TranslationOptions] = None,
    ) -> str:
        """Translate text; raise on any failure"""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Engine name"""
        pass

    async def aclose(self) -> None:
        """Release engine resources"""


class _HttpEngine(TranslationEngine):
    """Shared client handling for the HTTP engines"""

    def __init__(
        self,
        base_url: str,
        timeout: float,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url, **get_httpx_client_kwargs(self.timeout)
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


class RemoteEngine(_HttpEngine):
    """Client for the standalone LocalTranslation service"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(base_url or settings.REMOTE_TRANSLATION_URL, timeout, client)

    @property
    def name(self) -> str:
        return "remote"

    async def is_available(self) -> bool:
        """Check that the translation service answers its health probe"""
        try:
            response = await self._get_client().get("/api/translate/health")
            return response.is_success
        except httpx.HTTPError as e:
            logger.warning(f"Translation service unavailable: {e}")
            return False

    async def get_status(self) -> Optional[Dict[str, Any]]:
        try:
            response = await self._get_client().get("/api/translate/status")
            if response.is_success:
                return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Translation service status unavailable: {e}")
        return None

    async def translate(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        options: Optional[TranslationOptions] = None,
    ) -> str:
        if not text or not text.strip():
            return ""

        options = options or TranslationOptions()
        logger.debug(f"Sending translation request: {_preview(text)}")

        try:
            response = await self._get_client().post(
                "/api/translate",
                json={
                    "text": text,
                    "sourceLang": source_lang,
                    "targetLang": target_lang,
                    "maxLength": options.max_length,
                },
            )
            result = response.json()
        except httpx.TimeoutException as e:
            raise TranslationError("Translation request timed out") from e
        except httpx.HTTPError as e:
            raise TranslationError(
                f"Translation service connection failed: {e}. "
                f"Make sure the LocalTranslation service is running ({self.base_url})"
            ) from e
        except ValueError as e:
            raise TranslationError(f"Malformed translation response (HTTP {response.status_code})") from e

        if isinstance(result, dict) and result.get("success") and result.get("translatedText"):
            logger.debug(f"Translation succeeded: {_preview(result['translatedText'])}")
            return result["translatedText"]

        error = (result.get("error") if isinstance(result, dict) else None) or "Unknown error"
        logger.warning(f"Translation failed: {error}")
        raise TranslationError(error)

    async def translate_batch(
        self,
        items: List[Tuple[str, str]],
        source_lang: str,
        target_lang: str,
        max_length: Optional[int] = None,
    ) -> Dict[str, str]:
        """
        Translate (id, text) pairs in one request.

        Returns:
            id -> translated text, only for items the service translated
        """
        results: Dict[str, str] = {}
        if not items:
            return results

        try:
            response = await self._get_client().post(
                "/api/translate/batch",
                json={
                    "items": [{"id": item_id, "text": text} for item_id, text in items],
                    "sourceLang": source_lang,
                    "targetLang": target_lang,
                    "maxLength": max_length,
                },
            )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Batch translation failed: {e}")
            return results

        for item in data.get("results") or []:
            if item.get("success") and item.get("translatedText"):
                results[item["id"]] = item["translatedText"]

        logger.info(f"Batch translation completed: {data.get('succeeded', len(results))}/{data.get('total', len(items))} succeeded")
        return results


class AgentEngine(_HttpEngine):
    """Client for a local AI translation agent"""

    LANG_NAMES = {
        "zh-CN": "Simplified Chinese",
        "zh-TW": "Traditional Chinese",
    }

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(base_url or settings.AGENT_TRANSLATION_URL, timeout, client)

    @property
    def name(self) -> str:
        return "agent"

    async def translate(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        options: Optional[TranslationOptions] = None,
    ) -> str:
        if not text or not text.strip():
            return ""

        logger.debug(f"Requesting AI translation for: {_preview(text, 30)}")
        try:
            response = await self._get_client().post(
                "/translate",
                json={"text": text, "target_lang": self.LANG_NAMES.get(target_lang, target_lang)},
            )
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPError as e:
            logger.error(f"AI translation service error: {e}")
            raise TranslationError(f"AI translation service error: {e}") from e
        except ValueError as e:
            raise TranslationError("Malformed response from AI translation service") from e

        if result.get("status") == "success" and result.get("translated_text"):
            return result["translated_text"]

        error = result.get("status") or "Unknown error from service"
        logger.warning(f"AI translation failed: {error}")
        raise TranslationError(f"Translation service failed: {error}")


class GoogleEngine(TranslationEngine):
    """Google Translate engine (free)"""

    @property
    def name(self) -> str:
        return "google"

    async def translate(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        options: Optional[TranslationOptions] = None,
    ) -> str:
        if not text or not text.strip():
            return ""

        def do_translate():
            lang_map = {
                "zh": "zh-CN",
            }
            src = lang_map.get(source_lang, source_lang)
            tgt = lang_map.get(target_lang, target_lang)

            proxies = None
            if settings.PROXY_URL:
                proxies = {"http": settings.PROXY_URL, "https": settings.PROXY_URL}
            translator = GoogleTranslator(source=src, target=tgt, proxies=proxies)
            return translator.translate(text)

        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, do_translate)
        except Exception as e:
            logger.error(f"Google translation failed: {e}")
            raise TranslationError(f"Google translation failed: {e}") from e
        if not result:
            raise TranslationError("Google returned an empty translation")
        return result


def create_engine(engine_name: Optional[str] = None) -> TranslationEngine:
    """Create the engine named in settings (or explicitly)"""
    engine_name = (engine_name or settings.TRANSLATION_ENGINE).lower()
    if engine_name == "remote":
        return RemoteEngine(timeout=settings.HTTP_TIMEOUT)
    if engine_name == "agent":
        return AgentEngine(timeout=settings.HTTP_TIMEOUT)
    if engine_name == "google":
        return GoogleEngine()
    raise ValueError(f"Unknown translation engine: {engine_name}")
