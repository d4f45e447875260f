"""
Pytest configuration and fixtures for the translation pipeline tests.
"""
import asyncio
from typing import Callable, List, Optional

import pytest

from skill_translation.settings_store import TranslationSettings
from skill_translation.translation.cache_store import TranslationCacheStore
from skill_translation.translation.models import Subject, TranslationFields
from skill_translation.translation.terminology import TermProtector
from skill_translation.translation.translator import TranslationEngine, TranslationError


class FakeEngine(TranslationEngine):
    """
    In-process engine for tests.

    transform: text -> translated text (default: echo)
    delay: seconds to sleep inside each call
    gate: when set, every call waits for this event before answering
    fail_on: source substrings that make the call raise TranslationError
    """

    def __init__(
        self,
        transform: Optional[Callable[[str], str]] = None,
        delay: float = 0.0,
        gate: Optional[asyncio.Event] = None,
        fail_on: Optional[List[str]] = None,
    ):
        self.transform = transform or (lambda text: text)
        self.delay = delay
        self.gate = gate
        self.fail_on = list(fail_on or [])
        self.calls: List[str] = []
        self.active = 0
        self.max_active = 0
        self.started: Optional[asyncio.Event] = None
        self.closed = False

    @property
    def name(self) -> str:
        return "fake"

    async def aclose(self) -> None:
        self.closed = True

    async def translate(self, text, source_lang, target_lang, options=None) -> str:
        self.calls.append(text)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        if self.started is not None:
            self.started.set()
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if any(marker in text for marker in self.fail_on):
                raise TranslationError(f"backend rejected: {text}")
            return self.transform(text)
        finally:
            self.active -= 1


@pytest.fixture
def cache_path(tmp_path):
    return tmp_path / "translation_cache.json"


@pytest.fixture
def make_store(cache_path):
    def factory(path=None):
        return TranslationCacheStore(path or cache_path)
    return factory


@pytest.fixture
def translation_settings():
    return TranslationSettings(
        engine_id="fake",
        engine_version="1",
        source_lang="en",
        target_lang="zh-CN",
        max_concurrency=2,
        timeout=5.0,
    )


@pytest.fixture
def protector():
    return TermProtector(["Unity", "VR"])


def make_subject(name: str, description: Optional[str] = None, when_to_use: Optional[str] = None) -> Subject:
    fields = {}
    if description is not None:
        fields[TranslationFields.DESCRIPTION] = description
    if when_to_use is not None:
        fields[TranslationFields.WHEN_TO_USE] = when_to_use
    return Subject.from_path(f"C:\\Skills\\{name}", name=name, fields=fields)


@pytest.fixture
def subjects():
    return [
        make_subject("vr-helper", description="Unity plugin for VR"),
        make_subject("pdf-tools", description="Merge PDF files", when_to_use="When you need to merge documents"),
    ]


@pytest.fixture
def subject_factory():
    return make_subject
