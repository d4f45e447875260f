"""
Translation Package

Provides:
- Content-addressed translation cache (JSON file, corruption tolerant)
- Translation engines (LocalTranslation service, AI agent, Google)
- Terminology protection for product and tool names
- Bounded-concurrency translation service with incremental and batch modes
- Manual translation overrides
"""
from .models import (
    Subject,
    TranslationCompleted,
    TranslationFields,
    TranslationKey,
    TranslationProgress,
    TranslationQueued,
    TranslationRecord,
    TranslationStatus,
)
from .cache_store import TranslationCacheStore
from .translator import (
    TranslationEngine,
    TranslationError,
    PlaceholderLostError,
    TranslationOptions,
    RemoteEngine,
    AgentEngine,
    GoogleEngine,
    create_engine,
)
from .events import TranslationEvents
from .manual_store import ManualTranslationStore
from .service import TranslationService, should_translate
from .terminology import TermProtector, Glossary

__all__ = [
    # Data model
    "Subject",
    "TranslationFields",
    "TranslationKey",
    "TranslationRecord",
    "TranslationStatus",
    "TranslationProgress",
    "TranslationQueued",
    "TranslationCompleted",
    # Cache
    "TranslationCacheStore",
    # Engines
    "TranslationEngine",
    "TranslationError",
    "PlaceholderLostError",
    "TranslationOptions",
    "RemoteEngine",
    "AgentEngine",
    "GoogleEngine",
    "create_engine",
    # Pipeline
    "TranslationEvents",
    "TranslationService",
    "should_translate",
    "ManualTranslationStore",
    # Terminology
    "TermProtector",
    "Glossary",
]
