"""
Translation Data Structures

Cache keys, cache records, subjects, progress and event payloads shared by
the cache store and the translation service.
"""
import asyncio
import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional

SCHEMA_VERSION = 1


class TranslationFields:
    """Well-known subject field names"""
    WHEN_TO_USE = "WhenToUse"
    DESCRIPTION = "Description"


class TranslationStatus(str, Enum):
    READY = "Ready"
    FAILED = "Failed"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_source_text(text: str) -> str:
    return text.strip().replace("\r\n", "\n")


def compute_source_hash(text: str) -> str:
    """SHA-256 (uppercase hex) of the normalized source text"""
    return hashlib.sha256(normalize_source_text(text).encode("utf-8")).hexdigest().upper()


def normalize_subject_id(path: str) -> str:
    """Turn a folder path into a stable, case-insensitive subject id"""
    if not path or not path.strip():
        return ""
    return path.strip().replace("\\", "/").lower()


@dataclass(frozen=True)
class TranslationKey:
    """Content-addressed identity of one cached translation"""
    subject_id: str
    field: str
    target_lang: str
    engine_id: str
    engine_version: str
    source_hash: str

    @property
    def cache_key(self) -> str:
        return "|".join((
            self.subject_id,
            self.field,
            self.target_lang,
            self.engine_id,
            self.engine_version,
            self.source_hash,
        ))


@dataclass
class TranslationRecord:
    """A terminal translation outcome as stored in the cache file"""
    subject_id: str
    field: str
    target_lang: str
    engine_id: str
    engine_version: str
    source_hash: str
    translated_text: str = ""
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)
    status: TranslationStatus = TranslationStatus.READY
    error: str = ""

    @property
    def key(self) -> TranslationKey:
        return TranslationKey(
            subject_id=self.subject_id,
            field=self.field,
            target_lang=self.target_lang,
            engine_id=self.engine_id,
            engine_version=self.engine_version,
            source_hash=self.source_hash,
        )

    @property
    def is_ready(self) -> bool:
        return self.status == TranslationStatus.READY

    @classmethod
    def ready(cls, key: TranslationKey, translated_text: str, created_at: Optional[str] = None) -> "TranslationRecord":
        return cls(
            **_key_fields(key),
            translated_text=translated_text,
            created_at=created_at or utc_now(),
            updated_at=utc_now(),
            status=TranslationStatus.READY,
        )

    @classmethod
    def failed(cls, key: TranslationKey, error: str, created_at: Optional[str] = None) -> "TranslationRecord":
        return cls(
            **_key_fields(key),
            translated_text="",
            created_at=created_at or utc_now(),
            updated_at=utc_now(),
            status=TranslationStatus.FAILED,
            error=error or "Unknown error",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "field": self.field,
            "target_lang": self.target_lang,
            "engine_id": self.engine_id,
            "engine_version": self.engine_version,
            "source_hash": self.source_hash,
            "translated_text": self.translated_text,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "status": self.status.value,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranslationRecord":
        """Create from dictionary, ignoring fields written by newer schema versions"""
        return cls(
            subject_id=data["subject_id"],
            field=data["field"],
            target_lang=data.get("target_lang", "zh-CN"),
            engine_id=data.get("engine_id", ""),
            engine_version=data.get("engine_version", ""),
            source_hash=data.get("source_hash", ""),
            translated_text=data.get("translated_text") or "",
            created_at=data.get("created_at") or utc_now(),
            updated_at=data.get("updated_at") or utc_now(),
            status=TranslationStatus(data.get("status", TranslationStatus.READY.value)),
            error=data.get("error") or "",
        )


def _key_fields(key: TranslationKey) -> Dict[str, str]:
    return {
        "subject_id": key.subject_id,
        "field": key.field,
        "target_lang": key.target_lang,
        "engine_id": key.engine_id,
        "engine_version": key.engine_version,
        "source_hash": key.source_hash,
    }


@dataclass
class TranslationCacheFile:
    """Schema-versioned container persisted by the cache store"""
    schema_version: int = SCHEMA_VERSION
    records: Dict[str, TranslationRecord] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "records": {k: r.to_dict() for k, r in self.records.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranslationCacheFile":
        if not isinstance(data, dict):
            raise ValueError("cache file must contain a JSON object")
        records = data.get("records") or {}
        if not isinstance(records, dict):
            raise ValueError("cache records must be a JSON object")
        return cls(
            schema_version=int(data.get("schema_version", SCHEMA_VERSION)),
            records={k: TranslationRecord.from_dict(v) for k, v in records.items()},
        )


@dataclass
class Subject:
    """A skill folder (or any entity) whose text fields may need translating"""
    id: str
    name: str = ""
    fields: Dict[str, Optional[str]] = field(default_factory=dict)
    path: str = ""

    @classmethod
    def from_path(cls, path: str, name: str = "", fields: Optional[Dict[str, Optional[str]]] = None) -> "Subject":
        return cls(id=normalize_subject_id(path), name=name, fields=dict(fields or {}), path=path)


@dataclass
class TranslationProgress:
    """Batch progress snapshot"""
    total: int = 0
    completed: int = 0
    failed: int = 0
    current_subject: str = ""
    current_field: str = ""


@dataclass(frozen=True)
class TranslationQueued:
    subject_id: str
    field: str


@dataclass(frozen=True)
class TranslationCompleted:
    subject_id: str
    field: str
    success: bool
    translated_text: Optional[str] = None
    error: Optional[str] = None


@dataclass(eq=False)
class TranslationJob:
    """One unit of work; consumed by exactly one worker, never persisted"""
    subject_id: str
    display_name: str
    field: str
    source_text: str
    key: TranslationKey
    cancel_scope: asyncio.Event
    completion: "asyncio.Future[TranslationRecord]"
    # Callers still waiting on the outcome; the scope is only signalled when this drops to zero
    interested: int = 0

    def release(self) -> bool:
        """Drop one caller's interest; cancel the job once nobody is left"""
        self.interested = max(self.interested - 1, 0)
        if self.interested == 0 and not self.completion.done():
            self.cancel_scope.set()
            return True
        return False
