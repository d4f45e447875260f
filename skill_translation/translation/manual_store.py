"""
Manual Translation Store

A user-editable JSON file listing every subject of a library with its source
texts and an empty "translation" slot per field. Anything the user writes
into a slot overrides the machine translation for that field.
"""
import asyncio
import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import aiofiles
from loguru import logger

from .models import Subject, TranslationFields

MANUAL_FILE_VERSION = 1

# JSON field name -> subject field name
FIELD_NAMES = {
    "description": TranslationFields.DESCRIPTION,
    "when_to_use": TranslationFields.WHEN_TO_USE,
}


@dataclass
class ManualTranslationField:
    source: str = ""
    translation: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"source": self.source, "translation": self.translation}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ManualTranslationField":
        data = data or {}
        return cls(source=data.get("source") or "", translation=data.get("translation") or "")


@dataclass
class ManualTranslationEntry:
    id: str = ""
    name: str = ""
    path: str = ""
    fields: Dict[str, ManualTranslationField] = field(default_factory=dict)

    def get_field(self, json_name: str) -> ManualTranslationField:
        return self.fields.setdefault(json_name, ManualTranslationField())

    def translations(self) -> Dict[str, str]:
        """Non-blank manual translations keyed by subject field name"""
        result = {}
        for json_name, subject_field in FIELD_NAMES.items():
            value = self.fields.get(json_name)
            if value is not None and value.translation.strip():
                result[subject_field] = value.translation
        return result

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "name": self.name, "path": self.path}
        for json_name in FIELD_NAMES:
            data[json_name] = self.get_field(json_name).to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManualTranslationEntry":
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            path=data.get("path") or "",
            fields={
                json_name: ManualTranslationField.from_dict(data.get(json_name))
                for json_name in FIELD_NAMES
            },
        )


@dataclass
class ManualTranslationFile:
    version: int = MANUAL_FILE_VERSION
    generated_at_utc: str = ""
    library_path: str = ""
    skills: List[ManualTranslationEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "generated_at_utc": self.generated_at_utc,
            "library_path": self.library_path,
            "skills": [entry.to_dict() for entry in self.skills],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManualTranslationFile":
        if not isinstance(data, dict):
            raise ValueError("manual translation file must contain a JSON object")
        return cls(
            version=int(data.get("version", MANUAL_FILE_VERSION)),
            generated_at_utc=data.get("generated_at_utc") or "",
            library_path=data.get("library_path") or "",
            skills=[ManualTranslationEntry.from_dict(s) for s in data.get("skills") or []],
        )

    def find(self, subject: Subject) -> Optional[ManualTranslationEntry]:
        """Match by id first, then by name (both case-insensitive)"""
        if subject.id:
            for entry in self.skills:
                if entry.id and entry.id.lower() == subject.id.lower():
                    return entry
        if subject.name:
            for entry in self.skills:
                if entry.name.lower() == subject.name.lower():
                    return entry
        return None


class ManualTranslationStore:
    """
    Keeps the manual translation file in sync with a library.

    sync_and_load() rewrites the file when the library changed (new,
    renamed or removed subjects, edited source text); load_translations()
    only reads it.
    """

    def __init__(self, file_path: Path, library_path: str = "", log=None):
        self.file_path = Path(file_path)
        self.library_path = library_path
        self._log = log or logger.bind(component="manual_store")
        self._lock = asyncio.Lock()

    async def load_translations(self, subjects: Iterable[Subject]) -> Dict[str, Dict[str, str]]:
        """subject_id -> {field: manual translation}, blank translations omitted"""
        async with self._lock:
            data = await self._load()
        return self._build_translation_map(data, _named(subjects))

    async def sync_and_load(self, subjects: Iterable[Subject]) -> Dict[str, Dict[str, str]]:
        subjects = _named(subjects)
        async with self._lock:
            data = await self._load()
            if self._merge(data, subjects):
                await self._save(data)
        return self._build_translation_map(data, subjects)

    async def _load(self) -> ManualTranslationFile:
        if not self.file_path.exists():
            return ManualTranslationFile(library_path=self.library_path)

        try:
            async with aiofiles.open(self.file_path, "r", encoding="utf-8") as f:
                return ManualTranslationFile.from_dict(json.loads(await f.read()))
        except Exception as e:
            stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
            backup_path = self.file_path.with_name(f"{self.file_path.name}.broken_{stamp}")
            try:
                os.replace(self.file_path, backup_path)
                self._log.warning(f"Manual translation file unreadable ({e}), archived to {backup_path}")
            except OSError as move_error:
                self._log.error(f"Failed to archive broken manual translation file: {move_error}")
            return ManualTranslationFile(library_path=self.library_path)

    async def _save(self, data: ManualTranslationFile) -> None:
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.file_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(data.to_dict(), ensure_ascii=False, indent=2))
            self._log.info(f"Manual translation file updated: {self.file_path}")
        except OSError as e:
            self._log.error(f"Failed to save manual translation file {self.file_path}: {e}")

    def _merge(self, data: ManualTranslationFile, subjects: List[Subject]) -> bool:
        updated = False
        if data.library_path != self.library_path:
            data.library_path = self.library_path
            updated = True

        active_names = set()
        for subject in subjects:
            active_names.add(subject.name.lower())
            entry = data.find(subject)

            if entry is None:
                entry = ManualTranslationEntry(id=subject.id, name=subject.name, path=subject.path)
                for json_name, subject_field in FIELD_NAMES.items():
                    entry.get_field(json_name).source = subject.fields.get(subject_field) or ""
                data.skills.append(entry)
                updated = True
                continue

            for attr, value in (("id", subject.id), ("name", subject.name), ("path", subject.path)):
                if getattr(entry, attr) != value:
                    setattr(entry, attr, value)
                    updated = True

            for json_name, subject_field in FIELD_NAMES.items():
                source = subject.fields.get(subject_field) or ""
                slot = entry.get_field(json_name)
                if slot.source != source:
                    slot.source = source
                    updated = True

        kept = [entry for entry in data.skills if entry.name.lower() in active_names]
        if len(kept) != len(data.skills):
            updated = True

        ordered = sorted(kept, key=lambda entry: entry.name.lower())
        if [e.name.lower() for e in ordered] != [e.name.lower() for e in data.skills]:
            updated = True
        data.skills = ordered

        if updated:
            data.generated_at_utc = datetime.now(timezone.utc).isoformat()
        return updated

    @staticmethod
    def _build_translation_map(data: ManualTranslationFile, subjects: List[Subject]) -> Dict[str, Dict[str, str]]:
        result: Dict[str, Dict[str, str]] = {}
        for subject in subjects:
            if not subject.id:
                continue
            entry = data.find(subject)
            if entry is None:
                continue
            translations = entry.translations()
            if translations:
                result[subject.id] = translations
        return result


def _named(subjects: Iterable[Subject]) -> List[Subject]:
    return [s for s in subjects if s.name and s.name.strip()]
