"""
Glossary Data Structures

Defines the term list the TermProtector is built from. An entry without a
target term is a protected term (kept verbatim); an entry with a target term
is a mapped phrase (rendered with that fixed translation).
"""
import json
from typing import List, Optional, Dict, Any
from dataclasses import dataclass, field
from pathlib import Path
from datetime import datetime
from loguru import logger

from .protector import TermProtector


@dataclass
class GlossaryEntry:
    """A single glossary entry"""
    source_term: str
    target_term: Optional[str] = None  # None = keep verbatim
    category: Optional[str] = None     # e.g., "tool", "brand", "phrase"

    @property
    def is_protected(self) -> bool:
        return not self.target_term

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_term": self.source_term,
            "target_term": self.target_term,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GlossaryEntry":
        return cls(
            source_term=data["source_term"],
            target_term=data.get("target_term") or None,
            category=data.get("category"),
        )


@dataclass
class Glossary:
    """A collection of glossary entries for one language pair"""
    name: str
    source_lang: str = "en"
    target_lang: str = "zh-CN"
    entries: List[GlossaryEntry] = field(default_factory=list)
    updated_at: datetime = field(default_factory=datetime.now)

    def add_protected(self, term: str, category: Optional[str] = None) -> GlossaryEntry:
        return self._add(GlossaryEntry(source_term=term, category=category))

    def add_mapping(self, phrase: str, translation: str, category: Optional[str] = None) -> GlossaryEntry:
        return self._add(GlossaryEntry(source_term=phrase, target_term=translation, category=category))

    def _add(self, entry: GlossaryEntry) -> GlossaryEntry:
        # Same source term replaces the previous entry
        self.remove_entry(entry.source_term)
        self.entries.append(entry)
        self.updated_at = datetime.now()
        return entry

    def remove_entry(self, source_term: str) -> bool:
        """Remove an entry by source term"""
        for i, entry in enumerate(self.entries):
            if entry.source_term.lower() == source_term.lower():
                del self.entries[i]
                self.updated_at = datetime.now()
                return True
        return False

    @property
    def protected_terms(self) -> List[str]:
        return [e.source_term for e in self.entries if e.is_protected]

    @property
    def mapped_phrases(self) -> Dict[str, str]:
        return {e.source_term: e.target_term for e in self.entries if not e.is_protected}

    def merge(self, other: "Glossary") -> "Glossary":
        """Return a new glossary with other's entries layered on top"""
        merged = Glossary(
            name=self.name,
            source_lang=self.source_lang,
            target_lang=self.target_lang,
            entries=list(self.entries),
        )
        for entry in other.entries:
            merged._add(entry)
        return merged

    def to_protector(self) -> TermProtector:
        return TermProtector(self.protected_terms, self.mapped_phrases)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "source_lang": self.source_lang,
            "target_lang": self.target_lang,
            "entries": [e.to_dict() for e in self.entries],
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Glossary":
        entries = [GlossaryEntry.from_dict(e) for e in data.get("entries", [])]
        # Shorthand lists are accepted for hand-written files
        entries.extend(GlossaryEntry(source_term=t) for t in data.get("protected_terms", []))
        entries.extend(
            GlossaryEntry(source_term=s, target_term=t)
            for s, t in (data.get("mapped_phrases") or {}).items()
        )

        updated_at = data.get("updated_at")
        if isinstance(updated_at, str):
            updated_at = datetime.fromisoformat(updated_at)
        else:
            updated_at = datetime.now()

        return cls(
            name=data.get("name", "custom"),
            source_lang=data.get("source_lang", "en"),
            target_lang=data.get("target_lang", "zh-CN"),
            entries=entries,
            updated_at=updated_at,
        )

    def save(self, file_path: Path) -> bool:
        """Save glossary to JSON file"""
        try:
            file_path = Path(file_path)
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
            logger.info(f"Saved glossary '{self.name}' to {file_path}")
            return True
        except Exception as e:
            logger.error(f"Failed to save glossary: {e}")
            return False

    @classmethod
    def load(cls, file_path: Path) -> Optional["Glossary"]:
        """Load glossary from JSON file"""
        try:
            file_path = Path(file_path)
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            glossary = cls.from_dict(data)
            logger.info(f"Loaded glossary '{glossary.name}' with {len(glossary.entries)} entries")
            return glossary
        except Exception as e:
            logger.error(f"Failed to load glossary: {e}")
            return None

    def __len__(self) -> int:
        return len(self.entries)


# Built-in terms for skill descriptions: tool, product and format names that
# machine translation tends to mangle
BUILTIN_PROTECTED_TERMS = [
    "Claude", "Claude Code", "Codex", "Cursor", "MCP", "API", "SDK", "CLI",
    "GitHub", "Git", "npm", "pip", "Python", "TypeScript", "JavaScript",
    "Node.js", "React", "Docker", "Kubernetes", "JSON", "YAML", "Markdown",
    "PDF", "SQL", "HTTP", "URL", "LLM", "Unity", "Figma", "Playwright",
]

BUILTIN_MAPPED_PHRASES_EN_ZH = {
    "skill": "技能",
    "skills": "技能",
    "prompt": "提示词",
    "pull request": "拉取请求",
}


def create_builtin_glossary(target_lang: str = "zh-CN") -> Glossary:
    """Create the built-in glossary; mapped phrases only exist for Chinese"""
    glossary = Glossary(name="builtin", source_lang="en", target_lang=target_lang)
    for term in BUILTIN_PROTECTED_TERMS:
        glossary.add_protected(term, category="tool")
    if target_lang.lower().startswith("zh"):
        for phrase, translation in BUILTIN_MAPPED_PHRASES_EN_ZH.items():
            glossary.add_mapping(phrase, translation, category="phrase")
    return glossary


def load_glossary(file_path: Optional[Path], target_lang: str = "zh-CN") -> Glossary:
    """Built-in glossary with the user's glossary file (if any) layered on top"""
    glossary = create_builtin_glossary(target_lang)
    if file_path and Path(file_path).exists():
        custom = Glossary.load(file_path)
        if custom:
            glossary = glossary.merge(custom)
    return glossary
