"""
Term Protector

Shields domain terms from the translation engine: terms are swapped for
inert placeholders before translation and swapped back afterwards.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Pattern, Tuple

_ALNUM_RE = re.compile(r"^[A-Za-z0-9]+$")


@dataclass
class ProtectedText:
    """Text with placeholders plus the placeholder -> value table"""
    text: str
    replacements: Dict[str, str] = field(default_factory=dict)


class TermProtector:
    """
    Placeholder-based protection of glossary terms.

    Two kinds of candidates:
    - mapped phrases: replaced by a fixed target-language rendering
    - protected terms: emitted verbatim (brand names, product names)

    Candidates are applied longest first, mapped phrases before protected
    terms, so a longer match always wins over a substring of it.
    """

    def __init__(
        self,
        protected_terms: Optional[Iterable[str]] = None,
        mapped_phrases: Optional[Mapping[str, str]] = None,
    ):
        seen = set()
        terms: List[str] = []
        for term in protected_terms or []:
            if not term or not term.strip():
                continue
            if term.lower() in seen:
                continue
            seen.add(term.lower())
            terms.append(term)
        terms.sort(key=len, reverse=True)

        phrases: Dict[str, str] = {}
        for source, target in sorted(
            (mapped_phrases or {}).items(), key=lambda kv: len(kv[0]), reverse=True
        ):
            if not source or not source.strip():
                continue
            if any(existing.lower() == source.lower() for existing in phrases):
                continue
            phrases[source] = target

        self._protected_terms: List[Tuple[str, Pattern[str]]] = [(t, _build_pattern(t)) for t in terms]
        self._mapped_phrases: List[Tuple[str, str, Pattern[str]]] = [
            (s, t, _build_pattern(s)) for s, t in phrases.items()
        ]

    @property
    def protected_terms(self) -> List[str]:
        return [t for t, _ in self._protected_terms]

    @property
    def mapped_phrases(self) -> Dict[str, str]:
        return {s: t for s, t, _ in self._mapped_phrases}

    def protect(self, text: str) -> ProtectedText:
        """Replace every candidate occurrence with a placeholder"""
        if not text or not text.strip():
            return ProtectedText(text)

        replacements: Dict[str, str] = {}
        output = text
        counter = 1

        for _, target, pattern in self._mapped_phrases:
            placeholder = f"__MAP_{counter:03d}__"
            output, count = pattern.subn(placeholder, output)
            if count:
                replacements[placeholder] = target
                counter += 1

        for term, pattern in self._protected_terms:
            placeholder = f"__TERM_{counter:03d}__"
            output, count = pattern.subn(placeholder, output)
            if count:
                replacements[placeholder] = term
                counter += 1

        return ProtectedText(output, replacements)

    def restore(self, text: str, protected: ProtectedText) -> str:
        """Literal replacement of placeholders; mangled placeholders are left as-is"""
        if not text or not text.strip() or not protected.replacements:
            return text

        output = text
        for placeholder, value in protected.replacements.items():
            output = output.replace(placeholder, value)
        return output

    @staticmethod
    def missing_placeholders(text: str, protected: ProtectedText) -> List[str]:
        """Placeholders that did not survive translation verbatim"""
        return [p for p in protected.replacements if p not in (text or "")]


def _build_pattern(token: str) -> Pattern[str]:
    escaped = re.escape(token)
    if _ALNUM_RE.match(token):
        return re.compile(rf"\b{escaped}\b", re.IGNORECASE)
    return re.compile(escaped, re.IGNORECASE)
