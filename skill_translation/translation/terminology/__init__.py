"""
Terminology Protection

Keeps tool and product names out of the translator's hands and applies
fixed renderings for domain phrases.
"""
from .protector import TermProtector, ProtectedText
from .glossary import Glossary, GlossaryEntry, create_builtin_glossary, load_glossary

__all__ = [
    "TermProtector",
    "ProtectedText",
    "Glossary",
    "GlossaryEntry",
    "create_builtin_glossary",
    "load_glossary",
]
