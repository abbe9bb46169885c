"""Glossary Manager for preserving game terminology during translation.

Game jargon like "PF", "ilvl" or raid names gets mangled by machine
translation. Terms are swapped for inert placeholders before the text goes to
the engine and swapped back afterwards.
"""

import logging
import re
from pathlib import Path
from typing import ClassVar, Dict, List, Optional, Tuple

from chat_relay.utils.storage import load_json

logger = logging.getLogger(__name__)


class GlossaryManager:
    """Preserves domain-specific terminology during translation.

    Protection is a pure function pair: ``protect_terms`` returns the
    placeholder map that ``restore_terms`` needs, so concurrent
    protect/restore pairs never share state.
    """

    # Term -> placeholder. Placeholders use a bracket syntax engines pass through.
    PROTECTED_TERMS: ClassVar[Dict[str, str]] = {
        "ilvl": "[[IL]]",
        "PF": "[[PF]]",
        "MB": "[[MB]]",
        "LB": "[[LB]]",
        "M1S": "[[M1S]]",
        "M2S": "[[M2S]]",
        "M3S": "[[M3S]]",
        "M4S": "[[M4S]]",
        "P1S": "[[P1S]]",
        "P2S": "[[P2S]]",
        "P3S": "[[P3S]]",
        "P4S": "[[P4S]]",
        "TOP": "[[TOP]]",
        "DSR": "[[DSR]]",
        "UWU": "[[UWU_ULT]]",
        "TEA": "[[TEA_ULT]]",
        "UCOB": "[[UCOB_ULT]]",
        "BiS": "[[BIS]]",
        "FC": "[[FC]]",
        "LS": "[[LS]]",
        "CWLS": "[[CWLS]]",
        "RMT": "[[RMT]]",
        "Wipe": "[[WIPE]]",
        "Pull": "[[PULL]]",
        "Macro": "[[MACRO]]",
    }

    def __init__(
        self,
        additional_terms: Optional[Dict[str, str]] = None,
        custom_glossary_path: Optional[str] = None,
    ):
        """Initialize the GlossaryManager.

        Args:
            additional_terms: Extra term -> placeholder overrides.
            custom_glossary_path: Optional JSON file with a flat
                term -> placeholder object. Missing or invalid files are ignored.
        """
        self.custom_terms: Dict[str, str] = {}
        if custom_glossary_path:
            self.custom_terms.update(self._load_custom_glossary(custom_glossary_path))
        if additional_terms:
            self.custom_terms.update(additional_terms)

        self._rebuild()

    @staticmethod
    def _load_custom_glossary(path: str) -> Dict[str, str]:
        data = load_json(Path(path), {})
        terms = {
            str(term).strip(): str(placeholder).strip()
            for term, placeholder in data.items()
            if str(term).strip() and str(placeholder).strip()
        }
        if terms:
            logger.info(f"Loaded {len(terms)} custom glossary terms from {path}")
        return terms

    def _rebuild(self) -> None:
        # Case-insensitive lookup; overrides replace built-ins with the same key
        self._lookup: Dict[str, str] = {
            term.lower(): placeholder for term, placeholder in self.PROTECTED_TERMS.items()
        }
        for term, placeholder in self.custom_terms.items():
            self._lookup[term.lower()] = placeholder

        custom_keys = {term.lower() for term in self.custom_terms}
        builtin = [t for t in self.PROTECTED_TERMS if t.lower() not in custom_keys]

        # Overrides come first in the alternation so they win at any position;
        # inside each group the longest term wins ("CWLS" before "LS").
        ordered: List[str] = sorted(self.custom_terms, key=len, reverse=True)
        ordered += sorted(builtin, key=len, reverse=True)

        if not ordered:
            self.pattern = None
            return

        escaped_terms = [re.escape(t) for t in ordered]
        self.pattern = re.compile(
            r"(?<!\w)(" + "|".join(escaped_terms) + r")(?!\w)", re.IGNORECASE
        )

    @property
    def terms(self) -> Dict[str, str]:
        """Merged term table, overrides taking precedence."""
        merged = {
            term: placeholder
            for term, placeholder in self.PROTECTED_TERMS.items()
            if term.lower() not in {t.lower() for t in self.custom_terms}
        }
        merged.update(self.custom_terms)
        return merged

    @staticmethod
    def _variant(placeholder: str, index: int) -> str:
        if placeholder.endswith("]]"):
            return f"{placeholder[:-2]}_{index}]]"
        return f"{placeholder}_{index}"

    def protect_terms(self, text: str) -> Tuple[str, Dict[str, str]]:
        """Replace protected terms with placeholders.

        Call BEFORE sending text to a translation engine.

        Args:
            text: Input text that may contain protected terms.

        Returns:
            Tuple of (protected_text, placeholder_map) where placeholder_map
            maps each placeholder used to the exact text it replaced.
        """
        placeholder_map: Dict[str, str] = {}
        if not text or not text.strip() or self.pattern is None:
            return text, placeholder_map

        assigned: Dict[Tuple[str, str], str] = {}

        def replace_with_placeholder(match: re.Match) -> str:
            surface = match.group(0)
            base = self._lookup[surface.lower()]
            key = (base, surface)
            if key in assigned:
                return assigned[key]

            # Same term with different casing gets its own placeholder variant
            placeholder = base
            index = 1
            while placeholder in placeholder_map:
                index += 1
                placeholder = self._variant(base, index)

            assigned[key] = placeholder
            placeholder_map[placeholder] = surface
            return placeholder

        protected_text = self.pattern.sub(replace_with_placeholder, text)
        return protected_text, placeholder_map

    def restore_terms(self, text: str, placeholder_map: Dict[str, str]) -> str:
        """Restore original terms from placeholders.

        Call AFTER receiving translated text. Engines occasionally change the
        case of a placeholder, so matching is case-insensitive.

        Args:
            text: Translated text containing placeholders.
            placeholder_map: Map returned by the paired ``protect_terms`` call.

        Returns:
            Text with placeholders replaced by original terms.
        """
        if not text or not placeholder_map:
            return text

        result = text
        # Longest first so a placeholder never clobbers a longer one containing it
        for placeholder in sorted(placeholder_map, key=len, reverse=True):
            original = placeholder_map[placeholder]
            result = re.sub(
                re.escape(placeholder),
                lambda _m, term=original: term,
                result,
                flags=re.IGNORECASE,
            )
        return result

    def add_term(self, term: str, placeholder: Optional[str] = None) -> None:
        """Add a new protected term as a user override.

        Args:
            term: The term to protect from translation.
            placeholder: Placeholder to use; defaults to ``[[TERM]]``.
        """
        term = term.strip()
        if not term:
            raise ValueError("Glossary term must not be empty")
        self.custom_terms[term] = placeholder or f"[[{term.upper()}]]"
        self._rebuild()
