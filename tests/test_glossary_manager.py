"""Tests for GlossaryManager - game term protection and restoration."""

import json

import pytest
from chat_relay.services.translation.glossary_manager import GlossaryManager


@pytest.mark.unit
class TestGlossaryManager:
    """Tests for protect_terms / restore_terms."""

    def test_glossary_has_game_terms(self):
        """Test that the built-in table covers common raid and party jargon."""
        manager = GlossaryManager()

        assert "PF" in manager.PROTECTED_TERMS
        assert "ilvl" in manager.PROTECTED_TERMS
        assert "M4S" in manager.PROTECTED_TERMS
        assert "CWLS" in manager.PROTECTED_TERMS
        assert manager.PROTECTED_TERMS["UWU"] == "[[UWU_ULT]]"

    def test_protect_terms_replaces_with_placeholders(self):
        """Test that protected terms are swapped for placeholders."""
        manager = GlossaryManager()

        protected, placeholder_map = manager.protect_terms("Busco PF para M4S")

        assert protected == "Busco [[PF]] para [[M4S]]"
        assert placeholder_map == {"[[PF]]": "PF", "[[M4S]]": "M4S"}

    def test_restore_after_translation(self):
        """Test that placeholders survive translation and are restored."""
        manager = GlossaryManager()

        protected, placeholder_map = manager.protect_terms("Busco PF para M4S")
        translated = protected.replace("Busco", "Looking for").replace("para", "for")

        assert manager.restore_terms(translated, placeholder_map) == "Looking for PF for M4S"

    def test_protect_and_restore_roundtrip(self):
        """Test that protect -> restore with no translation is the identity."""
        manager = GlossaryManager()
        original = "pf o PF? necesito ilvl 710 y BiS para TOP, wipe y pull"

        protected, placeholder_map = manager.protect_terms(original)
        restored = manager.restore_terms(protected, placeholder_map)

        assert restored == original

    def test_casing_variants_get_distinct_placeholders(self):
        """Test that differently cased surfaces restore to their own casing."""
        manager = GlossaryManager()

        protected, placeholder_map = manager.protect_terms("pf y PF")

        assert protected == "[[PF]] y [[PF_2]]"
        assert placeholder_map == {"[[PF]]": "pf", "[[PF_2]]": "PF"}

    def test_longest_term_wins(self):
        """Test that CWLS is protected as a whole, not as CW + LS."""
        manager = GlossaryManager()

        protected, _ = manager.protect_terms("Unete al CWLS")

        assert protected == "Unete al [[CWLS]]"

    def test_terms_inside_words_are_untouched(self):
        """Test that substrings of ordinary words are not protected."""
        manager = GlossaryManager()

        protected, placeholder_map = manager.protect_terms("upfront lbs")

        assert protected == "upfront lbs"
        assert placeholder_map == {}

    def test_restore_is_case_insensitive(self):
        """Test that placeholders lowercased by an engine are still restored."""
        manager = GlossaryManager()

        result = manager.restore_terms("[[pf]] now", {"[[PF]]": "PF"})

        assert result == "PF now"

    def test_blank_text_passes_through(self):
        manager = GlossaryManager()

        assert manager.protect_terms("   ") == ("   ", {})
        assert manager.restore_terms("", {"[[PF]]": "PF"}) == ""

    def test_independent_calls_do_not_share_state(self):
        """Test that each protect call returns its own placeholder map."""
        manager = GlossaryManager()

        _, first = manager.protect_terms("PF")
        _, second = manager.protect_terms("FC")

        assert first == {"[[PF]]": "PF"}
        assert second == {"[[FC]]": "FC"}


@pytest.mark.unit
class TestGlossaryOverrides:
    """Tests for user glossary overrides."""

    def test_custom_glossary_file_overrides_builtin(self, tmp_path):
        """Test that a custom glossary file replaces and extends built-ins."""
        path = tmp_path / "custom_glossary.json"
        path.write_text(json.dumps({"PF": "[[PARTY_FINDER]]", "Omega": "[[OMEGA]]"}))

        manager = GlossaryManager(custom_glossary_path=str(path))
        protected, placeholder_map = manager.protect_terms("Omega PF")

        assert manager.terms["PF"] == "[[PARTY_FINDER]]"
        assert protected == "[[OMEGA]] [[PARTY_FINDER]]"
        assert manager.restore_terms(protected, placeholder_map) == "Omega PF"

    def test_missing_custom_glossary_is_ignored(self, tmp_path):
        manager = GlossaryManager(custom_glossary_path=str(tmp_path / "missing.json"))

        assert manager.custom_terms == {}
        assert manager.terms == GlossaryManager.PROTECTED_TERMS

    def test_add_term_uses_default_placeholder(self):
        manager = GlossaryManager()

        manager.add_term("Savage")
        protected, _ = manager.protect_terms("vamos a savage")

        assert manager.terms["Savage"] == "[[SAVAGE]]"
        assert protected == "vamos a [[SAVAGE]]"

    def test_add_term_rejects_empty(self):
        manager = GlossaryManager()

        with pytest.raises(ValueError):
            manager.add_term("   ")
