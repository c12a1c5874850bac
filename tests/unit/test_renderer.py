"""
Tests for notification template rendering.
"""

import logging

import pytest

from reserve_delivery.core.notifications.renderer import (
    TemplateRenderer,
    interpolate,
    normalize_language,
)
from reserve_delivery.core.outbox.errors import TemplateNotFoundError


def write_template(base, language, event, text):
    directory = base / language
    directory.mkdir(parents=True, exist_ok=True)
    (directory / f"reservation-{event}.txt").write_text(text, encoding="utf-8")


class TestInterpolate:
    """Test placeholder substitution."""

    def test_replaces_tokens_with_optional_spaces(self):
        result = interpolate("Hi {{guestName}}, see you {{ date }}.", {
            "guestName": "Ana",
            "date": "2026-03-01",
        })
        assert result == "Hi Ana, see you 2026-03-01."

    def test_missing_and_none_render_empty(self):
        result = interpolate("[{{ a }}][{{ b }}]", {"b": None})
        assert result == "[][]"

    def test_non_string_values(self):
        assert interpolate("{{ partySize }} guests", {"partySize": 4}) == "4 guests"


class TestNormalizeLanguage:

    def test_defaults_to_english(self):
        assert normalize_language(None) == "en"
        assert normalize_language("   ") == "en"

    def test_lowercases(self):
        assert normalize_language(" AL ") == "al"


class TestTemplateRenderer:
    """Test locale lookup, fallback and caching."""

    def test_bundled_templates_render(self):
        """Every event has a bundled English template."""
        renderer = TemplateRenderer()
        for event in ("created", "confirmed", "modified", "cancelled", "reminder"):
            body = renderer.render("en", event, {"guestName": "Ana", "venueName": "Tirana Grill"})
            assert "Ana" in body

    def test_locale_template_used(self, tmp_path):
        write_template(tmp_path, "en", "confirmed", "Confirmed {{ guestName }}")
        write_template(tmp_path, "al", "confirmed", "Konfirmuar {{ guestName }}")
        renderer = TemplateRenderer(tmp_path)

        assert renderer.render("al", "confirmed", {"guestName": "Ana"}) == "Konfirmuar Ana"

    def test_falls_back_to_english_with_warning(self, tmp_path, caplog):
        """A locale without the template uses English and logs a warning."""
        write_template(tmp_path, "en", "confirmed", "Confirmed {{ guestName }}")
        renderer = TemplateRenderer(tmp_path)

        with caplog.at_level(logging.WARNING):
            body = renderer.render("de", "confirmed", {"guestName": "Ana"})

        assert body == "Confirmed Ana"
        assert "falling back to English" in caplog.text

    def test_missing_english_template_raises(self, tmp_path):
        renderer = TemplateRenderer(tmp_path)

        with pytest.raises(TemplateNotFoundError):
            renderer.render("en", "confirmed", {})

    def test_missing_everywhere_raises_after_fallback(self, tmp_path):
        renderer = TemplateRenderer(tmp_path)

        with pytest.raises(TemplateNotFoundError):
            renderer.render("al", "reminder", {})

    def test_templates_are_cached(self, tmp_path):
        """Edits after the first render are not picked up."""
        write_template(tmp_path, "en", "created", "first")
        renderer = TemplateRenderer(tmp_path)
        assert renderer.render("en", "created", {}) == "first"

        write_template(tmp_path, "en", "created", "second")
        assert renderer.render("en", "created", {}) == "first"
        assert TemplateRenderer(tmp_path).render("en", "created", {}) == "second"

    def test_path_like_language_is_not_read(self, tmp_path):
        """Language codes cannot walk out of the templates directory."""
        write_template(tmp_path, "en", "created", "safe")
        secret_dir = tmp_path.parent / "outside"
        secret_dir.mkdir(exist_ok=True)
        (secret_dir / "reservation-created.txt").write_text("leaked", encoding="utf-8")
        renderer = TemplateRenderer(tmp_path)

        assert renderer.render("../outside", "created", {}) == "safe"
