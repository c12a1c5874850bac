"""
Template Renderer

Loads plain-text notification templates per language and interpolates
``{{ token }}`` placeholders.

Templates live at ``<base>/<language>/reservation-<event>.txt``. A language
without the requested template falls back to English; a missing English
template is a permanent failure for the row.

Usage:
    renderer = TemplateRenderer()
    body = renderer.render("al", "confirmed", {"guestName": "Ana"})
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ..outbox.errors import TemplateNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"
DEFAULT_TEMPLATES_DIR = Path(__file__).parent / "templates"

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")
# Keeps language codes from escaping the templates directory.
_LANGUAGE_CODE = re.compile(r"^[a-z]{2,8}(?:[-_][a-z0-9]{1,8})*$")


def interpolate(template: str, variables: Mapping[str, Any]) -> str:
    """Replace each placeholder with str(value); absent or None renders empty."""
    def _replace(match: "re.Match[str]") -> str:
        value = variables.get(match.group(1))
        if value is None:
            return ""
        return str(value)

    return _PLACEHOLDER.sub(_replace, template)


def normalize_language(language: Optional[str]) -> str:
    normalized = (language or DEFAULT_LANGUAGE).strip().lower()
    return normalized or DEFAULT_LANGUAGE


class TemplateRenderer:
    """
    Renders reservation templates with a per-instance cache.

    Cache entries are written once and kept for the lifetime of the
    renderer, so template edits need a worker restart.
    """

    def __init__(self, base_path: Optional[Union[str, Path]] = None):
        self.base_path = Path(base_path) if base_path else DEFAULT_TEMPLATES_DIR
        self._cache: Dict[Tuple[str, str], str] = {}

    def render(
        self,
        language: Optional[str],
        event: str,
        variables: Mapping[str, Any],
    ) -> str:
        template = self.load_template(normalize_language(language), event)
        return interpolate(template, variables)

    def load_template(self, language: str, event: str) -> str:
        key = (language, event)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        file_name = f"reservation-{event}.txt"
        raw = self._read(language, file_name)
        if raw is None:
            if language != DEFAULT_LANGUAGE:
                logger.warning(
                    f"Template {file_name} not found for language {language}; "
                    f"falling back to English."
                )
                return self.load_template(DEFAULT_LANGUAGE, event)
            raise TemplateNotFoundError(
                f"Template {file_name} not found for language {DEFAULT_LANGUAGE}"
            )

        self._cache[key] = raw
        return raw

    def _read(self, language: str, file_name: str) -> Optional[str]:
        if not _LANGUAGE_CODE.match(language) or not re.match(r"^[\w.-]+$", file_name):
            return None
        path = self.base_path / language / file_name
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
