"""
Translation marker resolution and locale route expansion.

Content may reference translations with ``{{t:dotted.key}}`` or
``{{t:dotted.key|Default text}}``. Translation tables are nested mappings
loaded per locale from ``<translations_dir>/<locale>.json`` (or ``.yml`` /
``.yaml``).
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from .routes import normalize_route, route_segments

TRANSLATION_MARKER_RE = re.compile(r'\{\{t:([^|{}]+)(?:\|([^{}]*))?\}\}')

_MISSING = object()


@dataclass
class LocaleConfig:
    default_locale: str = 'en'
    locales: List[str] = field(default_factory=lambda: ['en'])
    translations_dir: Optional[str] = 'i18n'
    allow_missing_translations: bool = True
    generate_locale_routes: bool = True
    prefix_default_locale: bool = True

    def __post_init__(self):
        if self.default_locale not in self.locales:
            self.locales = [self.default_locale] + list(self.locales)

    @classmethod
    def from_options(cls, options):
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in (options or {}).items() if k in known})


@dataclass(frozen=True)
class LocaleRoute:
    base_route: str
    locale: str
    expanded_route: str


class Translator:
    """Looks up dotted keys in per-locale translation tables."""

    def __init__(self, config: LocaleConfig, translations: Optional[Dict[str, Any]] = None):
        self.config = config
        self.translations: Dict[str, Any] = dict(translations or {})
        self.logger = logging.getLogger('Leafpress.Translator')

    def load(self, translations_dir=None):
        """Reload the translation table of every configured locale."""
        translations_dir = translations_dir or self.config.translations_dir
        self.translations = {}
        if not translations_dir or not os.path.isdir(translations_dir):
            self.logger.warning(f"Translations directory not found at {translations_dir}")
            return self.translations

        for locale in self.config.locales:
            self.translations[locale] = self._load_locale(translations_dir, locale)
        return self.translations

    def _load_locale(self, translations_dir, locale):
        for ext in ('.json', '.yml', '.yaml'):
            path = os.path.join(translations_dir, f'{locale}{ext}')
            if not os.path.exists(path):
                continue
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    data = json.load(f) if ext == '.json' else yaml.safe_load(f)
            except (IOError, OSError) as e:
                self.logger.error(f"Failed to read translations for {locale} from {path}: {e}")
                return {}
            except (json.JSONDecodeError, yaml.YAMLError) as e:
                self.logger.error(f"Invalid translations file {path}: {e}")
                return {}
            self.logger.debug(f"Loaded translations for {locale}")
            return data if isinstance(data, dict) else {}

        self.logger.warning(f"No translation file found for {locale}")
        return {}

    def _lookup(self, locale, key):
        value = self.translations.get(locale, _MISSING)
        for part in key.split('.'):
            if not isinstance(value, dict) or part not in value:
                return _MISSING
            value = value[part]
        if value is None or isinstance(value, (dict, list)):
            return _MISSING
        return value

    def get_translation(self, locale, key, default=None):
        """
        Resolve a dotted key for a locale.

        Falls back to the default locale when allowed, then to the supplied
        default text, then to the key itself. Never raises.
        """
        value = self._lookup(locale, key)
        if value is not _MISSING:
            return str(value)
        if self.config.allow_missing_translations and locale != self.config.default_locale:
            return self.get_translation(self.config.default_locale, key, default)
        return default if default is not None else key

    def substitute(self, text, locale=None):
        """Replace every translation marker in text."""
        if '{{t:' not in text:
            return text
        locale = locale or self.config.default_locale

        def replace(match):
            default = match.group(2)
            return self.get_translation(locale, match.group(1).strip(), default.strip() if default is not None else None)

        return TRANSLATION_MARKER_RE.sub(replace, text)


class LocaleExpander:
    """Computes locale-prefixed routes for processed content."""

    def __init__(self, config: LocaleConfig):
        self.config = config
        self.logger = logging.getLogger('Leafpress.LocaleExpander')

    def is_locale_route(self, route):
        segments = route_segments(route)
        return bool(segments) and segments[0] in self.config.locales

    def generate_locale_route(self, route, locale):
        if route in ('', '/'):
            return f'/{locale}'
        return normalize_route(f'/{locale}/{route}')

    def content_locale(self, content):
        locale = content.frontmatter.get('locale')
        if locale in self.config.locales:
            return locale
        return self.config.default_locale

    def expand(self, content_files):
        """
        Expand every unprefixed content file into its other locales.

        Args:
            content_files: Processed ContentFile values

        Returns:
            List of LocaleRoute, one per (file, target locale), in input order
        """
        if not self.config.generate_locale_routes:
            return []

        expanded = []
        seen = set()
        for content in content_files:
            if self.is_locale_route(content.route):
                continue
            own_locale = self.content_locale(content)
            for locale in self.config.locales:
                if locale == own_locale:
                    continue
                if locale == self.config.default_locale and not self.config.prefix_default_locale:
                    continue
                route = self.generate_locale_route(content.route, locale)
                if route in seen:
                    self.logger.warning(f"Duplicate locale route {route} from {content.route}, skipping")
                    continue
                seen.add(route)
                expanded.append(LocaleRoute(content.route, locale, route))
        return expanded
