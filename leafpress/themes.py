"""
Theme discovery, validation and selection.

A theme is a directory under the themes root::

    themes/<name>/
        layout.html        layout entry (or an alternative name)
        styles.css         style file (or an alternative name)
        theme.yml          optional, default ``options``
        layouts/
            DocLayout.html registers layout type "doc"
            HomeLayout.tsx registers layout type "home"

Discovery never stores an active theme; ``theme_from_config`` returns it as a
value owned by the caller.
"""

import copy
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from .errors import ThemeNotFoundError

DEFAULT_THEME_NAME = 'default'
DEFAULT_LAYOUT_TYPE = 'doc'
LAYOUT_TYPES = ('doc', 'home', 'page')

ROOT_BLOCK_RE = re.compile(r':root\s*\{([^}]*)\}', re.S)
CSS_VARIABLE_RE = re.compile(r'(--[\w-]+)\s*:\s*([^;]+);?')


@dataclass
class Theme:
    name: str
    path: str
    layout_component: str
    style_file: str
    layouts: Dict[str, str] = field(default_factory=dict)
    options: Dict[str, Any] = field(default_factory=dict)
    variables: Dict[str, str] = field(default_factory=dict)

    def get_component(self, layout_type=None):
        """Keyed layout for layout_type, else the default layout entry."""
        if layout_type and layout_type in self.layouts:
            return self.layouts[layout_type]
        return self.layout_component or None

    def read_styles(self):
        if not self.style_file or not os.path.isfile(self.style_file):
            return ''
        try:
            with open(self.style_file, 'r', encoding='utf-8') as f:
                return f.read()
        except (IOError, OSError) as e:
            logging.getLogger('Leafpress.ThemeResolver').error(f"Failed to read theme styles: {e}")
            return ''


@dataclass
class ThemeValidationOptions:
    require_layout_component: bool = True
    require_style_file: bool = True
    require_layouts: bool = False
    layout_file: str = 'layout.html'
    alternative_layout_files: List[str] = field(default_factory=lambda: [
        'Layout.html', 'index.html', 'index.tsx', 'Layout.tsx', 'Layout.jsx', 'index.jsx',
    ])
    style_file: str = 'styles.css'
    alternative_style_files: List[str] = field(default_factory=lambda: ['style.css', 'theme.css'])
    component_extensions: List[str] = field(default_factory=lambda: [
        '.html', '.jinja', '.jinja2', '.tsx', '.jsx',
    ])

    @classmethod
    def from_settings(cls, values):
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in (values or {}).items() if k in known})


def layout_type_from_filename(filename, extensions):
    """'DocLayout.html' -> 'doc'; None when the extension is not a component."""
    stem, ext = os.path.splitext(filename)
    if ext.lower() not in extensions:
        return None
    if stem.endswith('Layout'):
        stem = stem[:-len('Layout')]
    return stem.lower() or None


def extract_theme_variables(css):
    """Return the custom properties declared in :root blocks."""
    variables = {}
    for block in ROOT_BLOCK_RE.findall(css or ''):
        for name, value in CSS_VARIABLE_RE.findall(block):
            variables[name] = value.strip()
    return variables


class ThemeResolver:
    """Discovers and validates themes and selects the active one."""

    def __init__(self, themes_dir, validation=None, default_theme=DEFAULT_THEME_NAME):
        self.themes_dir = themes_dir
        self.validation = validation or ThemeValidationOptions()
        self.default_theme = default_theme
        self._themes: Dict[str, Theme] = {}
        self.logger = logging.getLogger('Leafpress.ThemeResolver')

    @property
    def themes(self):
        return dict(self._themes)

    def available_themes(self):
        return sorted(self._themes)

    def discover(self):
        """
        Scan the themes directory and register every valid theme.

        Re-running discovery replaces the registry.

        Returns:
            Mapping of theme name to Theme
        """
        themes = {}
        if not self.themes_dir or not os.path.isdir(self.themes_dir):
            self.logger.warning(f"Themes directory not found at {self.themes_dir}")
            self._themes = themes
            return self.themes

        for entry in sorted(os.listdir(self.themes_dir)):
            theme_path = os.path.join(self.themes_dir, entry)
            if entry.startswith('.') or not os.path.isdir(theme_path):
                continue
            theme = self.validate_theme(entry, theme_path)
            if theme is not None:
                themes[entry] = theme

        self._themes = themes
        self.logger.info(f"Loaded {len(themes)} themes: {', '.join(sorted(themes))}")
        return self.themes

    def _first_existing(self, theme_path, names):
        for name in names:
            candidate = os.path.join(theme_path, name)
            if os.path.isfile(candidate):
                return candidate
        return ''

    def validate_theme(self, theme_name, theme_path) -> Optional[Theme]:
        """Build a Theme from a candidate directory, or None if it fails a required check."""
        opts = self.validation
        self.logger.debug(f"Processing theme: {theme_name} at path {theme_path}")

        layout_component = self._first_existing(
            theme_path, [opts.layout_file] + list(opts.alternative_layout_files)
        )
        if not layout_component and opts.require_layout_component:
            self.logger.warning(f"Theme \"{theme_name}\" missing layout entry file, skipping")
            return None

        style_file = self._first_existing(theme_path, [opts.style_file])
        if not style_file:
            style_file = self._first_existing(theme_path, opts.alternative_style_files)
            if style_file:
                self.logger.warning(
                    f"Theme \"{theme_name}\" uses non-standard style file name: {os.path.basename(style_file)}"
                )
        if not style_file and opts.require_style_file:
            self.logger.warning(f"Theme \"{theme_name}\" missing style file, skipping")
            return None

        layouts = {}
        layouts_dir = os.path.join(theme_path, 'layouts')
        if os.path.isdir(layouts_dir):
            extensions = [ext.lower() for ext in opts.component_extensions]
            for filename in sorted(os.listdir(layouts_dir)):
                layout_type = layout_type_from_filename(filename, extensions)
                if layout_type:
                    layouts[layout_type] = os.path.join(layouts_dir, filename)
                    self.logger.debug(f"Registered layout: {layout_type} => {layouts[layout_type]}")

        if not layouts and opts.require_layouts:
            self.logger.warning(f"Theme \"{theme_name}\" has no layout components, skipping")
            return None

        return Theme(
            name=theme_name,
            path=theme_path,
            layout_component=layout_component,
            style_file=style_file,
            layouts=layouts,
            options=self._load_theme_options(theme_name, theme_path),
            variables=extract_theme_variables(self._read(style_file)),
        )

    def _read(self, path):
        if not path:
            return ''
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return f.read()
        except (IOError, OSError) as e:
            self.logger.error(f"Failed to read {path}: {e}")
            return ''

    def _load_theme_options(self, theme_name, theme_path):
        for filename in ('theme.yml', 'theme.yaml'):
            path = os.path.join(theme_path, filename)
            if not os.path.isfile(path):
                continue
            try:
                data = yaml.safe_load(self._read(path)) or {}
            except yaml.YAMLError as e:
                self.logger.warning(f"Invalid {filename} in theme \"{theme_name}\": {e}")
                return {}
            options = data.get('options') if isinstance(data, dict) else None
            return dict(options) if isinstance(options, dict) else {}
        return {}

    def theme_from_config(self, theme_config=None, strict=False) -> Optional[Theme]:
        """
        Select the active theme.

        Args:
            theme_config: Mapping with 'name' and 'options', or a bare name
            strict: Raise ThemeNotFoundError instead of returning None

        Returns:
            Copy of the registered theme with the configured options merged
            over its defaults, or None when neither the requested nor the
            default theme is registered
        """
        if isinstance(theme_config, str):
            theme_config = {'name': theme_config}
        theme_config = theme_config or {}
        requested = theme_config.get('name') or self.default_theme
        overrides = theme_config.get('options') or {}

        theme = self._themes.get(requested)
        if theme is None:
            self.logger.warning(f"Theme \"{requested}\" not found, using default theme")
            theme = self._themes.get(self.default_theme)
        if theme is None:
            message = f"Default theme \"{self.default_theme}\" not found"
            if strict:
                raise ThemeNotFoundError(message)
            self.logger.error(message)
            return None

        active = copy.deepcopy(theme)
        active.options = {**theme.options, **overrides}
        self.logger.info(f"Active theme set to \"{active.name}\"")
        return active

    def get_theme_component(self, theme, layout_type=None):
        if theme is None:
            return None
        return theme.get_component(layout_type)
