#!/usr/bin/env python3
"""
Settings loader for the Leafpress site builder.
Supports configuration from leafpress.yml, leafpress.yaml, or leafpress.json files.
"""

import os
import copy
import json
import logging
import yaml
from typing import Dict, Any, Optional

from .errors import ConfigError, ConfigNotFoundError


class LeafpressSettings:
    """Load and manage Leafpress configuration settings."""

    # Default configuration
    DEFAULT_SETTINGS = {
        'title': 'Leafpress Site',
        'description': 'A site built with Leafpress',
        'site_url': 'https://example.com',
        'lang': 'en',
        'pages_dir': 'pages',
        'output_dir': 'dist',
        'public_dir': 'public',
        'themes_dir': 'themes',
        'theme': {
            'name': 'default',
            'options': {},
            'default_layout': 'doc',
        },
        'theme_validation': {
            'require_layout_component': True,
            'require_style_file': True,
            'require_layouts': False,
        },
        'strict_theme': False,
        'plugins': [],
        'navigation': [],
        'sidebar': None,
        'minify': False,
        'log_dir': 'logs',
    }

    # Settings holding mappings that are merged key by key rather than replaced
    NESTED_SETTINGS = ('theme', 'theme_validation')

    # Settings holding directories, resolved against the config directory
    PATH_SETTINGS = ('pages_dir', 'output_dir', 'public_dir', 'themes_dir', 'log_dir')

    # Config file names to look for (in order of preference)
    CONFIG_FILES = ['leafpress.yml', 'leafpress.yaml', 'leafpress.json']

    def __init__(self, config_dir: str = None):
        """
        Initialize settings loader.

        Args:
            config_dir: Directory to look for config files. Defaults to current directory.
        """
        self.config_dir = config_dir or os.getcwd()
        self.settings = copy.deepcopy(self.DEFAULT_SETTINGS)
        self.config_file_path = None
        self.logger = logging.getLogger('Leafpress.Settings')

    def load_settings(self, required: bool = False) -> Dict[str, Any]:
        """
        Load settings from configuration file if it exists.

        Args:
            required: Raise ConfigNotFoundError when no config file exists

        Returns:
            Dictionary of configuration settings
        """
        config_file = self._find_config_file()

        if not config_file:
            if required:
                raise ConfigNotFoundError(
                    f"No configuration file found in {self.config_dir} "
                    f"(looked for {', '.join(self.CONFIG_FILES)})"
                )
            return copy.deepcopy(self.settings)

        self.config_file_path = config_file
        loaded_settings = self._load_config_file(config_file)
        if not isinstance(loaded_settings, dict):
            raise ConfigError(f"Configuration file {config_file} must contain a mapping")
        self.settings = self.merge_settings(self.settings, loaded_settings)
        self.logger.info(f"Loaded configuration from: {os.path.relpath(config_file)}")

        return copy.deepcopy(self.settings)

    @classmethod
    def merge_settings(cls, base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """Merge overrides over base, merging nested mappings key by key."""
        merged = copy.deepcopy(base)
        for key, value in overrides.items():
            if key in cls.NESTED_SETTINGS and isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = {**merged[key], **value}
            else:
                merged[key] = value
        return merged

    def resolve_paths(self, settings: Dict[str, Any]) -> Dict[str, Any]:
        """
        Make directory settings absolute, relative to the config directory.

        Args:
            settings: Settings dictionary to resolve

        Returns:
            New settings dictionary with absolute directory paths
        """
        resolved = dict(settings)
        for key in self.PATH_SETTINGS:
            value = resolved.get(key)
            if value and not os.path.isabs(value):
                resolved[key] = os.path.abspath(os.path.join(self.config_dir, value))
        return resolved

    def _find_config_file(self) -> Optional[str]:
        """
        Find the first available configuration file.

        Returns:
            Path to config file or None if not found
        """
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(self.config_dir, filename)
            if os.path.exists(config_path):
                return config_path
        return None

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Dictionary of configuration settings
        """
        file_ext = os.path.splitext(config_path)[1].lower()
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                if file_ext in ['.yml', '.yaml']:
                    return yaml.safe_load(f) or {}
                elif file_ext == '.json':
                    return json.load(f) or {}
                else:
                    raise ConfigError(f"Unsupported config file format: {file_ext}")
        except PermissionError:
            raise ConfigError(f"Permission denied reading configuration file: {config_path}")
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in configuration file {config_path}: {e}")
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in configuration file {config_path}: {e}")
        except (IOError, OSError) as e:
            raise ConfigError(f"Error reading configuration file {config_path}: {e}")

    def create_sample_config(self, file_format: str = 'yml') -> str:
        """
        Create a sample configuration file.

        Args:
            file_format: Format for config file ('yml', 'yaml', or 'json')

        Returns:
            Path to created sample config file
        """
        filename = f'leafpress.{file_format}'
        config_path = os.path.join(self.config_dir, filename)

        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                if file_format in ['yml', 'yaml']:
                    f.write("# Leafpress Configuration File\n")
                    f.write("# Configure your site builder settings here\n\n")
                    f.write("# Site information\n")
                    f.write("title: My Leafpress Site\n")
                    f.write("description: Built with Leafpress\n")
                    f.write("site_url: https://example.com\n")
                    f.write("lang: en\n\n")
                    f.write("# Build settings\n")
                    f.write("pages_dir: pages\n")
                    f.write("output_dir: dist\n")
                    f.write("public_dir: public\n")
                    f.write("themes_dir: themes\n")
                    f.write("minify: false\n\n")
                    f.write("# Theme\n")
                    f.write("theme:\n")
                    f.write("  name: default\n")
                    f.write("  default_layout: doc  # doc, page or home\n")
                    f.write("  options:\n")
                    f.write("    dark_mode: false\n\n")
                    f.write("# Navigation\n")
                    f.write("navigation:\n")
                    f.write("  - title: Home\n")
                    f.write("    href: /\n\n")
                    f.write("# Plugins\n")
                    f.write("plugins:\n")
                    f.write("  - name: i18n\n")
                    f.write("    options:\n")
                    f.write("      default_locale: en\n")
                    f.write("      locales: [en, fr]\n")
                    f.write("  - name: search-index\n")
                elif file_format == 'json':
                    sample_config = {
                        'title': 'My Leafpress Site',
                        'description': 'Built with Leafpress',
                        'site_url': 'https://example.com',
                        'lang': 'en',
                        'pages_dir': 'pages',
                        'output_dir': 'dist',
                        'public_dir': 'public',
                        'themes_dir': 'themes',
                        'minify': False,
                        'theme': {'name': 'default', 'default_layout': 'doc', 'options': {'dark_mode': False}},
                        'navigation': [{'title': 'Home', 'href': '/'}],
                        'plugins': [
                            {'name': 'i18n', 'options': {'default_locale': 'en', 'locales': ['en', 'fr']}},
                            {'name': 'search-index'},
                        ],
                    }
                    json.dump(sample_config, f, indent=2)
                else:
                    raise ConfigError(f"Unsupported config file format: {file_format}")
        except PermissionError:
            raise ConfigError(f"Permission denied creating configuration file: {config_path}")
        except (IOError, OSError) as e:
            raise ConfigError(f"Error writing configuration file {config_path}: {e}")

        return config_path

    def merge_with_args(self, args_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge configuration settings with explicit overrides.
        Overrides take precedence over config file settings.

        Args:
            args_dict: Dictionary of overrides; None values are ignored

        Returns:
            Merged configuration dictionary
        """
        overrides = {key: value for key, value in args_dict.items() if value is not None}
        if isinstance(overrides.get('theme'), str):
            # A bare theme name only replaces the name
            overrides['theme'] = {'name': overrides['theme']}
        return self.merge_settings(self.settings, overrides)
