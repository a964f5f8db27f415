"""Test configuration and fixtures for Leafpress tests."""

import json
import os
import shutil
import sys
import tempfile
from pathlib import Path

import pytest
import yaml

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from leafpress.core import Leafpress
from leafpress.plugin import PluginManager


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def pages_dir(temp_dir):
    """Create a small content tree."""
    pages = Path(temp_dir) / 'pages'
    (pages / 'guide').mkdir(parents=True)

    (pages / 'index.md').write_text("""---
title: Home
layout: home
---

# Welcome

{{t:greeting|Hello}}
""")

    (pages / 'guide' / 'intro.md').write_text("""---
title: Introduction
description: Getting started
order: 1
---

# Introduction

Read this first.

## Setup

Install the package.
""")

    (pages / 'guide' / 'advanced.md').write_text("""---
title: Advanced
order: 2
---

# Advanced Topics
""")
    return str(pages)


@pytest.fixture
def themes_dir(temp_dir):
    """Create a themes directory holding one valid theme."""
    themes = Path(temp_dir) / 'themes'
    default = themes / 'default'
    default.mkdir(parents=True)
    (default / 'layout.html').write_text('<main class="layout">{{ content }}</main>')
    (default / 'styles.css').write_text(':root {\n  --brand: #123456;\n}\nbody { margin: 0; }\n')
    return str(themes)


@pytest.fixture
def sample_site(temp_dir, pages_dir, themes_dir):
    """Create a complete site with configuration, translations and public assets."""
    site = Path(temp_dir)

    (site / 'leafpress.yml').write_text(yaml.dump({
        'title': 'Test Docs',
        'description': 'Documentation for tests',
        'site_url': 'https://docs.example.com',
        'log_dir': None,
        'plugins': [
            {'name': 'i18n', 'options': {'default_locale': 'en', 'locales': ['en', 'fr']}},
            {'name': 'search-index'},
        ],
    }))

    i18n_dir = site / 'i18n'
    i18n_dir.mkdir()
    (i18n_dir / 'en.json').write_text(json.dumps({'greeting': 'Hello'}))
    (i18n_dir / 'fr.json').write_text(json.dumps({'greeting': 'Bonjour'}))

    public = site / 'public'
    (public / 'img').mkdir(parents=True)
    (public / 'robots.txt').write_text('User-agent: *\n')
    (public / 'img' / 'logo.svg').write_text('<svg></svg>')

    return str(site)


@pytest.fixture
def make_builder(temp_dir):
    """Factory for a Leafpress builder over the temporary site directory."""
    def factory(plugins=None, **settings):
        base = {
            'pages_dir': os.path.join(temp_dir, 'pages'),
            'output_dir': os.path.join(temp_dir, 'dist'),
            'public_dir': os.path.join(temp_dir, 'public'),
            'themes_dir': os.path.join(temp_dir, 'themes'),
            'site_url': 'https://docs.example.com',
            'log_dir': None,
            'base_dir': temp_dir,
        }
        base.update(settings)
        manager = PluginManager(plugins) if plugins is not None else None
        return Leafpress(base, plugin_manager=manager)
    return factory
