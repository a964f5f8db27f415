"""
Leafpress - a static documentation site builder.

Leafpress turns a tree of Markdown pages into a static site: it runs content
through a plugin pipeline, derives routes from file paths, renders pages with
a discovered theme (or a built-in fallback template) and expands locale
variants of every page.
"""

__version__ = "0.1.0"

from .core import BuildError, BuildResult, Leafpress
from .content import ContentFile, ContentProcessor, TocItem
from .plugin import Plugin, PluginManager, load_plugins
from .renderer import Renderer
from .routes import derive_route
from .settings import LeafpressSettings
from .themes import Theme, ThemeResolver

__all__ = [
    'BuildError',
    'BuildResult',
    'ContentFile',
    'ContentProcessor',
    'Leafpress',
    'LeafpressSettings',
    'Plugin',
    'PluginManager',
    'Renderer',
    'Theme',
    'ThemeResolver',
    'TocItem',
    'derive_route',
    'load_plugins',
]
