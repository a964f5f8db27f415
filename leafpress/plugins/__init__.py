"""
Built-in plugins, addressable by name from the ``plugins`` setting.
"""

from .i18n import I18nPlugin, i18n_plugin
from .rss_feed import RssFeedPlugin, rss_feed_plugin
from .search_index import SearchIndexPlugin, search_index_plugin
from .seo import SeoPlugin, seo_plugin

BUILTIN_PLUGINS = {
    'i18n': i18n_plugin,
    'search-index': search_index_plugin,
    'rss-feed': rss_feed_plugin,
    'seo': seo_plugin,
}

__all__ = [
    'BUILTIN_PLUGINS',
    'I18nPlugin',
    'RssFeedPlugin',
    'SearchIndexPlugin',
    'SeoPlugin',
]
