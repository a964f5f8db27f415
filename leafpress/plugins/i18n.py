"""
Internationalization plugin: translation markers and locale routes.
"""

import logging
import os

from ..content import current_page, parse_front_matter
from ..i18n import LocaleConfig, LocaleExpander, Translator
from ..plugin import Plugin


class I18nPlugin(Plugin):
    def __init__(self, options=None):
        options = dict(options or {})
        super().__init__(
            name='i18n',
            options=options,
            transform=self.transform_content,
            process_content_file=self.register_content_file,
            build_start=self.start_build,
        )
        self.config = LocaleConfig.from_options(options)
        base_dir = options.get('base_dir')
        if base_dir and self.config.translations_dir and not os.path.isabs(self.config.translations_dir):
            self.config.translations_dir = os.path.join(base_dir, self.config.translations_dir)
        self.translator = Translator(self.config)
        self.expander = LocaleExpander(self.config)
        self.route_map = {}
        self.logger = logging.getLogger('Leafpress.I18nPlugin')

    def start_build(self):
        self.logger.info("Loading translations...")
        self.route_map = {}
        self.translator.load()

    def effective_locale(self, content):
        """Locale for the page being transformed."""
        locales = self.config.locales
        page = current_page.get()
        if page is not None:
            if page.locale in locales:
                return page.locale
            if page.frontmatter.get('locale') in locales:
                return page.frontmatter['locale']
        metadata, _ = parse_front_matter(content)
        if metadata.get('locale') in locales:
            return metadata['locale']
        return self.config.default_locale

    def transform_content(self, content):
        if '{{t:' not in content:
            return content
        return self.translator.substitute(content, self.effective_locale(content))

    def get_translation(self, locale, key, default=None):
        return self.translator.get_translation(locale, key, default)

    def is_locale_route(self, route):
        return self.expander.is_locale_route(route)

    def generate_locale_route(self, route, locale):
        return self.expander.generate_locale_route(route, locale)

    def register_content_file(self, content_file):
        if not self.config.generate_locale_routes:
            return
        if self.expander.is_locale_route(content_file.route):
            return
        self.route_map[content_file.route] = content_file

    def locale_routes(self):
        return self.expander.expand(self.route_map.values())


def i18n_plugin(options=None):
    return I18nPlugin(options)
