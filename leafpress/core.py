import asyncio
import logging
import os
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List
from xml.sax.saxutils import escape

from jinja2 import TemplateError

from .assets import CopyBundler, copy_public_assets, minify_assets
from .content import ContentProcessor, find_content_files
from .errors import FileReadError, OutputWriteError, ThemeNotFoundError
from .plugin import load_plugins
from .plugins.i18n import I18nPlugin
from .renderer import Renderer, hydration_bundle_path, is_hydrated_component
from .routes import output_path_for_route, route_url
from .settings import LeafpressSettings
from .themes import ThemeResolver, ThemeValidationOptions


class InfoFilter(logging.Filter):
    """Filter to allow only selected INFO messages to be shown in the console."""
    def filter(self, record):
        if record.levelno >= logging.WARNING:
            return True
        allowed_messages = [
            "Starting site build",
            "Site build completed in",
            "Total pages generated:",
            "Total locale pages generated:",
            "Active theme set to",
            "Loaded configuration from",
            "Generating XML sitemap",
            "Generating RSS feed",
            "Generated search index",
            "Generating robots.txt",
        ]
        return any(msg in record.getMessage() for msg in allowed_messages)


@dataclass
class BuildError:
    source: str
    message: str

    def __str__(self):
        return f"{self.source}: {self.message}"


@dataclass
class BuildResult:
    success: bool
    output_dir: str
    files_generated: List[str] = field(default_factory=list)
    errors: List[BuildError] = field(default_factory=list)

    @property
    def status(self):
        """'failed', 'partial' (some pages skipped) or 'success'."""
        if not self.success:
            return 'failed'
        if self.errors:
            return 'partial'
        return 'success'

    def fail(self, source, message):
        self.success = False
        self.errors.append(BuildError(str(source), str(message)))


class Leafpress:
    def __init__(self, settings=None, plugin_manager=None, theme_resolver=None, renderer=None, bundler=None):
        self.settings = LeafpressSettings.merge_settings(LeafpressSettings.DEFAULT_SETTINGS, settings or {})
        self.pages_dir = self.settings['pages_dir']
        self.output_dir = self.settings['output_dir']
        self.public_dir = self.settings.get('public_dir')
        self.themes_dir = self.settings.get('themes_dir')
        self.minify = bool(self.settings.get('minify'))
        self.pages_generated = 0
        self.locale_pages_generated = 0

        self.setup_logging()

        if plugin_manager is None:
            plugin_manager = load_plugins(self.settings.get('plugins'), self.settings)
        self.plugin_manager = plugin_manager
        self.theme_resolver = theme_resolver or ThemeResolver(
            self.themes_dir,
            ThemeValidationOptions.from_settings(self.settings.get('theme_validation')),
        )
        self.renderer = renderer or Renderer(minify=self.minify)
        self.bundler = bundler or CopyBundler()
        self.processor = ContentProcessor(self.plugin_manager)

    @classmethod
    def from_config_dir(cls, config_dir=None, **overrides):
        """
        Create a builder from the configuration file in config_dir.

        Raises:
            ConfigNotFoundError: No configuration file exists in config_dir
            ConfigError: The configuration file is invalid
        """
        loader = LeafpressSettings(config_dir)
        loader.load_settings(required=True)
        settings = loader.resolve_paths(loader.merge_with_args(overrides))
        settings['base_dir'] = os.path.abspath(loader.config_dir)
        return cls(settings)

    def setup_logging(self):
        """Set up logging configuration."""
        self.logger = logging.getLogger('Leafpress')
        self.logger.setLevel(logging.DEBUG)

        if not self.logger.handlers:
            # Console handler with filter
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_handler.addFilter(InfoFilter())
            console_handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(console_handler)

            # File handler for all logs
            logs_dir = self.settings.get('log_dir')
            if logs_dir:
                os.makedirs(logs_dir, exist_ok=True)
                log_filename = datetime.now().strftime('leafpress_%Y-%m-%d_%H-%M-%S.log')
                file_handler = logging.FileHandler(os.path.join(logs_dir, log_filename))
                file_handler.setLevel(logging.DEBUG)
                file_handler.setFormatter(
                    logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
                )
                self.logger.addHandler(file_handler)

    def build(self):
        """Main build process."""
        return asyncio.run(self.build_async())

    async def build_async(self):
        start_time = time.time()
        self.pages_generated = 0
        self.locale_pages_generated = 0
        result = BuildResult(success=True, output_dir=self.output_dir)
        self.logger.info("Starting site build...")

        self.theme_resolver.discover()
        try:
            active_theme = self.theme_resolver.theme_from_config(
                self.settings.get('theme'), strict=bool(self.settings.get('strict_theme'))
            )
        except ThemeNotFoundError as e:
            self.logger.error(f"Build failed: {e}")
            result.fail('theme', e)
            return result

        try:
            os.makedirs(self.output_dir, exist_ok=True)
        except OSError as e:
            self.logger.error(f"Build failed, cannot create output directory {self.output_dir}: {e}")
            result.fail(self.output_dir, e)
            return result

        try:
            await self.plugin_manager.execute_build_start()
        except Exception as e:
            self.logger.error(f"Build failed in build_start hooks: {e}")
            result.fail('build_start', e)
            return result

        try:
            await self.build_pages(active_theme, result)
        except OutputWriteError as e:
            self.logger.error(f"Build failed: {e}")
            result.fail(e.path, e)
        finally:
            try:
                await self.plugin_manager.execute_build_end()
            except Exception as e:
                self.logger.error(f"Build failed in build_end hooks: {e}")
                result.fail('build_end', e)

        self.logger.info(f"Total pages generated: {self.pages_generated}")
        if self.locale_pages_generated:
            self.logger.info(f"Total locale pages generated: {self.locale_pages_generated}")
        self.logger.info(f"Site build completed in {time.time() - start_time:.2f} seconds ({result.status})")
        return result

    async def process_file(self, file_path, result, locale=None):
        try:
            return await self.processor.process(file_path, self.pages_dir, locale=locale)
        except FileReadError as e:
            self.logger.error(str(e))
            result.errors.append(BuildError(str(file_path), str(e)))
        except Exception as e:
            self.logger.error(f"Error processing {file_path}: {e}")
            result.errors.append(BuildError(str(file_path), str(e)))
        return None

    async def process_files(self, files, result):
        """Process every file concurrently; order of the result follows files."""
        processed = await asyncio.gather(*(self.process_file(path, result) for path in files))
        contents = []
        routes = {}
        for content in processed:
            if content is None:
                continue
            if content.route in routes:
                self.logger.warning(
                    f"Route collision: {content.source_path} and {routes[content.route]} "
                    f"both map to {content.route}, skipping {content.source_path}"
                )
                continue
            routes[content.route] = content.source_path
            contents.append(content)
        return contents

    async def expand_locales(self, contents, result):
        """Re-process each content file for every locale route the i18n plugin derives."""
        i18n = self.plugin_manager.get('i18n')
        if not isinstance(i18n, I18nPlugin):
            return []

        by_route = {content.route: content for content in contents}

        async def process_locale(locale_route):
            base = by_route.get(locale_route.base_route)
            if base is None:
                return None
            content = await self.process_file(base.source_path, result, locale=locale_route.locale)
            if content is None:
                return None
            return replace(content, route=locale_route.expanded_route), locale_route.locale

        expanded = await asyncio.gather(*(process_locale(lr) for lr in i18n.locale_routes()))
        return [page for page in expanded if page is not None]

    def sidebar_items(self, contents):
        configured = self.settings.get('sidebar')
        if configured is not None:
            return list(configured)

        def sort_key(content):
            order = content.frontmatter.get('order', 1000)
            return (order if isinstance(order, (int, float)) else 1000, content.route)

        return [
            {'title': content.title or content.route, 'href': content.route}
            for content in sorted(contents, key=sort_key)
            if content.frontmatter.get('sidebar') is not False
        ]

    def write_page(self, route, html):
        output_path = output_path_for_route(self.output_dir, route)
        try:
            os.makedirs(os.path.dirname(output_path), exist_ok=True)
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(html)
        except (IOError, OSError) as e:
            raise OutputWriteError(output_path, e) from e
        self.logger.debug(f"Generated HTML: {output_path}")
        return output_path

    async def build_pages(self, active_theme, result):
        files = find_content_files(self.pages_dir)
        if not files:
            self.logger.warning("No markdown files found to process.")

        contents = await self.process_files(files, result)
        for content in contents:
            await self.plugin_manager.execute_process_content_file(content)

        locale_pages = await self.expand_locales(contents, result)

        nav_items = list(self.settings.get('navigation') or [])
        sidebar_items = self.sidebar_items(contents)
        pages = [(content, content.frontmatter.get('locale')) for content in contents] + locale_pages

        written_routes = []
        for index, (content, locale) in enumerate(pages):
            if content.route in written_routes:
                self.logger.warning(f"Route collision on {content.route} from {content.source_path}, skipping")
                continue
            try:
                html = self.renderer.render(content, self.settings, active_theme, {
                    'locale': locale,
                    'nav_items': nav_items,
                    'sidebar_items': sidebar_items,
                })
            except TemplateError as e:
                self.logger.error(f"Template error for {content.route}: {e}")
                result.errors.append(BuildError(content.source_path, str(e)))
                continue
            result.files_generated.append(self.write_page(content.route, html))
            written_routes.append(content.route)
            self.pages_generated += 1
            if index >= len(contents):
                self.locale_pages_generated += 1

        if active_theme is not None:
            result.files_generated.extend(self.bundle_theme_scripts(active_theme))

        result.files_generated.extend(copy_public_assets(self.public_dir, self.output_dir))
        if self.minify:
            result.files_generated.extend(minify_assets(self.output_dir))

        result.files_generated.append(self.generate_xml_sitemap(written_routes))

    def bundle_theme_scripts(self, theme):
        components = [theme.layout_component] + sorted(theme.layouts.values())
        entries = []
        for component in components:
            if not is_hydrated_component(component):
                continue
            entry = (component, hydration_bundle_path(theme, component))
            if entry not in entries:
                entries.append(entry)
        if not entries:
            return []
        return self.bundler.bundle(entries, self.output_dir, minify=self.minify)

    def generate_xml_sitemap(self, routes):
        """Generate XML sitemap."""
        site_url = self.settings.get('site_url') or ''
        sitemap_content = '''<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
'''
        for route in routes:
            sitemap_content += self.format_xml_sitemap_entry(route_url(site_url, route))
        sitemap_content += '</urlset>\n'

        sitemap_file = os.path.join(self.output_dir, 'sitemap.xml')
        try:
            with open(sitemap_file, 'w', encoding='utf-8') as f:
                f.write(sitemap_content)
        except (IOError, OSError) as e:
            raise OutputWriteError(sitemap_file, e) from e
        self.logger.info("Generating XML sitemap")
        return sitemap_file

    def format_xml_sitemap_entry(self, url):
        """Format a single sitemap entry."""
        return f"<url><loc>{escape(url)}</loc></url>\n"
