"""Tests for the build orchestrator."""

import html
import json
import logging
import os
import re
from pathlib import Path

import pytest

from leafpress.core import BuildError, BuildResult, InfoFilter, Leafpress
from leafpress.errors import ConfigNotFoundError
from leafpress.plugin import Plugin
from leafpress.plugins import RssFeedPlugin, SeoPlugin

PARAMS_RE = re.compile(r"data-layout-params='([^']*)'")


def read(*parts):
    with open(os.path.join(*parts), encoding='utf-8') as f:
        return f.read()


def layout_params(document):
    return json.loads(html.unescape(PARAMS_RE.search(document).group(1)))


class Tracker:
    """Records lifecycle hook calls."""

    def __init__(self):
        self.calls = []

    def plugin(self):
        return Plugin(
            name='tracker',
            build_start=lambda: self.calls.append('start'),
            process_content_file=lambda content: self.calls.append(content.route),
            build_end=lambda: self.calls.append('end'),
        )


class TestBuildResult:
    """Test cases for BuildResult."""

    def test_status(self):
        """Test the status summary of a build."""
        result = BuildResult(success=True, output_dir='dist')
        assert result.status == 'success'
        result.errors.append(BuildError('pages/a.md', 'unreadable'))
        assert result.status == 'partial'
        result.fail('dist', 'disk full')
        assert result.status == 'failed'
        assert str(result.errors[-1]) == 'dist: disk full'


class TestSiteBuild:
    """End-to-end builds of the sample site."""

    def test_full_build(self, sample_site):
        """Test every page, locale variant, asset and index is produced."""
        result = Leafpress.from_config_dir(sample_site).build()
        dist = os.path.join(sample_site, 'dist')

        assert result.success
        assert result.status == 'success'
        assert result.output_dir == dist
        for route_dir in ['', 'guide/intro', 'guide/advanced', 'fr', 'fr/guide/intro', 'fr/guide/advanced']:
            path = os.path.join(dist, *route_dir.split('/'), 'index.html') if route_dir else os.path.join(dist, 'index.html')
            assert os.path.exists(path), path
            assert path in result.files_generated

        assert os.path.exists(os.path.join(dist, 'robots.txt'))
        assert os.path.exists(os.path.join(dist, 'img', 'logo.svg'))
        assert os.path.exists(os.path.join(dist, 'sitemap.xml'))
        assert os.path.exists(os.path.join(dist, 'search-index.json'))

    def test_translations_per_locale(self, sample_site):
        """Test locale variants are transformed with their own locale."""
        Leafpress.from_config_dir(sample_site).build()
        dist = os.path.join(sample_site, 'dist')

        home = read(dist, 'index.html')
        french = read(dist, 'fr', 'index.html')
        assert '<p>Hello</p>' in home
        assert '<html lang="en"' in home
        assert '<p>Bonjour</p>' in french
        assert '<html lang="fr"' in french
        assert layout_params(french)['locale'] == 'fr'

    def test_themed_pages(self, sample_site):
        """Test pages render through the active theme layout."""
        Leafpress.from_config_dir(sample_site).build()
        document = read(sample_site, 'dist', 'guide', 'intro', 'index.html')

        assert 'class="bunpress-theme theme-default"' in document
        assert '<main class="layout"><h1 id="introduction">Introduction</h1>' in document
        assert '--brand: #123456;' in document
        params = layout_params(document)
        assert params['layout'] == 'doc'
        assert [item['id'] for item in params['toc_items']] == ['introduction', 'setup']
        assert params['config']['title'] == 'Test Docs'

    def test_derived_sidebar(self, sample_site):
        """Test the sidebar is built from page titles ordered by 'order'."""
        Leafpress.from_config_dir(sample_site).build()
        params = layout_params(read(sample_site, 'dist', 'index.html'))
        assert params['sidebar_items'] == [
            {'title': 'Introduction', 'href': '/guide/intro'},
            {'title': 'Advanced', 'href': '/guide/advanced'},
            {'title': 'Home', 'href': '/'},
        ]

    def test_sitemap(self, sample_site):
        """Test the sitemap lists every written route."""
        Leafpress.from_config_dir(sample_site).build()
        sitemap = read(sample_site, 'dist', 'sitemap.xml')

        assert sitemap.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">' in sitemap
        assert '<url><loc>https://docs.example.com/</loc></url>' in sitemap
        assert '<url><loc>https://docs.example.com/fr/guide/intro</loc></url>' in sitemap
        assert sitemap.count('<url>') == 6

    def test_search_index(self, sample_site):
        """Test the search index covers the source pages."""
        Leafpress.from_config_dir(sample_site).build()
        with open(os.path.join(sample_site, 'dist', 'search-index.json'), encoding='utf-8') as f:
            index = json.load(f)
        assert [entry['route'] for entry in index] == ['/', '/guide/advanced', '/guide/intro']

    def test_rebuild_is_stable(self, sample_site):
        """Test building twice gives the same pages."""
        builder = Leafpress.from_config_dir(sample_site)
        first = builder.build()
        second = builder.build()
        assert sorted(first.files_generated) == sorted(second.files_generated)
        assert read(sample_site, 'dist', 'fr', 'index.html').count('Bonjour') >= 1

    def test_missing_config(self, temp_dir):
        """Test building without a configuration file is refused."""
        with pytest.raises(ConfigNotFoundError):
            Leafpress.from_config_dir(temp_dir)

    def test_overrides(self, sample_site):
        """Test keyword overrides replace configured values."""
        builder = Leafpress.from_config_dir(sample_site, output_dir='public_html', title=None)
        assert builder.output_dir == os.path.join(os.path.abspath(sample_site), 'public_html')
        assert builder.settings['title'] == 'Test Docs'


class TestBuildPolicies:
    """Error handling and hook ordering of builds."""

    def test_lifecycle_order(self, pages_dir, make_builder):
        """Test build_start precedes file hooks and build_end runs once at the end."""
        tracker = Tracker()
        result = make_builder(plugins=[tracker.plugin()]).build()

        assert result.success
        assert tracker.calls[0] == 'start'
        assert tracker.calls[-1] == 'end'
        assert tracker.calls.count('end') == 1
        assert sorted(tracker.calls[1:-1]) == ['/', '/guide/advanced', '/guide/intro']

    def test_fallback_without_themes(self, pages_dir, make_builder, temp_dir):
        """Test pages use the fallback template when no theme exists."""
        result = make_builder().build()
        document = read(temp_dir, 'dist', 'index.html')

        assert result.status == 'success'
        assert 'Built with Leafpress' in document
        assert 'data-layout-params' not in document

    def test_strict_theme(self, pages_dir, make_builder):
        """Test a missing theme fails the build before any hook runs in strict mode."""
        tracker = Tracker()
        result = make_builder(plugins=[tracker.plugin()], strict_theme=True, theme={'name': 'missing'}).build()

        assert not result.success
        assert result.status == 'failed'
        assert result.errors[0].source == 'theme'
        assert tracker.calls == []

    def test_unreadable_file(self, pages_dir, make_builder, temp_dir):
        """Test an unreadable file is recorded and the other pages are built."""
        Path(pages_dir, 'broken.md').write_bytes(b'\xff\xfe\xfa\x00')
        result = make_builder().build()

        assert result.success
        assert result.status == 'partial'
        assert len(result.errors) == 1
        assert result.errors[0].source.endswith('broken.md')
        assert 'Failed to read content file' in result.errors[0].message
        assert os.path.exists(os.path.join(temp_dir, 'dist', 'guide', 'intro', 'index.html'))
        assert not os.path.exists(os.path.join(temp_dir, 'dist', 'broken', 'index.html'))

    def test_route_collision(self, pages_dir, make_builder, temp_dir, caplog):
        """Test two files mapping to one route write the first and warn."""
        Path(pages_dir, 'about.md').write_text('---\ntitle: About file\n---\nfirst\n')
        Path(pages_dir, 'about').mkdir()
        Path(pages_dir, 'about', 'index.md').write_text('---\ntitle: About dir\n---\nsecond\n')

        result = make_builder().build()
        document = read(temp_dir, 'dist', 'about', 'index.html')

        assert result.status == 'success'
        assert 'About file' in document
        assert 'About dir' not in document
        assert 'Route collision' in caplog.text

    def test_write_failure_is_fatal(self, pages_dir, make_builder, temp_dir):
        """Test an output write error fails the build and still runs build_end once."""
        dist = Path(temp_dir, 'dist')
        dist.mkdir()
        (dist / 'guide').write_text('not a directory')

        tracker = Tracker()
        result = make_builder(plugins=[tracker.plugin()]).build()

        assert not result.success
        assert result.status == 'failed'
        assert 'Failed to write output file' in result.errors[-1].message
        assert tracker.calls.count('end') == 1
        assert tracker.calls[-1] == 'end'

    def test_build_start_failure(self, pages_dir, make_builder):
        """Test a failing build_start hook fails the build before processing."""
        def fail():
            raise RuntimeError('cannot start')

        result = make_builder(plugins=[Plugin(name='bad', build_start=fail)]).build()
        assert result.status == 'failed'
        assert result.errors[0].source == 'build_start'

    def test_transform_failure_does_not_fail_build(self, pages_dir, make_builder, temp_dir):
        """Test a failing transform leaves pages untransformed but built."""
        def broken(text):
            raise ValueError('bad transform')

        result = make_builder(plugins=[Plugin(name='broken', transform=broken)]).build()
        assert result.status == 'success'
        assert 'Read this first.' in read(temp_dir, 'dist', 'guide', 'intro', 'index.html')

    def test_async_transform_applied(self, pages_dir, make_builder, temp_dir):
        """Test awaitable transforms run for every page."""
        async def stamp(text):
            return text + '\n\nStamped.\n'

        make_builder(plugins=[Plugin(name='stamp', transform=stamp)]).build()
        for route_dir in [('',), ('guide', 'intro'), ('guide', 'advanced')]:
            assert '<p>Stamped.</p>' in read(temp_dir, 'dist', *route_dir, 'index.html')

    def test_configured_navigation_and_sidebar(self, pages_dir, themes_dir, make_builder, temp_dir):
        """Test configured navigation and sidebar are passed to every page."""
        navigation = [{'title': 'Docs', 'href': '/guide/intro'}]
        sidebar = [{'title': 'Only', 'href': '/'}]
        make_builder(navigation=navigation, sidebar=sidebar).build()

        params = layout_params(read(temp_dir, 'dist', 'guide', 'advanced', 'index.html'))
        assert params['nav_items'] == navigation
        assert params['sidebar_items'] == sidebar

    def test_empty_site(self, temp_dir, make_builder, caplog):
        """Test a site without pages still produces a sitemap."""
        result = make_builder().build()
        assert result.success
        assert 'No markdown files found' in caplog.text
        assert '<url>' not in read(temp_dir, 'dist', 'sitemap.xml')

    def test_seo_and_feed_plugins(self, pages_dir, make_builder, temp_dir):
        """Test written pages get canonical links and mixed-offset dates still produce a feed."""
        Path(pages_dir, 'guide', 'intro.md').write_text(
            '---\ntitle: Introduction\ndate: 2024-01-02T10:00:00+02:00\n---\n\n# Introduction\n'
        )
        Path(pages_dir, 'guide', 'advanced.md').write_text(
            '---\ntitle: Advanced\ndate: 2024-01-01\n---\n\n# Advanced Topics\n'
        )
        options = {'output_dir': os.path.join(temp_dir, 'dist'), 'site_url': 'https://docs.example.com'}
        result = make_builder(plugins=[RssFeedPlugin(options), SeoPlugin(options)]).build()

        assert result.status == 'success'
        feed = read(temp_dir, 'dist', 'feed.xml')
        assert feed.index('/guide/intro') < feed.index('/guide/advanced')
        page = read(temp_dir, 'dist', 'guide', 'intro', 'index.html')
        assert '<link rel="canonical" href="https://docs.example.com/guide/intro">' in page
        assert read(temp_dir, 'dist', 'robots.txt').endswith('Sitemap: https://docs.example.com/sitemap.xml\n')


class TestThemeAssets:
    """Hydrated components and asset handling."""

    @pytest.fixture
    def hydrated_theme(self, themes_dir):
        layouts = Path(themes_dir, 'default', 'layouts')
        layouts.mkdir()
        (layouts / 'HomeLayout.tsx').write_text('export default function Home() {\n    return null;\n}\n')
        return themes_dir

    def test_hydrated_layout_bundled(self, pages_dir, hydrated_theme, make_builder, temp_dir):
        """Test the home layout gets a bootstrap script and its bundle is written."""
        result = make_builder().build()
        bundle = os.path.join(temp_dir, 'dist', '_theme', 'default', 'layouts', 'HomeLayout.js')
        home = read(temp_dir, 'dist', 'index.html')

        assert '<script type="module" src="/_theme/default/layouts/HomeLayout.js"' in home
        assert '<h1 id="welcome">Welcome</h1>' in home
        assert os.path.exists(bundle)
        assert bundle in result.files_generated
        assert '<script' not in read(temp_dir, 'dist', 'guide', 'intro', 'index.html')

    def test_minify(self, pages_dir, themes_dir, make_builder, temp_dir):
        """Test minification writes compressed siblings of public assets."""
        public = Path(temp_dir, 'public')
        public.mkdir()
        (public / 'site.css').write_text('body {\n    color: red;\n}\n')
        (public / 'site.js').write_text('function add(a, b) {\n    return a + b;\n}\n')

        make_builder(minify=True).build()
        assert 'body{color:red}' in read(temp_dir, 'dist', 'site.min.css')
        assert 'return a+b' in read(temp_dir, 'dist', 'site.min.js')
        assert 'body{margin:0}' in read(temp_dir, 'dist', 'index.html')


class TestInfoFilter:
    """Test cases for the console log filter."""

    def make_record(self, level, message):
        return logging.LogRecord('Leafpress', level, __file__, 1, message, None, None)

    def test_milestones_pass(self):
        """Test build milestones reach the console."""
        assert InfoFilter().filter(self.make_record(logging.INFO, 'Site build completed in 0.10 seconds'))

    def test_chatter_filtered(self):
        """Test other info messages are held back."""
        assert not InfoFilter().filter(self.make_record(logging.INFO, 'Processing markdown file: a.md'))

    def test_warnings_pass(self):
        """Test warnings always reach the console."""
        assert InfoFilter().filter(self.make_record(logging.WARNING, 'Route collision'))
