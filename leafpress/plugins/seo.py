"""
SEO plugin: adds social and canonical metadata to written pages and writes
robots.txt.

Pages are complete HTML documents only once they are on disk, so the plugin
works at build end over every HTML file in the output directory.
"""

import html
import json
import logging
import os
import re
from urllib.parse import urljoin

from ..errors import OutputWriteError
from ..plugin import Plugin
from ..routes import route_url

TITLE_RE = re.compile(r'<title>(.*?)</title>', re.S)
DESCRIPTION_RE = re.compile(r'<meta name="description" content="([^"]*)"\s*/?>')


def page_route(relative_path):
    """Route served by an output file, given its path relative to the output root."""
    segments = [s for s in relative_path.replace('\\', '/').split('/') if s]
    if segments and segments[-1] == 'index.html':
        segments = segments[:-1]
    if not segments:
        return '/'
    return '/' + '/'.join(segments)


def attr(value):
    return html.escape(value, quote=True)


class SeoPlugin(Plugin):
    def __init__(self, options=None):
        options = dict(options or {})
        super().__init__(
            name='seo',
            options=options,
            build_end=self.finalize,
        )
        self.output_dir = options.get('output_dir', 'dist')
        self.site_url = (options.get('site_url') or '').rstrip('/')
        self.site_title = options.get('title') or ''
        self.site_description = options.get('description') or ''
        self.default_image = options.get('default_image')
        self.twitter_handle = options.get('twitter_handle')
        self.generate_robots_txt = options.get('generate_robots_txt', True)
        self.add_canonical_urls = options.get('add_canonical_urls', True)
        self.add_json_ld = options.get('add_json_ld', False)
        self.logger = logging.getLogger('Leafpress.SeoPlugin')

    def image_url(self):
        if not self.default_image:
            return None
        if self.default_image.startswith('http') or not self.site_url:
            return self.default_image
        return urljoin(self.site_url + '/', self.default_image.lstrip('/'))

    def meta_tags(self, document, route):
        """Build the tags injected after <head> for one page."""
        title_match = TITLE_RE.search(document)
        title = html.unescape(title_match.group(1)).strip() if title_match else self.site_title
        description_match = DESCRIPTION_RE.search(document)
        description = html.unescape(description_match.group(1)) if description_match else self.site_description
        page_url = route_url(self.site_url, route) if self.site_url else None
        image = self.image_url()

        tags = []
        if description and not description_match:
            tags.append(f'<meta name="description" content="{attr(description)}">')
        tags.append(f'<meta property="og:title" content="{attr(title)}">')
        tags.append('<meta property="og:type" content="website">')
        if description:
            tags.append(f'<meta property="og:description" content="{attr(description)}">')
        if page_url:
            tags.append(f'<meta property="og:url" content="{attr(page_url)}">')
            if self.add_canonical_urls:
                tags.append(f'<link rel="canonical" href="{attr(page_url)}">')
        if image:
            tags.append(f'<meta property="og:image" content="{attr(image)}">')

        tags.append('<meta name="twitter:card" content="summary_large_image">')
        if self.twitter_handle:
            handle = self.twitter_handle.lstrip('@')
            tags.append(f'<meta name="twitter:site" content="@{attr(handle)}">')
        tags.append(f'<meta name="twitter:title" content="{attr(title)}">')
        if description:
            tags.append(f'<meta name="twitter:description" content="{attr(description)}">')
        if image:
            tags.append(f'<meta name="twitter:image" content="{attr(image)}">')

        if self.add_json_ld:
            data = {
                '@context': 'https://schema.org',
                '@type': 'WebPage',
                'name': title,
                'description': description,
            }
            if page_url:
                data['url'] = page_url
            if image:
                data['image'] = image
            # Keep "</script>" in values from closing the element.
            payload = json.dumps(data, indent=2).replace('</', '<\\/')
            tags.append(f'<script type="application/ld+json">\n{payload}\n</script>')
        return tags

    def optimize_document(self, document, route):
        if '<head>' not in document or 'property="og:title"' in document:
            return document
        injected = ''.join(f'\n  {tag}' for tag in self.meta_tags(document, route))
        return document.replace('<head>', f'<head>{injected}', 1)

    def html_files(self):
        for root, dirs, files in os.walk(self.output_dir):
            dirs.sort()
            for file in sorted(files):
                if file.endswith('.html'):
                    yield os.path.join(root, file)

    def optimize_pages(self):
        count = 0
        for path in self.html_files():
            route = page_route(os.path.relpath(path, self.output_dir))
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    document = f.read()
                optimized = self.optimize_document(document, route)
                if optimized == document:
                    continue
                with open(path, 'w', encoding='utf-8') as f:
                    f.write(optimized)
            except (IOError, OSError) as e:
                raise OutputWriteError(path, e) from e
            count += 1
        self.logger.debug(f"Added SEO metadata to {count} pages")
        return count

    def write_robots_txt(self):
        robots_path = os.path.join(self.output_dir, 'robots.txt')
        if os.path.exists(robots_path):
            self.logger.debug("robots.txt already present, leaving it unchanged")
            return None
        try:
            with open(robots_path, 'w', encoding='utf-8') as f:
                f.write(f"User-agent: *\nAllow: /\n\nSitemap: {self.site_url}/sitemap.xml\n")
        except (IOError, OSError) as e:
            raise OutputWriteError(robots_path, e) from e
        self.logger.info("Generating robots.txt")
        return robots_path

    def finalize(self):
        if not os.path.isdir(self.output_dir):
            return
        self.optimize_pages()
        if not self.site_url:
            self.logger.info("SEO plugin: site URL not provided, skipping robots.txt")
            return
        if self.generate_robots_txt:
            self.write_robots_txt()


def seo_plugin(options=None):
    return SeoPlugin(options)
