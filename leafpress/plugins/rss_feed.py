"""
RSS feed plugin: writes an RSS 2.0 feed of dated pages.
"""

import html
import logging
import os
import re
from datetime import date, datetime, timezone
from email.utils import formatdate
from urllib.parse import urlparse
from xml.sax.saxutils import escape

from ..errors import OutputWriteError
from ..plugin import Plugin
from ..routes import route_url


def to_naive_utc(value):
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_date(value):
    """
    Parse a front matter date; unparseable values give datetime.min.

    Timezone-aware values are converted to naive UTC so that every parsed
    date compares with every other.
    """
    if isinstance(value, datetime):
        return to_naive_utc(value)
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        for fmt in ['%Y-%m-%dT%H:%M:%S%z', '%Y-%m-%dT%H:%M:%S', '%Y-%m-%d', '%b %d, %Y']:
            try:
                return to_naive_utc(datetime.strptime(value, fmt))
            except ValueError:
                continue
    return datetime.min


def site_title_from_url(url):
    return urlparse(url or '').netloc.replace("www.", "")


class RssFeedPlugin(Plugin):
    def __init__(self, options=None):
        options = dict(options or {})
        super().__init__(
            name='rss-feed',
            options=options,
            process_content_file=self.collect,
            build_start=self.reset,
            build_end=self.write_feed,
        )
        self.output_dir = options.get('output_dir', 'dist')
        self.site_url = options.get('site_url') or ''
        self.title = options.get('title') or site_title_from_url(self.site_url)
        self.description = options.get('description') or f"Latest posts from {self.title}"
        self.filename = options.get('filename', 'feed.xml')
        self.limit = int(options.get('limit', 20))
        self.items = []
        self.logger = logging.getLogger('Leafpress.RssFeedPlugin')

    def reset(self):
        self.items = []

    def collect(self, content_file):
        published = parse_date(content_file.frontmatter.get('date'))
        if published == datetime.min:
            return
        self.items.append((published, content_file))

    def describe(self, content_file):
        raw = content_file.frontmatter.get('description') or content_file.rendered_html
        text = re.sub(r'<.*?>', '', html.unescape(str(raw)), flags=re.S)
        text = re.sub(r'\s+', ' ', text).strip()
        words = text.split()
        if len(words) > 30:
            text = ' '.join(words[:30]) + '...'
        return text

    def generate_feed(self):
        recent = sorted(self.items, key=lambda item: item[0], reverse=True)[:self.limit]
        rss_content = f'''<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
<channel>
<title>{escape(self.title)}</title>
<link>{escape(self.site_url)}</link>
<description>{escape(self.description)}</description>
<lastBuildDate>{formatdate()}</lastBuildDate>
'''
        for published, content in recent:
            link = escape(route_url(self.site_url, content.route))
            rss_content += f'''
<item>
<title>{escape(content.title or 'Untitled')}</title>
<link>{link}</link>
<description>{escape(self.describe(content))}</description>
<pubDate>{formatdate(published.replace(tzinfo=timezone.utc).timestamp())}</pubDate>
<guid>{link}</guid>
</item>'''

        rss_content += '''
</channel>
</rss>'''
        return rss_content

    def write_feed(self):
        if not self.items:
            return
        feed_path = os.path.join(self.output_dir, self.filename)
        try:
            os.makedirs(self.output_dir, exist_ok=True)
            with open(feed_path, 'w', encoding='utf-8') as f:
                f.write(self.generate_feed())
        except (IOError, OSError) as e:
            raise OutputWriteError(feed_path, e) from e
        self.logger.info("Generating RSS feed")


def rss_feed_plugin(options=None):
    return RssFeedPlugin(options)
