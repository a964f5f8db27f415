"""
Search index plugin: writes a JSON index of every processed page.
"""

import json
import logging
import os
import re

from ..errors import OutputWriteError
from ..plugin import Plugin

DEFAULT_STOPWORDS = [
    'a', 'an', 'and', 'are', 'as', 'at', 'be', 'but', 'by', 'for',
    'if', 'in', 'into', 'is', 'it', 'no', 'not', 'of', 'on', 'or',
    'such', 'that', 'the', 'their', 'then', 'there', 'these', 'they',
    'this', 'to', 'was', 'will', 'with'
]


def strip_tags(text):
    return re.sub(r'\s+', ' ', re.sub(r'<[^>]*>', ' ', text or '')).strip()


class SearchIndexPlugin(Plugin):
    def __init__(self, options=None):
        options = dict(options or {})
        super().__init__(
            name='search-index',
            options=options,
            process_content_file=self.collect,
            build_start=self.reset,
            build_end=self.write_index,
        )
        self.filename = options.get('filename', 'search-index.json')
        self.output_dir = options.get('output_dir', 'dist')
        self.stopwords = set(options.get('stopwords', DEFAULT_STOPWORDS))
        self.snippet_length = int(options.get('snippet_length', 160))
        self.content_files = []
        self.logger = logging.getLogger('Leafpress.SearchIndexPlugin')

    def reset(self):
        self.content_files = []

    def collect(self, content_file):
        if content_file.frontmatter.get('search') is False:
            return
        self.content_files.append(content_file)

    def process_text(self, text):
        """Lowercase plain text with punctuation and stopwords removed."""
        words = re.sub(r'[^\w\s]', ' ', strip_tags(text)).lower().split()
        return ' '.join(w for w in words if w not in self.stopwords)

    def extract_excerpt(self, rendered_html):
        plain = strip_tags(rendered_html)
        if len(plain) > self.snippet_length:
            return plain[:self.snippet_length] + '...'
        return plain

    def generate_index(self):
        documents = []
        for content in sorted(self.content_files, key=lambda c: c.route):
            documents.append({
                'route': content.route,
                'title': content.title or '',
                'description': str(content.frontmatter.get('description') or ''),
                'excerpt': self.extract_excerpt(content.rendered_html),
                'content': self.process_text(content.rendered_html),
                'headings': [item.text for item in content.toc_items],
            })
        return documents

    def write_index(self):
        index_path = os.path.join(self.output_dir, self.filename)
        try:
            os.makedirs(self.output_dir, exist_ok=True)
            with open(index_path, 'w', encoding='utf-8') as f:
                json.dump(self.generate_index(), f, ensure_ascii=False)
        except (IOError, OSError) as e:
            raise OutputWriteError(index_path, e) from e
        self.logger.info(f"Generated search index with {len(self.content_files)} entries")


def search_index_plugin(options=None):
    return SearchIndexPlugin(options)
