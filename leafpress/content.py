"""
Content processing: front matter, markdown conversion and TOC extraction.
"""

import asyncio
import html
import logging
import os
import re
from contextvars import ContextVar
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

import mistune
import yaml

from .errors import FileReadError
from .plugin import PluginManager
from .routes import derive_route, is_markdown_file

FRONT_MATTER_RE = re.compile(r'\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)', re.S)
HEADING_RE = re.compile(
    r'<h([1-6])\b[^>]*?\sid\s*=\s*(["\'])(.*?)\2[^>]*>(.*?)</h\1\s*>',
    re.S | re.I,
)
TAG_RE = re.compile(r'<[^>]+>')


@dataclass(frozen=True)
class TocItem:
    level: int
    id: str
    text: str

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class ContentFile:
    source_path: str
    route: str
    raw_body: str
    frontmatter: Dict[str, Any] = field(default_factory=dict)
    transformed_body: str = ''
    rendered_html: str = ''
    toc_items: List[TocItem] = field(default_factory=list)

    @property
    def title(self):
        title = self.frontmatter.get('title')
        return title if isinstance(title, str) else None


@dataclass(frozen=True)
class PageContext:
    """The page whose body is currently running through the transform chain."""
    source_path: str
    frontmatter: Dict[str, Any]
    locale: Optional[str] = None


current_page: ContextVar[Optional[PageContext]] = ContextVar('leafpress_current_page', default=None)


def parse_front_matter(text, source=None):
    """
    Split a leading '---' fenced YAML block from the body.

    Returns:
        (metadata, body) tuple; metadata is {} when absent or malformed
    """
    match = FRONT_MATTER_RE.match(text)
    if not match:
        return {}, text

    body = text[match.end():]
    try:
        metadata = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        logging.getLogger('Leafpress.ContentProcessor').error(
            f"Invalid YAML front matter in {source or 'content'}: {e}"
        )
        return {}, body

    if not isinstance(metadata, dict):
        return {}, body
    return {str(k): v for k, v in metadata.items()}, body


def slugify(text):
    text = html.unescape(TAG_RE.sub('', text)).strip().lower()
    text = re.sub(r'[^\w\s-]', '', text)
    return re.sub(r'[\s_-]+', '-', text).strip('-')


class HeadingIdRenderer(mistune.HTMLRenderer):
    """HTML renderer that gives every heading a unique slug id."""

    def __init__(self):
        super().__init__(escape=False)
        self._seen_ids = {}

    def heading(self, text, level, **attrs):
        base = attrs.get('id') or slugify(text) or 'section'
        count = self._seen_ids.get(base, 0)
        self._seen_ids[base] = count + 1
        heading_id = base if count == 0 else f"{base}-{count}"
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code, info=None):
        escaped_code = mistune.escape(code)
        lang = info.strip().split(None, 1)[0] if info and info.strip() else None
        if lang:
            return f'<pre><code class="language-{mistune.escape(lang)}">{escaped_code}</code></pre>\n'
        return f'<pre><code>{escaped_code}</code></pre>\n'


def create_markdown_parser():
    """Create a Mistune markdown parser with heading ids."""
    return mistune.create_markdown(
        renderer=HeadingIdRenderer(),
        plugins=['table', 'task_lists', 'strikethrough']
    )


def markdown_to_html(text):
    """Convert markdown text to HTML."""
    # Fresh parser per document so heading ids are unique per page only
    return create_markdown_parser()(text)


def extract_toc_items(rendered_html, min_level=1, max_level=6):
    """Collect headings that carry an id attribute, in document order."""
    items = []
    for match in HEADING_RE.finditer(rendered_html):
        level = int(match.group(1))
        if level < min_level or level > max_level:
            continue
        text = html.unescape(TAG_RE.sub('', match.group(4))).strip()
        items.append(TocItem(level=level, id=match.group(3), text=text))
    return items


def find_content_files(pages_dir):
    """Return every markdown file under pages_dir, sorted, skipping hidden entries."""
    found = []
    if not os.path.isdir(pages_dir):
        return found
    for dirpath, dirnames, filenames in os.walk(pages_dir):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith('.'))
        for filename in sorted(filenames):
            if filename.startswith('.') or not is_markdown_file(filename):
                continue
            found.append(os.path.join(dirpath, filename))
    return sorted(found)


def read_source(file_path):
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            return f.read()
    except (IOError, OSError, UnicodeDecodeError) as e:
        raise FileReadError(file_path, e) from e


class ContentProcessor:
    """Turns one source file into a ContentFile."""

    def __init__(self, plugin_manager=None):
        self.plugin_manager = plugin_manager if plugin_manager is not None else PluginManager()
        self.logger = logging.getLogger('Leafpress.ContentProcessor')

    async def process(self, file_path, root_dir, locale=None) -> ContentFile:
        """
        Process a single markdown file.

        Args:
            file_path: Source file to read
            root_dir: Content root used for route derivation
            locale: Locale override published to transform hooks

        Returns:
            The processed ContentFile

        Raises:
            FileReadError: The source file could not be read
        """
        self.logger.debug(f"Processing markdown file: {file_path}")
        text = await asyncio.to_thread(read_source, file_path)
        return await self.process_text(text, file_path, root_dir, locale=locale)

    async def process_text(self, text, file_path, root_dir, locale=None) -> ContentFile:
        frontmatter, body = parse_front_matter(text, source=file_path)

        token = current_page.set(PageContext(str(file_path), frontmatter, locale))
        try:
            transformed = await self.plugin_manager.execute_transform(body)
        finally:
            current_page.reset(token)

        rendered = markdown_to_html(transformed)
        route = derive_route(file_path, root_dir)
        toc_items = extract_toc_items(rendered)

        self.logger.debug(f"Processed markdown file: {file_path}, route: {route}")
        return ContentFile(
            source_path=str(file_path),
            route=route,
            raw_body=body,
            frontmatter=frontmatter,
            transformed_body=transformed,
            rendered_html=rendered,
            toc_items=toc_items,
        )
