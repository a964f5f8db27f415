"""
HTML document assembly for processed pages.

Without an active theme a page is rendered through the self-contained
fallback template. With a theme, the layout payload is embedded on the mount
element and the resolved layout component either renders server side (Jinja2
templates) or is hydrated in the browser (script components).
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import csscompressor
from jinja2 import Environment, FileSystemLoader, TemplateError

from .content import ContentFile
from .themes import DEFAULT_LAYOUT_TYPE, Theme

PACKAGE_TEMPLATES = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'templates')

THEME_MARKER_CLASS = 'bunpress-theme'
HYDRATED_EXTENSIONS = ('.tsx', '.jsx', '.ts', '.js', '.mjs')
TEMPLATE_EXTENSIONS = ('.html', '.jinja', '.jinja2')
HYDRATION_PREFIX = '/_theme'

# Build-internal settings kept out of the page payload
INTERNAL_CONFIG_KEYS = ('plugins', 'log_dir', 'base_dir', 'pages_dir', 'output_dir',
                        'public_dir', 'themes_dir', 'theme_validation')


@dataclass
class RenderContext:
    content: ContentFile
    active_theme: Optional[Theme]
    config: Dict[str, Any]
    nav_items: List[Dict[str, Any]] = field(default_factory=list)
    sidebar_items: List[Dict[str, Any]] = field(default_factory=list)
    layout: Optional[str] = None
    locale: Optional[str] = None


def escape_layout_params(serialized):
    """Escape a JSON string for a single-quoted HTML attribute."""
    return (serialized.replace('&', '&amp;')
            .replace('<', '&lt;')
            .replace('>', '&gt;')
            .replace("'", '&#39;'))


def is_hydrated_component(path):
    return bool(path) and path.lower().endswith(HYDRATED_EXTENSIONS)


def is_template_component(path):
    return bool(path) and path.lower().endswith(TEMPLATE_EXTENSIONS)


def component_relpath(theme, component):
    return os.path.relpath(component, theme.path).replace(os.sep, '/')


def hydration_bundle_path(theme, component):
    """Bundle output path of a hydrated component, relative to the output root."""
    stem = os.path.splitext(component_relpath(theme, component))[0]
    return f"{HYDRATION_PREFIX.lstrip('/')}/{theme.name}/{stem}.js"


def hydration_src(theme, component):
    return '/' + hydration_bundle_path(theme, component)


class Renderer:
    def __init__(self, minify=False, templates_dir=None):
        self.minify = minify
        self.templates_dir = templates_dir or PACKAGE_TEMPLATES
        self.env = Environment(loader=FileSystemLoader(self.templates_dir))
        self._theme_envs = {}
        self.logger = logging.getLogger('Leafpress.Renderer')

    def render(self, content, config, active_theme=None, options=None):
        """
        Render one processed page to a complete HTML document.

        Args:
            content: The ContentFile to render
            config: Site settings
            active_theme: Theme to render with, or None for the fallback template
            options: Optional 'layout', 'locale', 'nav_items' and 'sidebar_items'

        Returns:
            The HTML document as a string
        """
        options = options or {}
        context = RenderContext(
            content=content,
            active_theme=active_theme,
            config=config,
            nav_items=list(options.get('nav_items') or config.get('navigation') or []),
            sidebar_items=list(options.get('sidebar_items') or config.get('sidebar') or []),
            layout=options.get('layout'),
            locale=options.get('locale'),
        )
        return self.render_context(context)

    def render_context(self, ctx: RenderContext):
        if ctx.active_theme is None:
            return self.render_fallback(ctx)

        layout_type = self.resolve_layout_type(ctx)
        component = ctx.active_theme.get_component(layout_type)
        if not component:
            self.logger.warning(
                f"Theme \"{ctx.active_theme.name}\" has no component for layout \"{layout_type}\", "
                f"using fallback template for {ctx.content.route}"
            )
            return self.render_fallback(ctx)

        return self.render_themed(ctx, layout_type, component)

    def resolve_layout_type(self, ctx: RenderContext):
        if ctx.layout:
            return ctx.layout
        layout = ctx.content.frontmatter.get('layout')
        if isinstance(layout, str) and layout:
            return layout
        theme_config = ctx.config.get('theme')
        if isinstance(theme_config, dict) and theme_config.get('default_layout'):
            return theme_config['default_layout']
        return DEFAULT_LAYOUT_TYPE

    def page_meta(self, ctx: RenderContext):
        frontmatter = ctx.content.frontmatter
        title = frontmatter.get('title')
        description = frontmatter.get('description')
        lang = ctx.locale or frontmatter.get('locale') or ctx.config.get('lang') or 'en'
        return {
            'title': title if isinstance(title, str) else ctx.config.get('title', ''),
            'description': description if isinstance(description, str) else ctx.config.get('description', ''),
            'lang': lang,
        }

    def render_fallback(self, ctx: RenderContext):
        template = self.env.get_template('fallback.html')
        return template.render(
            content=ctx.content.rendered_html,
            nav_items=ctx.nav_items,
            **self.page_meta(ctx)
        )

    def build_layout_params(self, ctx: RenderContext, layout_type):
        theme = ctx.active_theme
        config = {k: v for k, v in ctx.config.items() if k not in INTERNAL_CONFIG_KEYS}
        return {
            'layout': layout_type,
            'locale': ctx.locale,
            'frontmatter': ctx.content.frontmatter,
            'content': ctx.content.rendered_html,
            'route': ctx.content.route,
            'nav_items': ctx.nav_items,
            'sidebar_items': ctx.sidebar_items,
            'toc_items': [item.to_dict() for item in ctx.content.toc_items],
            'config': config,
            'theme': {
                'name': theme.name,
                'options': theme.options,
                'variables': theme.variables,
            },
        }

    def html_class(self, theme):
        classes = [THEME_MARKER_CLASS, f"theme-{theme.name}"]
        if theme.options.get('dark_mode') or theme.options.get('darkMode'):
            classes.append('dark')
        return ' '.join(classes)

    def theme_styles(self, theme):
        styles = theme.read_styles()
        if self.minify and styles:
            styles = csscompressor.compress(styles)
        return styles

    def _theme_env(self, theme):
        env = self._theme_envs.get(theme.path)
        if env is None:
            env = Environment(loader=FileSystemLoader(theme.path))
            self._theme_envs[theme.path] = env
        return env

    def render_layout_template(self, theme, component, params):
        """Render a Jinja2 layout component; None if it fails."""
        try:
            template = self._theme_env(theme).get_template(component_relpath(theme, component))
            return template.render(**params)
        except TemplateError as e:
            self.logger.error(f"Template error in layout {component} of theme \"{theme.name}\": {e}")
            return None

    def render_themed(self, ctx: RenderContext, layout_type, component):
        theme = ctx.active_theme
        params = self.build_layout_params(ctx, layout_type)
        serialized = json.dumps(params, default=str, ensure_ascii=False)

        body = ctx.content.rendered_html
        script_src = None
        if is_template_component(component):
            rendered = self.render_layout_template(theme, component, params)
            if rendered is not None:
                body = rendered
        elif is_hydrated_component(component):
            script_src = hydration_src(theme, component)

        template = self.env.get_template('themed.html')
        return template.render(
            html_class=self.html_class(theme),
            theme_styles=self.theme_styles(theme),
            layout_type=layout_type,
            layout_params=escape_layout_params(serialized),
            body=body,
            hydration_src=script_src,
            **self.page_meta(ctx)
        )
