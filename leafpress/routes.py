"""
Mapping between content source paths, URL routes and output files.
"""

import os

MARKDOWN_EXTENSIONS = ('.md', '.markdown', '.mdx')


def is_markdown_file(path):
    """Return True if the path has a markdown-family extension."""
    return path.lower().endswith(MARKDOWN_EXTENSIONS)


def strip_markdown_extension(path):
    for ext in MARKDOWN_EXTENSIONS:
        if path.lower().endswith(ext):
            return path[:-len(ext)]
    return path


def derive_route(file_path, root_dir=None):
    """
    Derive the canonical route for a content file.

    Args:
        file_path: Path of the source file, absolute or relative
        root_dir: Content root the route is relative to

    Returns:
        Route string with a single leading '/' and no trailing '/',
        or exactly '/' for the root index file
    """
    path = str(file_path)
    if root_dir:
        root = str(root_dir)
        if os.path.isabs(path) != os.path.isabs(root):
            path = os.path.abspath(path)
            root = os.path.abspath(root)
        path = os.path.relpath(path, root)

    path = strip_markdown_extension(path).replace('\\', '/')
    segments = [s for s in path.split('/') if s and s != '.']

    if segments and segments[-1] == 'index':
        segments = segments[:-1]

    if not segments:
        return '/'
    return '/' + '/'.join(segments)


def normalize_route(route):
    """Collapse duplicate slashes and drop any trailing slash."""
    segments = [s for s in str(route).split('/') if s]
    if not segments:
        return '/'
    return '/' + '/'.join(segments)


def route_segments(route):
    return [s for s in route.split('/') if s]


def output_path_for_route(output_dir, route):
    """Return the HTML output file for a route ('/' maps to index.html)."""
    segments = route_segments(route)
    return os.path.join(output_dir, *segments, 'index.html')


def route_url(site_url, route):
    """Absolute URL for a route under the site's base URL."""
    base = (site_url or '').rstrip('/')
    if route == '/':
        return f"{base}/"
    return f"{base}{route}"
