"""
Static assets: public directory copy, minification and theme script bundling.
"""

import logging
import os
import shutil

import csscompressor
import rjsmin

from .errors import OutputWriteError

logger = logging.getLogger('Leafpress.Assets')


def copy_public_assets(public_dir, output_dir):
    """
    Recursively copy the public directory into the output root.

    Returns:
        List of copied file paths inside output_dir
    """
    if not public_dir or not os.path.isdir(public_dir):
        logger.debug(f"No public directory at {public_dir}, skipping asset copy")
        return []

    copied = []
    for dirpath, dirnames, filenames in os.walk(public_dir):
        dirnames.sort()
        relative = os.path.relpath(dirpath, public_dir)
        target_dir = output_dir if relative == '.' else os.path.join(output_dir, relative)
        for filename in sorted(filenames):
            destination = os.path.join(target_dir, filename)
            try:
                os.makedirs(target_dir, exist_ok=True)
                shutil.copy2(os.path.join(dirpath, filename), destination)
            except (IOError, OSError, shutil.Error) as e:
                raise OutputWriteError(destination, e) from e
            copied.append(destination)

    logger.info(f"Copied {len(copied)} assets from {public_dir}")
    return copied


def minify_assets(output_dir):
    """Write .min.css and .min.js siblings for CSS and JS files under output_dir."""
    minified = []
    for dirpath, _, filenames in os.walk(output_dir):
        for file in sorted(filenames):
            if file.endswith('.css') and not file.endswith('.min.css'):
                minifier, target = csscompressor.compress, file[:-len('.css')] + '.min.css'
            elif file.endswith('.js') and not file.endswith('.min.js'):
                minifier, target = rjsmin.jsmin, file[:-len('.js')] + '.min.js'
            else:
                continue

            source_path = os.path.join(dirpath, file)
            target_path = os.path.join(dirpath, target)
            try:
                with open(source_path, 'r', encoding='utf-8') as f:
                    text = f.read()
                with open(target_path, 'w', encoding='utf-8') as f:
                    f.write(minifier(text))
                logger.debug(f"Minified: {file}")
                minified.append(target_path)
            except (IOError, OSError, UnicodeDecodeError) as e:
                logger.error(f"Failed to minify {source_path}: {e}")
    return minified


class Bundler:
    """Turns script entry files into browser-loadable outputs."""

    def bundle(self, entries, output_dir, minify=False):
        """
        Args:
            entries: List of (source_path, output_relpath) pairs
            output_dir: Output root
            minify: Minify the produced scripts

        Returns:
            List of written file paths
        """
        raise NotImplementedError


class CopyBundler(Bundler):
    """Copies each entry as is; scripts are minified with rjsmin on request."""

    def bundle(self, entries, output_dir, minify=False):
        written = []
        for source_path, output_relpath in entries:
            destination = os.path.join(output_dir, *output_relpath.split('/'))
            try:
                with open(source_path, 'r', encoding='utf-8') as f:
                    script = f.read()
                if minify:
                    script = rjsmin.jsmin(script)
                os.makedirs(os.path.dirname(destination), exist_ok=True)
                with open(destination, 'w', encoding='utf-8') as f:
                    f.write(script)
            except (IOError, OSError) as e:
                raise OutputWriteError(destination, e) from e
            written.append(destination)
        return written
