"""
Plugin records and the ordered plugin registry.

A plugin is a named record whose hooks are optional callables. A hook that is
None is skipped. Any hook may return an awaitable, which is awaited before the
next plugin runs.
"""

import contextlib
import importlib
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from .errors import PluginError, PluginLoadError

logger = logging.getLogger('Leafpress.PluginManager')

TransformHook = Callable[[str], Union[str, Awaitable[str]]]
LifecycleHook = Callable[[], Optional[Awaitable[None]]]


@dataclass
class Plugin:
    name: str
    options: Dict[str, Any] = field(default_factory=dict)
    transform: Optional[TransformHook] = None
    process_content_file: Optional[Callable[[Any], Optional[Awaitable[None]]]] = None
    build_start: Optional[LifecycleHook] = None
    build_end: Optional[LifecycleHook] = None
    configure_server: Optional[Callable[[Any], Optional[Awaitable[None]]]] = None


async def _call_hook(hook, *args):
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class PluginManager:
    """Ordered registry of plugins with sequential hook execution."""

    def __init__(self, plugins=None):
        self._plugins: List[Plugin] = []
        # Depth of hook runs in flight; concurrent transforms share it.
        self._running = 0
        self.logger = logger
        for plugin in plugins or []:
            self.add(plugin)

    @property
    def plugins(self):
        return list(self._plugins)

    def __len__(self):
        return len(self._plugins)

    def __iter__(self):
        return iter(list(self._plugins))

    def _check_mutable(self):
        if self._running:
            raise PluginError("Plugins cannot be added or removed while hooks are executing")

    def add(self, plugin: Plugin):
        """Append a plugin; names are unique."""
        self._check_mutable()
        if not plugin.name:
            raise PluginError("Plugin must have a name")
        if self.get(plugin.name) is not None:
            raise PluginError(f"Plugin '{plugin.name}' is already registered")
        self._plugins.append(plugin)
        self.logger.debug(f"Registered plugin: {plugin.name}")

    def remove(self, name: str):
        self._check_mutable()
        self._plugins = [p for p in self._plugins if p.name != name]

    def get(self, name: str) -> Optional[Plugin]:
        for plugin in self._plugins:
            if plugin.name == name:
                return plugin
        return None

    @contextlib.contextmanager
    def _hooks_running(self):
        self._running += 1
        try:
            yield
        finally:
            self._running -= 1

    async def _run_each(self, hook_name, *args):
        with self._hooks_running():
            for plugin in list(self._plugins):
                hook = getattr(plugin, hook_name, None)
                if hook is None:
                    continue
                self.logger.debug(f"Running {hook_name} hook of plugin {plugin.name}")
                await _call_hook(hook, *args)

    async def execute_transform(self, content: str) -> str:
        """
        Fold every transform hook over the content in registration order.

        A hook that raises is logged and skipped; the next hook receives the
        content as it was before the failing hook ran.
        """
        result = content
        with self._hooks_running():
            for plugin in list(self._plugins):
                if plugin.transform is None:
                    continue
                try:
                    transformed = await _call_hook(plugin.transform, result)
                except Exception as e:
                    self.logger.error(f"Transform hook of plugin {plugin.name} failed: {e}")
                    continue
                if transformed is None:
                    self.logger.warning(f"Transform hook of plugin {plugin.name} returned None, ignoring")
                    continue
                result = transformed
        return result

    async def execute_process_content_file(self, content_file):
        with self._hooks_running():
            for plugin in list(self._plugins):
                if plugin.process_content_file is None:
                    continue
                try:
                    await _call_hook(plugin.process_content_file, content_file)
                except Exception as e:
                    self.logger.error(
                        f"process_content_file hook of plugin {plugin.name} failed "
                        f"for {getattr(content_file, 'source_path', content_file)}: {e}"
                    )

    async def execute_build_start(self):
        await self._run_each('build_start')

    async def execute_build_end(self):
        await self._run_each('build_end')

    async def execute_configure_server(self, server):
        await self._run_each('configure_server', server)


def sort_plugins_by_dependencies(plugins):
    """
    Order plugins so that every plugin follows the plugins it depends on.

    Dependencies are declared as a list of plugin names in
    ``options['dependencies']``. Unknown names are ignored. A dependency
    cycle is reported and broken at the edge that closes it.
    """
    by_name = {p.name: p for p in plugins}
    ordered = []
    done = set()
    visiting = set()

    def visit(plugin):
        if plugin.name in done:
            return
        if plugin.name in visiting:
            logger.warning(f"Circular plugin dependency involving '{plugin.name}', ignoring the cycle")
            return
        visiting.add(plugin.name)
        dependencies = (plugin.options or {}).get('dependencies') or []
        if isinstance(dependencies, (list, tuple)):
            for dep_name in dependencies:
                dep = by_name.get(dep_name)
                if dep is not None:
                    visit(dep)
        visiting.discard(plugin.name)
        done.add(plugin.name)
        ordered.append(plugin)

    for plugin in plugins:
        visit(plugin)
    return ordered


def _import_factory(name):
    module_name, _, attr = name.partition(':')
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise PluginLoadError(f"Failed to import plugin module {module_name}: {e}") from e
    factory = getattr(module, attr or 'plugin', None)
    if factory is None:
        raise PluginLoadError(f"Plugin module {module_name} has no attribute '{attr or 'plugin'}'")
    return factory


def load_plugins(plugin_configs, settings=None):
    """
    Build a PluginManager from the ``plugins`` configuration list.

    Args:
        plugin_configs: List of ``{'name': ..., 'options': {...}}`` entries;
            a bare string is accepted as a name without options
        settings: Site settings, used for built-in plugin defaults

    Returns:
        PluginManager with the plugins in dependency order
    """
    from .plugins import BUILTIN_PLUGINS

    settings = settings or {}
    loaded = []
    for entry in plugin_configs or []:
        if isinstance(entry, str):
            entry = {'name': entry}
        name = entry.get('name')
        options = dict(entry.get('options') or {})
        if not name:
            raise PluginLoadError(f"Plugin entry without a name: {entry}")

        if name in BUILTIN_PLUGINS:
            options.setdefault('output_dir', settings.get('output_dir', 'dist'))
            options.setdefault('site_url', settings.get('site_url'))
            options.setdefault('base_dir', settings.get('base_dir'))
            factory = BUILTIN_PLUGINS[name]
        else:
            factory = _import_factory(name)

        try:
            plugin = factory(options)
        except Exception as e:
            raise PluginLoadError(f"Failed to initialize plugin {name}: {e}") from e
        if not isinstance(plugin, Plugin):
            raise PluginLoadError(f"Plugin factory for {name} did not return a Plugin")
        loaded.append(plugin)
        logger.info(f"Loaded plugin: {name}")

    return PluginManager(sort_plugins_by_dependencies(loaded))
