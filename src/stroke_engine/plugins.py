"""Plugin system for StrokeEngine.

Rendering, haptic feedback and notification collaborators attach to the
engine as plugins. Drop a .py file in a plugins/ directory and load it with
``PluginManager.load_directory``.

Plugin interface:
    class MyPlugin(StrokePlugin):
        name = "my_plugin"

        def on_update(self, event):
            draw(event.data["path"], event.data["preview"])

        def on_feedback(self, event):
            vibrate(event.name)

Or use the decorator API for classification results:
    plugin = StrokePlugin(name="simple")

    @plugin.handler("shape_c")
    def on_c(event):
        print("Drew a C")
"""

from __future__ import annotations

import importlib.util
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger("stroke_engine.plugins")

EVENT_TYPES = ("start", "update", "classification", "reset", "tap", "feedback", "notice")


@dataclass
class PluginEvent:
    """Event passed to plugin handlers."""
    type: str  # one of EVENT_TYPES
    name: str  # label value, pulse name or notice title
    data: dict = field(default_factory=dict)
    timestamp: float = 0.0


class StrokePlugin:
    """Base class for StrokeEngine plugins.

    Subclass this and implement the hooks you care about.
    """

    name: str = "unnamed"
    version: str = "1.0.0"
    description: str = ""

    def __init__(self, name: Optional[str] = None, **kwargs):
        if name:
            self.name = name
        self._handlers: dict[str, list[Callable]] = {}

    def on_start(self, event: PluginEvent):
        """A new stroke started; renderers should clear the drawn path."""
        pass

    def on_update(self, event: PluginEvent):
        """A point was added. ``data`` holds ``path`` and ``preview``."""
        pass

    def on_classification(self, event: PluginEvent):
        """A stroke was classified. Dispatches to ``handler`` registrations."""
        handlers = self._handlers.get(event.name, []) + self._handlers.get("*", [])
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error("Plugin %s handler error: %s", self.name, e)

    def on_reset(self, event: PluginEvent):
        """The session went back to idle; the drawn path should vanish."""
        pass

    def on_tap(self, event: PluginEvent):
        pass

    def on_feedback(self, event: PluginEvent):
        """Haptic pulse request; ``name`` is a FeedbackPulse value."""
        pass

    def on_notice(self, event: PluginEvent):
        """User-visible notice; ``data["message"]`` holds the text."""
        pass

    def on_startup(self, context: dict):
        pass

    def on_shutdown(self):
        pass

    def handler(self, label: str = "*"):
        """Decorator to register a classification handler for a label value."""
        def decorator(fn: Callable):
            if label not in self._handlers:
                self._handlers[label] = []
            self._handlers[label].append(fn)
            return fn
        return decorator


class PluginManager:
    """Discovers, loads, and dispatches events to plugins.

    Usage:
        manager = PluginManager()
        manager.load_directory("plugins/")
        manager.startup({"engine": engine})
        manager.dispatch("classification", PluginEvent(type="classification", name="shape_c"))
        manager.shutdown()
    """

    def __init__(self):
        self._plugins: dict[str, StrokePlugin] = {}

    def register(self, plugin: StrokePlugin):
        """Register a plugin instance."""
        if plugin.name in self._plugins:
            logger.warning("Plugin '%s' already registered, replacing", plugin.name)
        self._plugins[plugin.name] = plugin
        logger.info("Registered plugin: %s v%s", plugin.name, plugin.version)

    def unregister(self, name: str):
        """Remove a plugin."""
        plugin = self._plugins.pop(name, None)
        if plugin:
            try:
                plugin.on_shutdown()
            except Exception as e:
                logger.error("Plugin %s shutdown error: %s", name, e)

    def load_directory(self, path: str | Path) -> int:
        """Load all .py plugin files from a directory.

        Each file should define a StrokePlugin subclass, or a module-level
        ``plugin`` variable holding a StrokePlugin instance.

        Returns number of plugins loaded.
        """
        path = Path(path)
        if not path.exists():
            logger.debug("Plugin directory %s does not exist", path)
            return 0

        loaded = 0
        for py_file in sorted(path.glob("*.py")):
            if py_file.name.startswith("_"):
                continue
            try:
                plugin = self._load_plugin_file(py_file)
                if plugin:
                    self.register(plugin)
                    loaded += 1
            except Exception as e:
                logger.error("Failed to load plugin %s: %s", py_file.name, e)

        return loaded

    def _load_plugin_file(self, path: Path) -> Optional[StrokePlugin]:
        module_name = f"stroke_plugin_{path.stem}"

        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            return None

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        spec.loader.exec_module(module)

        if hasattr(module, "plugin") and isinstance(module.plugin, StrokePlugin):
            return module.plugin

        for attr_name in dir(module):
            attr = getattr(module, attr_name)
            if (
                isinstance(attr, type)
                and issubclass(attr, StrokePlugin)
                and attr is not StrokePlugin
            ):
                return attr()

        logger.warning("No StrokePlugin found in %s", path.name)
        return None

    def startup(self, context: dict):
        """Initialize all plugins."""
        for plugin in self._plugins.values():
            try:
                plugin.on_startup(context)
            except Exception as e:
                logger.error("Plugin %s startup error: %s", plugin.name, e)

    def shutdown(self):
        """Shut down all plugins."""
        for plugin in self._plugins.values():
            try:
                plugin.on_shutdown()
            except Exception as e:
                logger.error("Plugin %s shutdown error: %s", plugin.name, e)

    def dispatch(self, event_type: str, event: PluginEvent):
        """Send an event to every plugin's ``on_<event_type>`` hook."""
        method_name = f"on_{event_type}"
        for plugin in self._plugins.values():
            handler = getattr(plugin, method_name, None)
            if handler:
                try:
                    handler(event)
                except Exception as e:
                    logger.error(
                        "Plugin %s %s error: %s", plugin.name, method_name, e
                    )

    @property
    def plugins(self) -> dict[str, StrokePlugin]:
        return dict(self._plugins)

    @property
    def plugin_names(self) -> list[str]:
        return list(self._plugins.keys())
