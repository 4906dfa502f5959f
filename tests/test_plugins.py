"""Tests for the plugin system."""

import pytest

from stroke_engine.plugins import PluginEvent, PluginManager, StrokePlugin


class TestStrokePlugin:
    def test_handler_decorator(self):
        plugin = StrokePlugin(name="test")
        called = []

        @plugin.handler("shape_c")
        def on_c(event):
            called.append(event.name)

        plugin.on_classification(PluginEvent(type="classification", name="shape_c"))
        plugin.on_classification(PluginEvent(type="classification", name="letter_i"))
        assert called == ["shape_c"]

    def test_wildcard_handler(self):
        plugin = StrokePlugin(name="test")
        called = []

        @plugin.handler("*")
        def on_any(event):
            called.append(event.name)

        plugin.on_classification(PluginEvent(type="classification", name="shape_b"))
        plugin.on_classification(PluginEvent(type="classification", name="letter_w"))
        assert called == ["shape_b", "letter_w"]

    def test_handler_error_doesnt_crash(self):
        plugin = StrokePlugin(name="test")

        @plugin.handler("*")
        def bad_handler(event):
            raise ValueError("boom")

        plugin.on_classification(PluginEvent(type="classification", name="shape_c"))


class TestPluginManager:
    def test_register_and_list(self):
        mgr = PluginManager()
        mgr.register(StrokePlugin(name="a"))
        mgr.register(StrokePlugin(name="b"))
        assert mgr.plugin_names == ["a", "b"]

    def test_register_replaces_same_name(self):
        mgr = PluginManager()
        first = StrokePlugin(name="a")
        second = StrokePlugin(name="a")
        mgr.register(first)
        mgr.register(second)
        assert mgr.plugins["a"] is second

    def test_unregister(self):
        mgr = PluginManager()
        mgr.register(StrokePlugin(name="a"))
        mgr.unregister("a")
        assert mgr.plugin_names == []

    def test_dispatch(self):
        mgr = PluginManager()
        received = []

        class Renderer(StrokePlugin):
            name = "renderer"

            def on_update(self, event):
                received.append(event.data["path"])

        mgr.register(Renderer())
        mgr.dispatch("update", PluginEvent(type="update", name="", data={"path": "M0 0 L1 1"}))
        assert received == ["M0 0 L1 1"]

    def test_dispatch_error_isolated(self):
        mgr = PluginManager()
        received = []

        class Broken(StrokePlugin):
            name = "broken"

            def on_feedback(self, event):
                raise RuntimeError("no vibrator")

        class Haptics(StrokePlugin):
            name = "haptics"

            def on_feedback(self, event):
                received.append(event.name)

        mgr.register(Broken())
        mgr.register(Haptics())
        mgr.dispatch("feedback", PluginEvent(type="feedback", name="success"))
        assert received == ["success"]

    def test_dispatch_unknown_hook_ignored(self):
        mgr = PluginManager()
        mgr.register(StrokePlugin(name="a"))
        mgr.dispatch("nonexistent", PluginEvent(type="nonexistent", name="x"))

    def test_load_directory_nonexistent(self, tmp_path):
        mgr = PluginManager()
        assert mgr.load_directory(tmp_path / "missing") == 0

    def test_load_directory(self, tmp_path):
        plugin_file = tmp_path / "my_plugin.py"
        plugin_file.write_text("""
from stroke_engine.plugins import StrokePlugin

class MyPlugin(StrokePlugin):
    name = "my_plugin"
    version = "1.0.0"
""")

        mgr = PluginManager()
        loaded = mgr.load_directory(tmp_path)
        assert loaded == 1
        assert "my_plugin" in mgr.plugin_names

    def test_load_module_level_instance(self, tmp_path):
        (tmp_path / "instance_plugin.py").write_text("""
from stroke_engine.plugins import StrokePlugin

plugin = StrokePlugin(name="instance")
""")
        mgr = PluginManager()
        assert mgr.load_directory(tmp_path) == 1
        assert mgr.plugin_names == ["instance"]

    def test_broken_plugin_file_skipped(self, tmp_path):
        (tmp_path / "bad_plugin.py").write_text("raise ImportError('nope')\n")
        (tmp_path / "_private.py").write_text("")
        mgr = PluginManager()
        assert mgr.load_directory(tmp_path) == 0

    def test_startup_shutdown(self):
        mgr = PluginManager()
        state = {"started": False, "stopped": False}

        class LifecyclePlugin(StrokePlugin):
            name = "lifecycle"

            def on_startup(self, context):
                state["started"] = True

            def on_shutdown(self):
                state["stopped"] = True

        mgr.register(LifecyclePlugin())
        mgr.startup({})
        assert state["started"]
        mgr.shutdown()
        assert state["stopped"]

    def test_example_logger_plugin(self, tmp_path, monkeypatch):
        from pathlib import Path

        monkeypatch.chdir(tmp_path)
        plugins_dir = Path(__file__).parent.parent / "plugins"
        mgr = PluginManager()
        assert mgr.load_directory(plugins_dir) == 1

        mgr.startup({})
        mgr.dispatch("classification", PluginEvent(type="classification", name="shape_c"))
        mgr.dispatch("tap", PluginEvent(type="tap", name="tap"))
        plugin = mgr.plugins["event_logger"]
        assert plugin.counts == {"shape_c": 1, "tap": 1}
        mgr.shutdown()

        lines = (tmp_path / "stroke_events.jsonl").read_text().splitlines()
        assert len(lines) == 2
