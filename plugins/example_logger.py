"""Example StrokeEngine plugin — stroke event logger.

Logs every classification, tap and notice to a JSON-lines file and keeps
running counts per label. Drop this file in a plugins/ directory and load it
with ``PluginManager.load_directory``.

Demonstrates:
- Subclassing StrokePlugin
- Handling several event types
- Using on_startup/on_shutdown lifecycle
- Registering label-specific handlers via decorator
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path

from stroke_engine.plugins import StrokePlugin, PluginEvent

logger = logging.getLogger("stroke_engine.plugins.example_logger")


class EventLoggerPlugin(StrokePlugin):
    """Logs stroke events to a file with running statistics."""

    name = "event_logger"
    version = "1.0.0"
    description = "Logs classifications, taps and notices to a JSON-lines file"

    def __init__(self):
        super().__init__()
        self._counts: Counter = Counter()
        self._log_path: Path = Path("stroke_events.jsonl")
        self._log_file = None

        @self.handler("shape_c")
        def on_camera_shape(event: PluginEvent):
            logger.info("📷 C drawn (total: %d)", self._counts["shape_c"])

        @self.handler("letter_i")
        def on_letter_i(event: PluginEvent):
            logger.info("📸 I drawn (total: %d)", self._counts["letter_i"])

    def on_startup(self, context: dict):
        try:
            self._log_file = open(self._log_path, "a")
            logger.info("EventLogger: writing to %s", self._log_path)
        except OSError as e:
            logger.warning("EventLogger: could not open log file: %s", e)

    def on_shutdown(self):
        if self._log_file:
            self._log_file.close()
            self._log_file = None
        if self._counts:
            logger.info("EventLogger summary: %s", dict(self._counts))

    def on_classification(self, event: PluginEvent):
        self._counts[event.name] += 1
        self._write_log(event)
        super().on_classification(event)

    def on_tap(self, event: PluginEvent):
        self._counts["tap"] += 1
        self._write_log(event)

    def on_notice(self, event: PluginEvent):
        self._counts[f"notice:{event.name}"] += 1
        self._write_log(event)

    def _write_log(self, event: PluginEvent):
        if not self._log_file:
            return
        record = {
            "type": event.type,
            "name": event.name,
            "timestamp": event.timestamp,
            "data": {k: v for k, v in event.data.items() if isinstance(v, (str, int, float, bool))},
        }
        try:
            self._log_file.write(json.dumps(record) + "\n")
            self._log_file.flush()
        except OSError as e:
            logger.warning("EventLogger: write failed: %s", e)

    @property
    def counts(self) -> dict[str, int]:
        return dict(self._counts)
