"""Stroke recording and replay.

Record real drawing sessions for:
- Reproducible tests built from literal coordinate sequences
- Offline tuning of classifier thresholds
- Demo replays through the full engine

The recorder is a plugin, so attaching it to an engine captures every
stroke and tap the engine sees:

    recorder = StrokeRecorder()
    engine.plugins.register(recorder)
    recorder.start()
    # ... draw ...
    recorder.save("session.json")
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Iterator, Optional

from stroke_engine.plugins import PluginEvent, StrokePlugin
from stroke_engine.stroke import Point, Stroke

if TYPE_CHECKING:
    from stroke_engine.engine import StrokeEngine

logger = logging.getLogger("stroke_engine.recorder")

FORMAT_VERSION = 1


@dataclass
class RecordedStroke:
    """One recorded gesture: a drag with its points, or a tap."""
    timestamp: float  # seconds from recording start
    points: list[list[float]] = field(default_factory=list)
    label: Optional[str] = None  # label value the engine produced, if any
    tap: bool = False

    @property
    def stroke(self) -> Stroke:
        return Stroke(self.points)


class StrokeRecorder(StrokePlugin):
    """Captures strokes and taps to a JSON file."""

    name = "recorder"
    description = "Records strokes and taps for replay"

    def __init__(self):
        super().__init__()
        self._strokes: list[RecordedStroke] = []
        self._start_time: Optional[float] = None
        self._recording = False
        self._current: Optional[RecordedStroke] = None

    def start(self):
        """Begin a new recording session."""
        self._strokes = []
        self._current = None
        self._start_time = time.monotonic()
        self._recording = True

    def stop(self) -> int:
        """Stop recording. Returns number of gestures captured."""
        self._recording = False
        self._current = None
        return len(self._strokes)

    def _elapsed(self) -> float:
        return time.monotonic() - (self._start_time or time.monotonic())

    def add_stroke(self, points: Iterable, label: Optional[str] = None):
        """Add a complete stroke directly."""
        if not self._recording:
            return
        pts = [Point.from_value(p).to_list() for p in points]
        self._strokes.append(RecordedStroke(timestamp=self._elapsed(), points=pts, label=label))

    def add_tap(self):
        if not self._recording:
            return
        self._strokes.append(RecordedStroke(timestamp=self._elapsed(), label="tap", tap=True))

    # --- Plugin hooks ---

    def on_start(self, event: PluginEvent):
        if self._recording:
            self._current = RecordedStroke(timestamp=self._elapsed())

    def on_update(self, event: PluginEvent):
        if self._current is not None and "point" in event.data:
            self._current.points.append(list(event.data["point"]))

    def on_classification(self, event: PluginEvent):
        if self._current is not None:
            self._current.label = event.name
            self._strokes.append(self._current)
            self._current = None
        super().on_classification(event)

    def on_reset(self, event: PluginEvent):
        # Strokes too short to classify are kept, unlabeled.
        if self._current is not None and event.name == "discarded":
            self._strokes.append(self._current)
            self._current = None

    def on_tap(self, event: PluginEvent):
        self.add_tap()

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def stroke_count(self) -> int:
        return len(self._strokes)

    @property
    def strokes(self) -> list[RecordedStroke]:
        return list(self._strokes)

    def save(self, path: str | Path):
        """Save recording to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "version": FORMAT_VERSION,
            "stroke_count": len(self._strokes),
            "strokes": [asdict(s) for s in self._strokes],
        }

        with open(path, "w") as f:
            json.dump(data, f)
        logger.info("Saved %d gestures to %s", len(self._strokes), path)


class StrokePlayer:
    """Replays recorded strokes.

    Usage:
        player = StrokePlayer.load("session.json")
        for rec in player.play():
            label = policy.classify(extract_features(rec.stroke))

        # Or drive a full engine:
        await player.replay(engine)
    """

    def __init__(self, strokes: list[RecordedStroke]):
        self._strokes = strokes

    @classmethod
    def load(cls, path: str | Path) -> StrokePlayer:
        """Load a recording from a JSON file.

        Accepts the recorder's format, or a bare list of point lists for
        hand-written fixtures.
        """
        with open(path) as f:
            data = json.load(f)

        if isinstance(data, list):
            return cls([RecordedStroke(timestamp=float(i), points=pts) for i, pts in enumerate(data)])

        version = data.get("version", FORMAT_VERSION)
        if version > FORMAT_VERSION:
            raise ValueError(f"Unsupported recording version: {version}")

        strokes = [
            RecordedStroke(
                timestamp=s.get("timestamp", 0.0),
                points=s.get("points", []),
                label=s.get("label"),
                tap=s.get("tap", False),
            )
            for s in data["strokes"]
        ]
        return cls(strokes)

    @property
    def stroke_count(self) -> int:
        return len(self._strokes)

    def play(self) -> Iterator[RecordedStroke]:
        yield from self._strokes

    async def replay(self, engine: StrokeEngine, realtime: bool = False, speed: float = 1.0):
        """Feed every recorded gesture through an engine.

        Args:
            engine: Target engine; must be driven from this event loop.
            realtime: Wait between gestures according to recorded timestamps.
            speed: Playback speed multiplier when ``realtime`` is set.
        """
        start = time.monotonic()
        for rec in self._strokes:
            if realtime:
                target = rec.timestamp / speed
                elapsed = time.monotonic() - start
                if target > elapsed:
                    await asyncio.sleep(target - elapsed)

            if rec.tap:
                engine.on_tap()
                continue

            engine.on_start()
            for p in rec.points:
                engine.on_update(p)
            engine.on_end()

        await engine.drain()
