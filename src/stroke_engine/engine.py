"""End-to-end stroke engine: pointer events → classification → dispatch.

The engine is the input collaborator's entry point. It feeds pointer events
into a StrokeSession, notifies plugins (renderers, haptics, notices), starts
dispatch for finished strokes on the running asyncio loop without awaiting
it, and resets the session after a display-hold interval.

Usage:
    async def main():
        engine = StrokeEngine(dispatcher=ActionDispatcher(probe, opener))
        engine.on_start()
        for x, y in samples:
            engine.on_update((x, y))
        engine.on_end()
        await engine.drain()

Pointer handlers are synchronous; ``on_end`` and ``on_tap`` must be called
from inside a running event loop when a dispatcher is attached.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from stroke_engine.actions import ActionDispatcher, Opener, Probe
from stroke_engine.classifier import Label, RulePolicy, build_policy
from stroke_engine.config import EngineConfig
from stroke_engine.plugins import PluginEvent, PluginManager
from stroke_engine.session import ClassificationEvent, SessionStatus, StrokeSession

logger = logging.getLogger("stroke_engine.engine")


class FeedbackPulse(Enum):
    IMPACT_LIGHT = "impact_light"
    IMPACT_MEDIUM = "impact_medium"
    SUCCESS = "success"


@dataclass
class EngineStats:
    """Running counters."""
    strokes: int
    discarded: int
    taps: int
    pending_dispatches: int
    labels: dict = field(default_factory=dict)


class StrokeEngine:
    """Wires a StrokeSession to dispatch, the hold timer and plugins."""

    def __init__(
        self,
        dispatcher: Optional[ActionDispatcher] = None,
        config: Optional[EngineConfig] = None,
        policy: Optional[RulePolicy] = None,
        plugins: Optional[PluginManager] = None,
    ):
        self.config = config or EngineConfig()
        self.session = StrokeSession(
            policy=policy or build_policy(self.config.classifier),
            min_stroke_points=self.config.min_stroke_points,
        )
        self.dispatcher = dispatcher
        self.plugins = plugins or PluginManager()

        self._callbacks: list[Callable[[ClassificationEvent], None]] = []
        self._tasks: set[asyncio.Task] = set()
        self._hold_handle: Optional[asyncio.TimerHandle] = None
        self._label_counts: Counter = Counter()
        self._strokes = 0
        self._discarded = 0
        self._taps = 0
        self._closed = False

    @classmethod
    def create(
        cls,
        probe: Probe,
        opener: Opener,
        config: Optional[EngineConfig] = None,
        plugins: Optional[PluginManager] = None,
        supersede: bool = True,
    ) -> StrokeEngine:
        """Build an engine whose dispatcher uses the config's route table
        and reports notices through the engine's plugins."""
        engine = cls(config=config, plugins=plugins)
        engine.dispatcher = ActionDispatcher(
            probe,
            opener,
            notifier=engine.notify,
            routes=engine.config.routes,
            supersede=supersede,
        )
        return engine

    def on_classification(self, callback: Callable[[ClassificationEvent], None]):
        """Register a callback for final (non-discarded) classifications."""
        self._callbacks.append(callback)

    # --- Input collaborator interface ---

    def on_start(self) -> bool:
        if not self.session.start():
            return False
        self._cancel_hold()
        self._emit("start", "start")
        return True

    def on_update(self, point) -> Optional[Label]:
        recording = self.session.status is SessionStatus.RECORDING
        preview = self.session.update(point)
        if not recording:
            return None
        self._emit("update", preview.value if preview else "", {
            "path": self.session.stroke.to_path(),
            "preview": preview.value if preview else None,
            "point": self.session.stroke[-1].to_list(),
            "point_count": self.session.point_count,
        })
        return preview

    def on_end(self) -> Optional[ClassificationEvent]:
        event = self.session.end()
        if event is None:
            return None

        if event.discarded:
            self._discarded += 1
            self._emit("reset", "discarded", {"point_count": event.point_count})
            return event

        self._strokes += 1
        self._label_counts[event.label.value] += 1

        self._pulse(FeedbackPulse.IMPACT_MEDIUM)
        self._emit("classification", event.label.value, {
            "features": event.features.to_dict() if event.features else {},
            "path": self.session.stroke.to_path(),
        })
        for cb in self._callbacks:
            try:
                cb(event)
            except Exception as e:
                logger.error("Classification callback error: %s", e)

        if event.label.recognized:
            self._pulse(FeedbackPulse.SUCCESS)
        if self.dispatcher is not None:
            self._spawn(self.dispatcher.dispatch(event.label))

        self._schedule_hold()
        return event

    def on_tap(self):
        """Single tap: fixed TAP label, no classification, session untouched."""
        self._taps += 1
        self._pulse(FeedbackPulse.IMPACT_LIGHT)
        self._emit("tap", Label.TAP.value)
        if self.dispatcher is not None:
            self._spawn(self.dispatcher.tap())

    # --- Presentation geometry ---

    def set_viewport_height(self, height: float):
        """Update the viewport height used by the letter policy.

        Applies to the engine config and, when the session runs a policy
        built from a different config, to that policy's config too.
        """
        height = float(height)
        self.config.classifier.viewport_height = height
        policy_config = self.session.policy.config
        if policy_config is not None:
            policy_config.viewport_height = height

    # --- Async plumbing ---

    def _spawn(self, coro):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.error("No running event loop, dispatch skipped")
            return
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Dispatch task failed: %s", exc)

    def _schedule_hold(self):
        self._cancel_hold()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to own the timer; the next start() clears the stroke.
            logger.debug("No running loop, display hold not scheduled")
            return
        self._hold_handle = loop.call_later(self.config.hold_seconds, self._hold_elapsed)

    def _cancel_hold(self):
        if self._hold_handle is not None:
            self._hold_handle.cancel()
            self._hold_handle = None

    def _hold_elapsed(self):
        self._hold_handle = None
        if self.session.reset():
            self._emit("reset", "hold_elapsed")

    async def drain(self):
        """Wait for all in-flight dispatches to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # --- Plugin plumbing ---

    def _emit(self, event_type: str, name: str, data: Optional[dict] = None):
        self.plugins.dispatch(event_type, PluginEvent(
            type=event_type,
            name=name,
            data=data or {},
            timestamp=time.monotonic(),
        ))

    def _pulse(self, pulse: FeedbackPulse):
        self._emit("feedback", pulse.value)

    def notify(self, title: str, message: str):
        """Notifier that forwards dispatcher notices to plugins."""
        logger.warning("%s: %s", title, message)
        self._emit("notice", title, {"message": message})

    @property
    def pending_dispatches(self) -> int:
        return len(self._tasks)

    @property
    def stats(self) -> EngineStats:
        return EngineStats(
            strokes=self._strokes,
            discarded=self._discarded,
            taps=self._taps,
            pending_dispatches=len(self._tasks),
            labels=dict(self._label_counts),
        )

    def startup(self):
        """Run every plugin's ``on_startup`` with this engine as context."""
        self.plugins.startup({"engine": self, "config": self.config})

    def close(self):
        """Cancel the hold timer and shut plugins down.

        In-flight dispatches are left to finish. Safe to call twice.
        """
        self._cancel_hold()
        if self._closed:
            return
        self._closed = True
        self.plugins.shutdown()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
