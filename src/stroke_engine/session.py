"""Gesture session state machine.

Owns the point buffer for the current drag and drives its lifecycle:

    IDLE → RECORDING → CLASSIFIED → IDLE

Events that arrive in a state that cannot accept them are ignored (no state
change, no exception): input sources may deliver events out of order and the
session must stay consistent regardless.

The session is synchronous and has no side effects beyond its own state;
StrokeEngine wires it to dispatch, timers and plugins.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from stroke_engine.classifier import Label, RulePolicy, letter_policy
from stroke_engine.features import FeatureVector, extract_features
from stroke_engine.stroke import Point, Stroke

logger = logging.getLogger("stroke_engine.session")


class SessionStatus(Enum):
    IDLE = "idle"
    RECORDING = "recording"
    CLASSIFIED = "classified"


@dataclass
class Session:
    """State of the current gesture. Written only by StrokeSession."""
    stroke: Stroke = field(default_factory=Stroke)
    status: SessionStatus = SessionStatus.IDLE
    label: Optional[Label] = None
    preview: Optional[Label] = None
    features: Optional[FeatureVector] = None


@dataclass(frozen=True)
class ClassificationEvent:
    """Outcome of ending a stroke."""
    label: Label
    features: Optional[FeatureVector]
    point_count: int
    timestamp: float
    discarded: bool = False  # too short to classify; nothing is dispatched


class StrokeSession:
    """Buffers points for one drag at a time and classifies the result.

    Usage:
        session = StrokeSession(policy=letter_policy())
        session.start()
        for p in points:
            preview = session.update(p)
        event = session.end()
    """

    def __init__(self, policy: Optional[RulePolicy] = None, min_stroke_points: int = 2):
        if min_stroke_points < 1:
            raise ValueError(f"min_stroke_points must be >= 1, got {min_stroke_points}")
        self.policy = policy or letter_policy()
        self.min_stroke_points = min_stroke_points
        self._session = Session()

    def start(self) -> bool:
        """Begin a new stroke. Returns False if the call was ignored."""
        if self._session.status is SessionStatus.RECORDING:
            logger.debug("start() ignored: already recording")
            return False
        self._session = Session(status=SessionStatus.RECORDING)
        return True

    def update(self, point) -> Optional[Label]:
        """Append a point and return the preview label.

        The preview is None while the stroke is too short for the policy,
        and also when the call is ignored because no stroke is recording.
        """
        if self._session.status is not SessionStatus.RECORDING:
            logger.debug("update() ignored in state %s", self._session.status.value)
            return None

        self._session.stroke.append(Point.from_value(point))
        features = extract_features(self._session.stroke)
        self._session.features = features
        self._session.preview = self.policy.classify(features)
        return self._session.preview

    def end(self, timestamp: Optional[float] = None) -> Optional[ClassificationEvent]:
        """Finish the stroke.

        Returns None if the call was ignored. Strokes shorter than
        ``min_stroke_points`` are discarded: the session returns to IDLE and
        the event is UNRECOGNIZED with ``discarded=True``.
        """
        if self._session.status is not SessionStatus.RECORDING:
            logger.debug("end() ignored in state %s", self._session.status.value)
            return None

        now = timestamp if timestamp is not None else time.monotonic()
        count = len(self._session.stroke)

        if count < self.min_stroke_points:
            logger.debug("Discarding stroke with %d point(s)", count)
            self._session = Session()
            return ClassificationEvent(
                label=Label.UNRECOGNIZED,
                features=None,
                point_count=count,
                timestamp=now,
                discarded=True,
            )

        features = extract_features(self._session.stroke)
        label = self.policy.classify(features) or Label.UNRECOGNIZED

        self._session.features = features
        self._session.label = label
        self._session.preview = label
        self._session.status = SessionStatus.CLASSIFIED
        logger.info("Stroke classified as %s (%d points)", label.value, count)

        return ClassificationEvent(label=label, features=features, point_count=count, timestamp=now)

    def reset(self) -> bool:
        """Return to IDLE from CLASSIFIED, dropping the stroke and label."""
        if self._session.status is not SessionStatus.CLASSIFIED:
            logger.debug("reset() ignored in state %s", self._session.status.value)
            return False
        self._session = Session()
        return True

    @property
    def status(self) -> SessionStatus:
        return self._session.status

    @property
    def stroke(self) -> Stroke:
        return self._session.stroke

    @property
    def label(self) -> Optional[Label]:
        return self._session.label

    @property
    def preview(self) -> Optional[Label]:
        return self._session.preview

    @property
    def features(self) -> Optional[FeatureVector]:
        return self._session.features

    @property
    def point_count(self) -> int:
        return len(self._session.stroke)
