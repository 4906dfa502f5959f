"""Rule-based stroke classification.

A policy is an ordered decision table of ``(predicate, label)`` rules over a
FeatureVector. Rules are evaluated in order and the first one that matches
wins; rule order is the tie-break. When no rule matches the policy returns
its default label (UNRECOGNIZED). A stroke with fewer points than the
policy's ``min_points`` yields None, meaning "no classification yet".

Two policies ship:
- shape:  closed-shape detector (B vs C) from bounding-box squareness
- letter: I / S / W letters with C as the closed-curve fallback
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from stroke_engine.features import FeatureVector

logger = logging.getLogger("stroke_engine.classifier")


class Label(Enum):
    UNRECOGNIZED = "unrecognized"
    SHAPE_B = "shape_b"
    SHAPE_C = "shape_c"
    LETTER_I = "letter_i"
    LETTER_S = "letter_s"
    LETTER_W = "letter_w"
    TAP = "tap"

    @property
    def recognized(self) -> bool:
        return self is not Label.UNRECOGNIZED


@dataclass
class ClassifierConfig:
    """Tunable thresholds for the built-in policies.

    Distances are in the same unit as the pointer samples.
    """
    policy: str = "letter"  # "letter" or "shape"
    bbox_equality_threshold: float = 50.0
    dense_min_points: int = 20
    letter_min_points: int = 10
    aspect_multiplier: float = 1.5
    s_min_points: int = 30
    w_min_points: int = 20
    viewport_height: float = 800.0  # supplied by the presentation layer
    viewport_fraction: float = 0.3

    def to_dict(self) -> dict:
        return {
            "policy": self.policy,
            "bbox_equality_threshold": self.bbox_equality_threshold,
            "dense_min_points": self.dense_min_points,
            "letter_min_points": self.letter_min_points,
            "aspect_multiplier": self.aspect_multiplier,
            "s_min_points": self.s_min_points,
            "w_min_points": self.w_min_points,
            "viewport_height": self.viewport_height,
            "viewport_fraction": self.viewport_fraction,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ClassifierConfig:
        known = cls.__dataclass_fields__
        unknown = set(data) - set(known)
        if unknown:
            raise ValueError(f"Unknown classifier settings: {sorted(unknown)}")
        return cls(**data)


@dataclass(frozen=True)
class Rule:
    """One row of a decision table."""
    name: str
    predicate: Callable[[FeatureVector], bool]
    label: Label


@dataclass
class RulePolicy:
    """Ordered decision table; first matching rule wins."""
    name: str
    rules: list[Rule] = field(default_factory=list)
    min_points: int = 1
    default: Label = Label.UNRECOGNIZED
    config: Optional[ClassifierConfig] = None  # thresholds the predicates read

    def match(self, features: FeatureVector) -> Optional[Rule]:
        """Return the first rule whose predicate holds, or None."""
        for rule in self.rules:
            if rule.predicate(features):
                return rule
        return None

    def classify(self, features: FeatureVector) -> Optional[Label]:
        """Classify a feature vector.

        Returns None when the stroke is still too short for this policy.
        """
        if features.point_count < self.min_points:
            return None
        rule = self.match(features)
        if rule is None:
            return self.default
        logger.debug("Policy %s matched rule %s → %s", self.name, rule.name, rule.label.value)
        return rule.label

    @property
    def labels(self) -> list[Label]:
        """Labels this policy can produce, in rule order."""
        seen: list[Label] = []
        for label in [r.label for r in self.rules] + [self.default]:
            if label not in seen:
                seen.append(label)
        return seen


def shape_policy(config: Optional[ClassifierConfig] = None) -> RulePolicy:
    """Coarse B/C detector: a roughly square bounding box is a closed shape."""
    cfg = config or ClassifierConfig()

    def squarish(f: FeatureVector) -> bool:
        return abs(f.bounding_width - f.bounding_height) < cfg.bbox_equality_threshold

    return RulePolicy(
        name="shape",
        rules=[
            Rule("dense_square", lambda f: squarish(f) and f.point_count > cfg.dense_min_points, Label.SHAPE_C),
            Rule("sparse_square", squarish, Label.SHAPE_B),
        ],
        min_points=1,
        config=cfg,
    )


def letter_policy(config: Optional[ClassifierConfig] = None) -> RulePolicy:
    """Letter detector for I, S and W, falling back to C (closed curve).

    Predicates read the config at call time, so a viewport resize applied to
    the config takes effect on the next classification.
    """
    cfg = config or ClassifierConfig()

    return RulePolicy(
        name="letter",
        rules=[
            Rule(
                "vertical_line",
                lambda f: f.vertical_displacement > f.horizontal_displacement * cfg.aspect_multiplier,
                Label.LETTER_I,
            ),
            Rule(
                "s_curve",
                lambda f: (
                    f.point_count > cfg.s_min_points
                    and f.vertical_displacement < cfg.viewport_height * cfg.viewport_fraction
                ),
                Label.LETTER_S,
            ),
            Rule(
                "zigzag",
                lambda f: (
                    f.point_count > cfg.w_min_points
                    and f.horizontal_displacement > f.vertical_displacement
                ),
                Label.LETTER_W,
            ),
            Rule("closed_curve", lambda f: True, Label.SHAPE_C),
        ],
        min_points=cfg.letter_min_points,
        config=cfg,
    )


POLICIES: dict[str, Callable[[Optional[ClassifierConfig]], RulePolicy]] = {
    "shape": shape_policy,
    "letter": letter_policy,
}


def build_policy(config: Optional[ClassifierConfig] = None) -> RulePolicy:
    """Build the policy named by ``config.policy``."""
    cfg = config or ClassifierConfig()
    factory = POLICIES.get(cfg.policy)
    if factory is None:
        raise ValueError(f"Unknown classifier policy: {cfg.policy!r} (expected one of {sorted(POLICIES)})")
    return factory(cfg)
