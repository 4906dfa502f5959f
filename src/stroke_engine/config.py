"""StrokeEngine configuration.

All tunables live in one YAML file:

    classifier:
      policy: letter
      bbox_equality_threshold: 50.0
      viewport_height: 800.0
    session:
      hold_seconds: 1.0
      min_stroke_points: 2
    routes:
      - label: shape_c
        candidates: ["camera://", "photos-redirect://"]
        fallback: "exp://camera"
        fallback_notice: "Opening Default Camera"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from stroke_engine.actions import ActionRoute, default_routes, routes_from_list, routes_to_list
from stroke_engine.classifier import ClassifierConfig, Label


@dataclass
class EngineConfig:
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    hold_seconds: float = 1.0  # how long a classified stroke stays on screen
    min_stroke_points: int = 2
    routes: dict[Label, ActionRoute] = field(default_factory=default_routes)

    def to_dict(self) -> dict:
        return {
            "classifier": self.classifier.to_dict(),
            "session": {
                "hold_seconds": self.hold_seconds,
                "min_stroke_points": self.min_stroke_points,
            },
            "routes": routes_to_list(self.routes),
        }

    @classmethod
    def from_dict(cls, data: dict) -> EngineConfig:
        session = data.get("session", {}) or {}
        config = cls(
            classifier=ClassifierConfig.from_dict(data.get("classifier", {}) or {}),
            hold_seconds=float(session.get("hold_seconds", 1.0)),
            min_stroke_points=int(session.get("min_stroke_points", 2)),
        )
        if "routes" in data:
            config.routes = routes_from_list(data["routes"] or [])
        if config.hold_seconds < 0:
            raise ValueError(f"hold_seconds must be >= 0, got {config.hold_seconds}")
        if config.min_stroke_points < 1:
            raise ValueError(f"min_stroke_points must be >= 1, got {config.min_stroke_points}")
        return config

    @classmethod
    def from_yaml(cls, path: str | Path) -> EngineConfig:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    def to_yaml(self, path: str | Path):
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
