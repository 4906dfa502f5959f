"""Point buffer for a single drag gesture.

A Stroke is the ordered list of pointer samples captured between the start
and the end of one drag. Points are appended in capture order and are never
reordered, deduplicated or removed; a session that resets gets a new Stroke.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

import numpy as np


@dataclass(frozen=True)
class Point:
    """A single captured pointer sample."""
    x: float
    y: float

    def to_list(self) -> list[float]:
        return [self.x, self.y]

    @classmethod
    def from_value(cls, value) -> Point:
        """Build a Point from a Point, an ``(x, y)`` pair or an ``{x, y}`` dict."""
        if isinstance(value, Point):
            return value
        if isinstance(value, dict):
            return cls(float(value["x"]), float(value["y"]))
        x, y = value
        return cls(float(x), float(y))


class Stroke:
    """Append-only sequence of points for one gesture session."""

    def __init__(self, points: Iterable = ()):
        self._points: list[Point] = [Point.from_value(p) for p in points]

    def append(self, point: Point):
        self._points.append(point)

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[Point]:
        return iter(self._points)

    def __getitem__(self, index: int) -> Point:
        return self._points[index]

    def __bool__(self) -> bool:
        return bool(self._points)

    def __repr__(self) -> str:
        return f"Stroke(points={len(self._points)})"

    @property
    def points(self) -> tuple[Point, ...]:
        """Read-only snapshot of the captured points."""
        return tuple(self._points)

    def to_array(self) -> np.ndarray:
        """Points as a float64 array of shape (N, 2)."""
        if not self._points:
            return np.empty((0, 2), dtype=np.float64)
        return np.array([(p.x, p.y) for p in self._points], dtype=np.float64)

    def to_path(self, precision: int = 1) -> str:
        """SVG path data for renderers: ``M x y L x y ...``."""
        parts = []
        for i, p in enumerate(self._points):
            cmd = "M" if i == 0 else "L"
            parts.append(f"{cmd}{round(p.x, precision)} {round(p.y, precision)}")
        return " ".join(parts)

    def to_list(self) -> list[list[float]]:
        return [p.to_list() for p in self._points]
