"""Geometric feature extraction for captured strokes.

Turns an ordered point sequence into a small, immutable FeatureVector:
bounding box, start/end displacement, path length, aspect ratio and point
density. Extraction is a pure O(n) scan and is recomputed from scratch on
every call; nothing is carried over between calls.

Usage:
    features = extract_features(stroke)
    print(features.vertical_displacement, features.bounding_width)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

import numpy as np

from stroke_engine.stroke import Point, Stroke


@dataclass(frozen=True)
class FeatureVector:
    """Derived geometric summary of a stroke."""
    point_count: int
    bounding_width: float
    bounding_height: float
    start_point: Point
    end_point: Point
    vertical_displacement: float
    horizontal_displacement: float
    path_length: float = 0.0

    @property
    def aspect_ratio(self) -> float:
        """Bounding width over bounding height (1.0 for a degenerate box)."""
        if self.bounding_height > 0:
            return self.bounding_width / self.bounding_height
        return float("inf") if self.bounding_width > 0 else 1.0

    @property
    def density(self) -> float:
        """Samples per unit of travelled distance."""
        if self.path_length <= 0:
            return 0.0
        return self.point_count / self.path_length

    def to_dict(self) -> dict:
        return {
            "point_count": self.point_count,
            "bounding_width": round(self.bounding_width, 3),
            "bounding_height": round(self.bounding_height, 3),
            "start_point": self.start_point.to_list(),
            "end_point": self.end_point.to_list(),
            "vertical_displacement": round(self.vertical_displacement, 3),
            "horizontal_displacement": round(self.horizontal_displacement, 3),
            "path_length": round(self.path_length, 3),
            "aspect_ratio": round(self.aspect_ratio, 3),
            "density": round(self.density, 5),
        }


def extract_features(points: Union[Stroke, Iterable]) -> FeatureVector:
    """Compute the FeatureVector of a point sequence.

    Args:
        points: A Stroke, or any iterable of Points / ``(x, y)`` pairs.

    Returns:
        FeatureVector. A single point yields zero displacements and a
        zero-sized bounding box.

    Raises:
        ValueError: If the sequence is empty.
    """
    stroke = points if isinstance(points, Stroke) else Stroke(points)
    if len(stroke) == 0:
        raise ValueError("Cannot extract features from an empty stroke")

    pts = stroke.to_array()
    start, end = stroke[0], stroke[-1]

    span = pts.max(axis=0) - pts.min(axis=0)

    if len(pts) >= 2:
        path_length = float(np.sum(np.linalg.norm(np.diff(pts, axis=0), axis=1)))
    else:
        path_length = 0.0

    return FeatureVector(
        point_count=len(stroke),
        bounding_width=float(span[0]),
        bounding_height=float(span[1]),
        start_point=start,
        end_point=end,
        vertical_displacement=abs(end.y - start.y),
        horizontal_displacement=abs(end.x - start.x),
        path_length=path_length,
    )
