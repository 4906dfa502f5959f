"""Stress tests for StrokeEngine."""

import asyncio

import numpy as np

from stroke_engine.classifier import Label, letter_policy, shape_policy
from stroke_engine.engine import StrokeEngine
from stroke_engine.features import extract_features
from stroke_engine.session import SessionStatus


class TestHighVolume:
    def test_random_strokes_always_classify(self):
        """Every random stroke gets a label from the closed set."""
        rng = np.random.default_rng(42)
        engine = StrokeEngine()
        for _ in range(1000):
            n = int(rng.integers(2, 60))
            pts = rng.random((n, 2)) * 800
            engine.on_start()
            for x, y in pts:
                engine.on_update((float(x), float(y)))
            event = engine.on_end()
            assert isinstance(event.label, Label)
        assert engine.stats.strokes == 1000
        assert engine.session.status is SessionStatus.CLASSIFIED

    def test_policies_agree_with_repeated_extraction(self):
        rng = np.random.default_rng(7)
        letters, shapes = letter_policy(), shape_policy()
        for _ in range(500):
            pts = [tuple(p) for p in rng.standard_normal((30, 2)) * 200]
            f1, f2 = extract_features(pts), extract_features(pts)
            assert letters.classify(f1) == letters.classify(f2)
            assert shapes.classify(f1) == shapes.classify(f2)

    def test_burst_of_taps_opens_once(self):
        opened = []

        async def probe(resource_id):
            await asyncio.sleep(0.001)
            return True

        async def opener(resource_id):
            opened.append(resource_id)

        async def run():
            engine = StrokeEngine.create(probe, opener)
            for _ in range(200):
                engine.on_tap()
            await engine.drain()
            return engine.pending_dispatches

        assert asyncio.run(run()) == 0
        assert opened == ["https://www.google.com"]
