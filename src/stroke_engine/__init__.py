"""StrokeEngine - Real-time stroke classification and action dispatch."""

__version__ = "0.1.0"

from stroke_engine.stroke import Point, Stroke
from stroke_engine.features import FeatureVector, extract_features
from stroke_engine.classifier import (
    ClassifierConfig,
    Label,
    Rule,
    RulePolicy,
    build_policy,
    letter_policy,
    shape_policy,
)
from stroke_engine.actions import ActionDispatcher, ActionRequest, ActionRoute, default_routes
from stroke_engine.session import ClassificationEvent, Session, SessionStatus, StrokeSession
from stroke_engine.config import EngineConfig
from stroke_engine.plugins import StrokePlugin, PluginManager, PluginEvent
from stroke_engine.engine import StrokeEngine, FeedbackPulse, EngineStats
from stroke_engine.recorder import StrokeRecorder, StrokePlayer, RecordedStroke
