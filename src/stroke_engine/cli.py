"""StrokeEngine CLI.

Usage:
    stroke-engine classify      — Classify recorded strokes offline
    stroke-engine replay        — Replay a recording through the full engine
    stroke-engine routes        — Show the label → resource table
    stroke-engine init-config   — Write the default YAML configuration
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer

from stroke_engine.classifier import build_policy
from stroke_engine.config import EngineConfig
from stroke_engine.features import extract_features

app = typer.Typer(
    name="stroke-engine",
    help="✍️ Real-time stroke classification and action dispatch.",
    add_completion=False,
)


def _load_config(config: Optional[str]) -> EngineConfig:
    if not config:
        return EngineConfig()
    path = Path(config)
    if not path.exists():
        typer.echo(f"❌ Config not found: {config}", err=True)
        raise typer.Exit(1)
    try:
        return EngineConfig.from_yaml(path)
    except ValueError as e:
        typer.echo(f"❌ Invalid config: {e}", err=True)
        raise typer.Exit(1)


def _load_recording(recording: str):
    from stroke_engine.recorder import StrokePlayer

    path = Path(recording)
    if not path.exists():
        typer.echo(f"❌ Recording not found: {recording}", err=True)
        raise typer.Exit(1)
    return StrokePlayer.load(path)


def _setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


@app.command()
def classify(
    recording: str = typer.Argument(..., help="Path to recording (.json)"),
    config: Optional[str] = typer.Option(None, help="Path to engine YAML config"),
    policy: Optional[str] = typer.Option(None, help="Classifier policy: letter or shape"),
    viewport_height: Optional[float] = typer.Option(None, help="Viewport height for the letter policy"),
    verbose: bool = typer.Option(False, "-v", help="Print feature vectors"),
):
    """Classify every stroke in a recording without dispatching anything."""
    cfg = _load_config(config)
    if policy:
        cfg.classifier.policy = policy
    if viewport_height is not None:
        cfg.classifier.viewport_height = viewport_height

    try:
        rule_policy = build_policy(cfg.classifier)
    except ValueError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    player = _load_recording(recording)
    typer.echo(f"📂 {player.stroke_count} gestures, policy '{rule_policy.name}'")

    for i, rec in enumerate(player.play()):
        if rec.tap:
            typer.echo(f"   #{i}: tap")
            continue
        if len(rec.points) < cfg.min_stroke_points:
            typer.echo(f"   #{i}: {len(rec.points)} point(s) — too short, discarded")
            continue

        features = extract_features(rec.points)
        label = rule_policy.classify(features)
        rule = rule_policy.match(features)
        name = label.value if label else "unrecognized"
        rule_name = rule.name if rule and label else "-"
        line = f"   #{i}: {name:14s} rule={rule_name:14s} points={features.point_count}"
        if rec.label and rec.label != name:
            line += f"  (recorded: {rec.label})"
        typer.echo(line)
        if verbose:
            for key, value in features.to_dict().items():
                typer.echo(f"        {key:24s} {value}")


@app.command()
def replay(
    recording: str = typer.Argument(..., help="Path to recording (.json)"),
    config: Optional[str] = typer.Option(None, help="Path to engine YAML config"),
    available: Optional[List[str]] = typer.Option(
        None, "--available", help="Resource ids the simulated probe reports as openable"
    ),
    launch: bool = typer.Option(False, help="Actually open URLs with the system browser"),
    realtime: bool = typer.Option(False, help="Replay with recorded timing"),
    plugin_dir: Optional[str] = typer.Option(None, "--plugins", help="Directory of plugin .py files to load"),
    log_level: str = typer.Option("warning", help="Log level"),
):
    """Replay a recording through the engine with a simulated platform."""
    import webbrowser

    from stroke_engine.engine import StrokeEngine
    from stroke_engine.plugins import PluginEvent, StrokePlugin

    _setup_logging(log_level)
    cfg = _load_config(config)
    player = _load_recording(recording)
    openable = set(available or [])
    if plugin_dir and not Path(plugin_dir).is_dir():
        typer.echo(f"❌ Plugin directory not found: {plugin_dir}", err=True)
        raise typer.Exit(1)

    async def probe(resource_id: str) -> bool:
        if openable:
            return resource_id in openable
        return resource_id.startswith(("http://", "https://"))

    async def opener(resource_id: str) -> None:
        typer.echo(f"   🚀 open {resource_id}")
        if launch:
            await asyncio.to_thread(webbrowser.open, resource_id)

    class EchoPlugin(StrokePlugin):
        name = "echo"

        def on_classification(self, event: PluginEvent):
            typer.echo(f"   ✍️  {event.name}")

        def on_tap(self, event: PluginEvent):
            typer.echo("   👆 tap")

        def on_notice(self, event: PluginEvent):
            typer.echo(f"   💬 {event.name}: {event.data.get('message', '')}")

    async def run():
        engine = StrokeEngine.create(probe, opener, config=cfg)
        engine.plugins.register(EchoPlugin())
        if plugin_dir:
            loaded = engine.plugins.load_directory(plugin_dir)
            typer.echo(f"🔌 Loaded {loaded} plugin(s) from {plugin_dir}")
        engine.startup()
        with engine:
            await player.replay(engine, realtime=realtime)
        return engine.stats

    typer.echo(f"▶️  Replaying {Path(recording).name} ({player.stroke_count} gestures)")
    stats = asyncio.run(run())
    typer.echo(f"\n✅ Replay complete. {stats.strokes} strokes, {stats.taps} taps, {stats.discarded} discarded.")


@app.command()
def routes(
    config: Optional[str] = typer.Option(None, help="Path to engine YAML config"),
):
    """Show the label → resource route table."""
    cfg = _load_config(config)
    for label, route in cfg.routes.items():
        typer.echo(f"{label.value}:")
        for candidate in route.candidates:
            typer.echo(f"   → {candidate}")
        if route.fallback:
            typer.echo(f"   ↪ fallback {route.fallback}")


@app.command("init-config")
def init_config(
    path: str = typer.Argument("stroke_engine.yml", help="Where to write the config"),
    force: bool = typer.Option(False, help="Overwrite an existing file"),
):
    """Write the default configuration as YAML."""
    target = Path(path)
    if target.exists() and not force:
        typer.echo(f"❌ {path} already exists (use --force to overwrite)", err=True)
        raise typer.Exit(1)
    EngineConfig().to_yaml(target)
    typer.echo(f"💾 Wrote default config to {path}")


def main():
    app()


if __name__ == "__main__":
    main()
