"""Label-to-resource dispatch.

Maps a classified label to an ordered list of candidate resources (app
launch schemes, URLs) and opens the first one the platform reports as
available:

- Candidates are probed strictly one after another, in table order
- The first available candidate is opened and dispatch stops
- If none is available the fallback is opened, or a notice is shown
- A probe or open call that raises counts as "not available"

Probing and opening are injected async callables so the dispatcher never
touches a platform API itself. Routes load from YAML.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Optional

import yaml

from stroke_engine.classifier import Label

logger = logging.getLogger("stroke_engine.actions")

Probe = Callable[[str], Awaitable[bool]]
Opener = Callable[[str], Awaitable[None]]
Notifier = Callable[[str, str], None]


@dataclass
class ActionRoute:
    """Where a label leads: candidates in priority order plus a fallback."""
    candidates: list[str] = field(default_factory=list)
    fallback: Optional[str] = None
    fallback_notice: str = ""  # shown right before the fallback is opened

    def to_dict(self) -> dict:
        return {
            "candidates": list(self.candidates),
            "fallback": self.fallback,
            "fallback_notice": self.fallback_notice,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ActionRoute:
        return cls(
            candidates=list(data.get("candidates", [])),
            fallback=data.get("fallback"),
            fallback_notice=data.get("fallback_notice", ""),
        )


@dataclass(frozen=True)
class ActionRequest:
    """A resolved open request for one label."""
    label: Label
    candidates: tuple[str, ...]
    fallback: Optional[str]


def default_routes() -> dict[Label, ActionRoute]:
    """Reference route table."""
    browsers = ["googlechrome://", "chrome://", "https://www.google.com"]
    return {
        Label.SHAPE_C: ActionRoute(
            candidates=["camera://", "photos-redirect://", "instagram://camera", "snapchat://camera"],
            fallback="exp://camera",
            fallback_notice="Opening Default Camera",
        ),
        Label.SHAPE_B: ActionRoute(
            candidates=browsers,
            fallback="https://www.google.com",
            fallback_notice="Opening Default Browser",
        ),
        Label.LETTER_I: ActionRoute(candidates=["instagram://"]),
        Label.LETTER_S: ActionRoute(
            candidates=["spotify://"],
            fallback="https://open.spotify.com",
            fallback_notice="Opening Spotify Web Player",
        ),
        Label.LETTER_W: ActionRoute(
            candidates=["whatsapp://"],
            fallback="https://web.whatsapp.com",
            fallback_notice="Opening WhatsApp Web",
        ),
        Label.TAP: ActionRoute(candidates=["https://www.google.com"]),
    }


def routes_from_list(entries: list[dict]) -> dict[Label, ActionRoute]:
    """Parse ``[{label, candidates, fallback, fallback_notice}, ...]``."""
    routes: dict[Label, ActionRoute] = {}
    for entry in entries:
        try:
            label = Label(entry["label"])
        except ValueError:
            raise ValueError(f"Unknown label in route table: {entry['label']!r}") from None
        routes[label] = ActionRoute.from_dict(entry)
    return routes


def routes_to_list(routes: dict[Label, ActionRoute]) -> list[dict]:
    return [{"label": label.value, **route.to_dict()} for label, route in routes.items()]


def _log_notice(title: str, message: str):
    logger.warning("%s: %s", title, message)


class ActionDispatcher:
    """Opens the resource routed to a label.

    Usage:
        dispatcher = ActionDispatcher(probe=can_open, opener=open_url)
        opened = await dispatcher.dispatch(Label.SHAPE_C)

    When ``supersede`` is on, a dispatch that is still probing when a newer
    dispatch starts gives up without opening anything, and a dispatch that
    overlaps an open which then succeeds gives up as well. Overlapping
    gestures never open two resources.
    """

    def __init__(
        self,
        probe: Probe,
        opener: Opener,
        notifier: Optional[Notifier] = None,
        routes: Optional[dict[Label, ActionRoute]] = None,
        supersede: bool = True,
    ):
        self._probe = probe
        self._opener = opener
        self._notifier = notifier or _log_notice
        self._routes: dict[Label, ActionRoute] = dict(routes) if routes is not None else default_routes()
        self.supersede = supersede
        self._ticket = 0
        self._opens = 0
        self._open_lock: Optional[asyncio.Lock] = None
        self._lock_loop = None

    def set_route(self, label: Label, route: ActionRoute):
        self._routes[label] = route

    def request_for(self, label: Label) -> Optional[ActionRequest]:
        """Resolve the open request for a label, or None if unrouted."""
        route = self._routes.get(label)
        if route is None:
            return None
        return ActionRequest(label=label, candidates=tuple(route.candidates), fallback=route.fallback)

    async def dispatch(self, label: Label) -> Optional[str]:
        """Open the first available resource for ``label``.

        Returns the opened resource id, or None when nothing was opened.
        """
        request = self.request_for(label)
        if request is None:
            logger.debug("No route for %s", label.value)
            return None

        self._ticket += 1
        ticket = self._ticket
        opens_seen = self._opens

        for candidate in request.candidates:
            available = await self._can_open(candidate)
            if self._superseded(ticket, label):
                return None
            if not available:
                logger.debug("Candidate %s unavailable for %s", candidate, label.value)
                continue
            opened = await self._commit(ticket, label, candidate, opens_seen)
            if opened is None:
                return None
            if opened:
                logger.info("Opened %s for %s", candidate, label.value)
                return candidate

        if request.fallback:
            route = self._routes[label]
            opened = await self._commit(ticket, label, request.fallback, opens_seen, route.fallback_notice)
            if opened is None:
                return None
            if opened:
                logger.info("Opened fallback %s for %s", request.fallback, label.value)
                return request.fallback

        if self._superseded(ticket, label):
            return None
        self._notify("Notice", f"Unable to open {label.value}")
        return None

    async def tap(self) -> Optional[str]:
        """Single-tap shortcut: dispatch the fixed TAP route."""
        return await self.dispatch(Label.TAP)

    async def _commit(
        self, ticket: int, label: Label, resource_id: str, opens_seen: int, notice: str = ""
    ) -> Optional[bool]:
        """Open ``resource_id`` for the dispatch holding ``ticket``.

        Returns True when opened, False when the open failed, and None when
        the dispatch was abandoned. Opens are serialized: a dispatch gives up
        if a newer one has started, or if any open completed after it began.
        """
        if not self.supersede:
            if notice:
                self._notify("Notice", notice)
            return await self._open(resource_id)

        async with self._lock():
            if self._superseded(ticket, label):
                return None
            if self._opens != opens_seen:
                logger.info("Dispatch for %s dropped, an overlapping gesture already opened a resource", label.value)
                return None
            if notice:
                self._notify("Notice", notice)
            if not await self._open(resource_id):
                return False
            self._opens += 1
            return True

    def _lock(self) -> asyncio.Lock:
        # One lock per event loop; a dispatcher may outlive the loop it first ran on.
        loop = asyncio.get_running_loop()
        if self._open_lock is None or self._lock_loop is not loop:
            self._open_lock = asyncio.Lock()
            self._lock_loop = loop
        return self._open_lock

    def _superseded(self, ticket: int, label: Label) -> bool:
        if self.supersede and ticket != self._ticket:
            logger.info("Dispatch for %s superseded by a newer gesture", label.value)
            return True
        return False

    async def _can_open(self, resource_id: str) -> bool:
        try:
            return bool(await self._probe(resource_id))
        except Exception as e:
            logger.warning("Probe failed for %s: %s", resource_id, e)
            return False

    async def _open(self, resource_id: str) -> bool:
        try:
            await self._opener(resource_id)
            return True
        except Exception as e:
            logger.warning("Open failed for %s: %s", resource_id, e)
            return False

    def _notify(self, title: str, message: str):
        try:
            self._notifier(title, message)
        except Exception as e:
            logger.error("Notifier failed: %s", e)

    @classmethod
    def from_yaml(cls, path: str | Path, probe: Probe, opener: Opener, **kwargs) -> ActionDispatcher:
        """Build a dispatcher whose routes come from a YAML file's ``routes`` list."""
        with open(path) as f:
            config = yaml.safe_load(f) or {}
        return cls(probe, opener, routes=routes_from_list(config.get("routes", [])), **kwargs)

    def to_yaml(self, path: str | Path):
        """Save the current route table to YAML."""
        with open(path, "w") as f:
            yaml.dump({"routes": routes_to_list(self._routes)}, f, default_flow_style=False, sort_keys=False)

    @property
    def routes(self) -> dict[Label, ActionRoute]:
        return dict(self._routes)
