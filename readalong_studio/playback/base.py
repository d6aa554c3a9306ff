"""Audio engine capability surface consumed by the core.

WHY: The core never decodes or plays audio. It needs a handful of
capabilities from whatever engine the host embeds (a browser waveform
widget, a desktop player, a headless clock in tests): transport
control, duration/position, a marker list, and an event stream. This
module pins that surface down so the core can be written against it.

HOW: BaseAudioBackend is an ABC with the transport and marker methods
abstract, and a small built-in event hub (on / off / emit) that engines
call when something happens. Marker is the mutable handle the engine
hands back from add_marker().

RULES:
- Times crossing this interface are float seconds
- Events: ready, error, position_update(t), seek(fraction),
  marker_dropped(marker), pause, finish
- Marker.id is assigned by the caller after add_marker() (word id);
  the engine itself never interprets it
- Handlers run synchronously, in subscription order
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

EVENTS = frozenset({
    "ready",
    "error",
    "position_update",
    "seek",
    "marker_dropped",
    "pause",
    "finish",
})


@dataclass(eq=False)
class Marker:
    """A marker on the audio timeline (the engine side of an anchor).

    Attributes:
        time: Position in seconds; changes when the marker is dragged.
        label: Display label.
        color: Marker color (hex string).
        draggable: Whether the operator may drag it.
        id: Correlation id, set by the anchor editor to the word id.
        text: The anchored word's text, used in ordering messages.
    """

    time: float
    label: str = ""
    color: str = ""
    draggable: bool = True
    id: Optional[str] = None
    text: str = ""


class BaseAudioBackend(ABC):
    """Abstract base for audio engines driving a read-along session."""

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Callable[..., Any]]] = {name: [] for name in EVENTS}

    # -- events -------------------------------------------------------------

    def on(self, event: str, handler: Callable[..., Any]) -> Callable[[], None]:
        """Subscribe to an engine event; returns an unsubscribe callable."""
        if event not in EVENTS:
            raise ValueError("Unknown audio event: {}".format(event))
        self._handlers[event].append(handler)
        return lambda: self.off(event, handler)

    def off(self, event: str, handler: Callable[..., Any]) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, *args: Any) -> None:
        for handler in list(self._handlers[event]):
            handler(*args)

    # -- transport ----------------------------------------------------------

    @abstractmethod
    def play(self, start: Optional[float] = None, end: Optional[float] = None) -> None:
        """Start playback, optionally from start and stopping at end."""

    @abstractmethod
    def pause(self) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop playback and rewind to the start."""

    @abstractmethod
    def seek(self, time: float) -> None:
        ...

    @abstractmethod
    def get_duration(self) -> float:
        ...

    @abstractmethod
    def get_current_time(self) -> float:
        ...

    @abstractmethod
    def is_playing(self) -> bool:
        ...

    # -- markers ------------------------------------------------------------

    @abstractmethod
    def add_marker(
        self,
        time: float,
        label: str = "",
        color: str = "",
        draggable: bool = True,
    ) -> Marker:
        ...

    @abstractmethod
    def remove_marker(self, marker: Marker) -> None:
        ...

    @abstractmethod
    def list_markers(self) -> List[Marker]:
        """Operator markers, in insertion order."""

    def find_marker(self, marker_id: str) -> Optional[Marker]:
        for marker in self.list_markers():
            if marker.id == marker_id:
                return marker
        return None
