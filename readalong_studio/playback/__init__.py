"""Audio engine interface and the headless reference engine.

WHY: The core consumes audio capabilities without owning playback.
base.py defines the surface; headless.py implements it without audio
for the CLI, server and tests.
"""

from readalong_studio.playback.base import EVENTS, BaseAudioBackend, Marker
from readalong_studio.playback.headless import HeadlessAudioBackend

__all__ = ["EVENTS", "BaseAudioBackend", "HeadlessAudioBackend", "Marker"]
