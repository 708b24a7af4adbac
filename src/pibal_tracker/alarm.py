"""
Audible cues during a live flight.
"""

from __future__ import annotations

import subprocess
from typing import Optional, Sequence

from .config import SOUNDS

TICK = 0
OBSERVATION = 1


class AlarmPlayer:
    """Plays configured sound files through an external player command.

    With no player or no files configured every call is a no-op.
    """

    def __init__(
        self,
        player: Optional[Sequence[str]] = None,
        files: Optional[Sequence[str]] = None,
        enabled: bool = True,
    ):
        self.player = list(SOUNDS["player"] if player is None else player)
        self.files = list(SOUNDS["files"] if files is None else files)
        self.enabled = enabled

    @property
    def available(self) -> bool:
        return self.enabled and bool(self.player) and bool(self.files)

    def play(self, index: int) -> Optional[subprocess.Popen]:
        if not self.available or index >= len(self.files):
            return None
        try:
            return subprocess.Popen(
                [*self.player, self.files[index]],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            print(f"[Alarm] Cannot play sound: {e}")
            self.enabled = False
            return None

    def tick(self) -> None:
        self.play(TICK)

    def observation(self) -> None:
        self.play(OBSERVATION)
