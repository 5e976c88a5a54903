from __future__ import annotations

import numpy as np

from .events import PrimaryHitState


class PrimaryHitRegistrar:
    """
    Keeps the first entry of the primary particle (muon) per event.

    Only one primary per event is assumed: the first register_hit() wins and
    later calls in the same event are ignored. The registrar never resets
    itself; the run controller calls reset() at event start.
    """

    def __init__(self, state: PrimaryHitState | None = None):
        self.state = state if state is not None else PrimaryHitState()

    def register_hit(self, local_pos, global_pos, time: float) -> bool:
        """Store the entry point if none is registered yet; return True if accepted."""
        if self.state.registered:
            return False
        self.state.registered = True
        self.state.local_position = np.asarray(local_pos, dtype=np.float64).reshape(3).copy()
        self.state.global_position = np.asarray(global_pos, dtype=np.float64).reshape(3).copy()
        self.state.time = float(time)
        return True

    def reset(self) -> None:
        self.state.reset()
