"""Pause / stop control flags.

Each flag is the presence of an empty marker file. The command dispatcher
sets them; the host loop reads them between iterations and clears them
after acting (pause) or on restart (stop).
"""

from __future__ import annotations

from pathlib import Path


class ControlFlags:
    def __init__(self, pause_path: Path, stop_path: Path) -> None:
        self.pause_path = pause_path
        self.stop_path = stop_path

    @property
    def paused(self) -> bool:
        return self.pause_path.exists()

    @property
    def stop_requested(self) -> bool:
        return self.stop_path.exists()

    def request_pause(self) -> bool:
        """Create the pause flag. Returns False if it was already set."""
        return _touch_once(self.pause_path)

    def resume(self) -> bool:
        """Remove the pause flag. Returns False if it was not set."""
        if not self.pause_path.exists():
            return False
        self.pause_path.unlink(missing_ok=True)
        return True

    def request_stop(self) -> bool:
        """Create the stop flag. Returns False if it was already set."""
        return _touch_once(self.stop_path)

    def clear_pause(self) -> None:
        self.pause_path.unlink(missing_ok=True)

    def clear_stop(self) -> None:
        self.stop_path.unlink(missing_ok=True)


def _touch_once(path: Path) -> bool:
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        path.touch(exist_ok=False)
    except FileExistsError:
        return False
    return True
