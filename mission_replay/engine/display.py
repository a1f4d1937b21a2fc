"""Rendering sink interface."""

import abc
from datetime import datetime

from mission_replay.models import Mode, Snapshot


class DisplaySink(abc.ABC):
    """Receives everything the engine decides should be shown."""

    @abc.abstractmethod
    def render_snapshot(self, snapshot: Snapshot) -> None:
        """Replace the shown entities and task fields with ``snapshot``."""
        ...

    @abc.abstractmethod
    def clear(self) -> None:
        """Remove every entity drawn by the engine."""
        ...

    @abc.abstractmethod
    def show_mode(self, mode: Mode) -> None:
        """Show the live indicator or the historical-mode banner."""
        ...

    @abc.abstractmethod
    def show_no_data(self) -> None:
        """Show the explicit "no historical data" state."""
        ...

    @abc.abstractmethod
    def set_playback_enabled(self, enabled: bool) -> None:
        ...

    def show_time(self, start: datetime | None, shown: datetime | None) -> None:
        """Update the start/current time readout. Optional."""
        return None
