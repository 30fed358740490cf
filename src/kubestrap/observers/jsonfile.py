from __future__ import annotations
import json
from pathlib import Path
from typing import IO, Optional

from .events import BaseEvent, RunSummary


class JsonFileObserver:
    """
    Appends one JSON object per event to a `.jsonl` file next to the run log.
    The file stays open for the run and is closed after its RunSummary.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh: Optional[IO[str]] = None

    def notify(self, event: BaseEvent) -> None:
        if self._fh is None:
            self._fh = self.path.open("a", encoding="utf-8")
        self._fh.write(json.dumps({"type": event.__class__.__name__, **event.dict()}) + "\n")
        # a crash mid-run still leaves every event written so far
        self._fh.flush()
        if isinstance(event, RunSummary):
            self.close()

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    @property
    def closed(self) -> bool:
        return self._fh is None
