# io/recorder.py
import json
import logging
import sys
from dataclasses import asdict
from typing import Protocol

log = logging.getLogger(__name__)


class Sink(Protocol):
    def write(self, ev) -> None: ...


class JsonlSink:
    def __init__(self, fp=sys.stdout):
        self.fp = fp

    def write(self, ev) -> None:
        self.fp.write(json.dumps({"event": type(ev).__name__, **asdict(ev)}) + "\n")


class MemorySink:
    def __init__(self):
        self.events: list = []

    def write(self, ev) -> None:
        self.events.append(ev)

    def of_type(self, cls) -> list:
        return [ev for ev in self.events if isinstance(ev, cls)]


class Recorder:
    def __init__(self, *sinks: Sink):
        self.sinks = sinks

    def emit(self, ev):
        for s in self.sinks:
            try:
                s.write(ev)
            except (OSError, TypeError, ValueError) as e:
                # a broken sink must not abort the synthesis
                log.warning("diagnostic sink failed", extra={"extra": {"sink": type(s).__name__, "error": str(e)}})
