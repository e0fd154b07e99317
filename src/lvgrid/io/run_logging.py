# io/run_logging.py
import json
import logging
import sys
from dataclasses import asdict, is_dataclass

from lvgrid.io.recorder import Recorder
from lvgrid.pipeline.hooks import NoopHooks


def _default_json_logger(name="lvgrid", level="INFO"):
    logger = logging.getLogger(name)
    if not logger.handlers:
        h = logging.StreamHandler(sys.stdout)

        class _JsonFormatter(logging.Formatter):
            def format(self, record: logging.LogRecord) -> str:
                payload = {
                    "level": record.levelname,
                    "msg": record.getMessage(),
                    "logger": record.name,
                }
                extra = getattr(record, "extra", None)
                if isinstance(extra, dict):
                    payload.update(extra)
                return json.dumps(payload, default=str)

        h.setFormatter(_JsonFormatter())
        logger.addHandler(h)
        logger.setLevel(level)
    return logger


class SynthesisLogging(NoopHooks):
    """
    Structured logs for pipeline stages, plus forwarding of diagnostic events to a recorder.
    """

    def __init__(
        self,
        run_id: str = "local",
        level: str = "INFO",
        debug: bool = False,
        logger: logging.Logger | None = None,
        recorder: Recorder | None = None,
    ):
        self.run_id, self.debug = run_id, debug
        self.recorder = recorder
        self.log = logger or _default_json_logger(level="DEBUG" if debug else level)
        self.diagnostics = 0

    def _emit(self, level: str, msg: str, **extra):
        payload = {"run_id": self.run_id}
        self.log.log(getattr(logging, level), msg, extra={"extra": {**payload, **extra}})

    def run_start(self, *, name: str, buildings: int, highways: int, land_uses: int):
        self._emit("INFO", "run_start", name=name, buildings=buildings, highways=highways, land_uses=land_uses)

    def run_end(self, *, clusters: int, lines: int, wall_ms: float):
        self._emit("INFO", "run_end", clusters=clusters, lines=lines, wall_ms=round(wall_ms, 3))

    def stage_start(self, stage: str, **extra):
        if self.debug:
            self._emit("DEBUG", "stage_start", stage=stage, **extra)

    def stage_end(self, stage: str, *, ms: float, **extra):
        self._emit("INFO", "stage_end", stage=stage, ms=round(ms, 3), **extra)

    def error(self, stage: str, *, exc: BaseException, **extra):
        self._emit("ERROR", "pipeline_error", stage=stage, error=str(exc), error_type=type(exc).__name__, **extra)

    # ------------- Diagnostic Event Reporting --------------------------

    def diagnostic(self, ev):
        self.diagnostics += 1
        if self.debug:
            data = asdict(ev) if is_dataclass(ev) else {}
            self._emit("DEBUG", type(ev).__name__, data=data)
        if self.recorder:
            self.recorder.emit(ev)
