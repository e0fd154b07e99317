# pipeline/hooks.py
from typing import Protocol


class PipelineHooks(Protocol):
    def run_start(self, *, name: str, buildings: int, highways: int, land_uses: int): ...
    def run_end(self, *, clusters: int, lines: int, wall_ms: float): ...
    def stage_start(self, stage: str, **extra): ...
    def stage_end(self, stage: str, *, ms: float, **extra): ...
    def diagnostic(self, ev) -> None: ...
    def error(self, stage: str, *, exc: BaseException, **extra): ...


class NoopHooks:
    def run_start(self, **_):
        pass

    def run_end(self, **_):
        pass

    def stage_start(self, *_, **__):
        pass

    def stage_end(self, *_, **__):
        pass

    def diagnostic(self, *_, **__):
        pass

    def error(self, *_, **__):
        pass
