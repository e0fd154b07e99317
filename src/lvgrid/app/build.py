# lvgrid/app/build.py
from collections.abc import Mapping
from dataclasses import dataclass

from lvgrid.config.models import SynthesisModel
from lvgrid.io.map_data import MapData
from lvgrid.io.recorder import MemorySink, Recorder, Sink
from lvgrid.io.run_logging import SynthesisLogging  # JSON logs
from lvgrid.pipeline.hooks import NoopHooks, PipelineHooks
from lvgrid.pipeline.rng import RNGRegistry
from lvgrid.pipeline.runner import GridSynthesis, SynthesisResult
from lvgrid.runtime.resources import load_map_data_from_path


@dataclass
class App:
    model: SynthesisModel
    rng: RNGRegistry
    hooks: PipelineHooks
    recorder: Recorder | None
    pipeline: GridSynthesis

    def run(self, source) -> SynthesisResult:
        return self.pipeline.run(source)

    def run_file(self, file: str, fmt: str = "json") -> SynthesisResult:
        map_data: MapData = load_map_data_from_path(file, fmt)
        return self.pipeline.run(map_data)


def build(
    cfg: SynthesisModel | Mapping,
    *,
    use_logging: bool = True,
    sinks: list[Sink] | None = None,
) -> App:
    # 0) Validate config
    model = cfg if isinstance(cfg, SynthesisModel) else SynthesisModel.model_validate(cfg)

    # 1) RNG
    rng_registry = RNGRegistry(model.run.seed, scenario=model.name)

    # 2) Hooks; diagnostics go to memory unless sinks are given
    recorder = Recorder(*(sinks if sinks is not None else [MemorySink()]))
    hooks = (
        SynthesisLogging(
            run_id=model.run_id,
            recorder=recorder,
            level=model.log.level,
            debug=model.log.debug,
        )
        if use_logging
        else NoopHooks()
    )

    # 3) Pipeline
    pipeline = GridSynthesis(model, rng=rng_registry, hooks=hooks)

    return App(model, rng_registry, hooks, recorder if use_logging else None, pipeline)
