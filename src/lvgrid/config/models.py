from math import isfinite
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator


class RunModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    seed: int = 0


class LogModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False


# ----------------- GRID ---------------------


class GridModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    average_power_density: float = 12.5  # W/m²
    load_substation: float = 630.0  # kVA, compared against kW loads
    ignore_clusters_smaller_than: float = 10.0  # kW
    separate_clusters_by_land_uses: bool = True
    consider_house_connection_points: bool = False

    @field_validator("average_power_density", "load_substation")
    @classmethod
    def _positive(cls, v: float, info: ValidationInfo) -> float:
        if not isfinite(v) or v <= 0:
            raise ValueError(f"{info.field_name} must be a positive finite number")
        return v

    @field_validator("ignore_clusters_smaller_than")
    @classmethod
    def _nonneg(cls, v: float, info: ValidationInfo) -> float:
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v


class BuilderModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    cell_size_deg: float = 0.0005
    hull_precision: int = 5
    between_epsilon: float = 1e-12
    area_correction_m2: float = 0.0

    @field_validator("cell_size_deg", "between_epsilon")
    @classmethod
    def _positive(cls, v: float, info: ValidationInfo) -> float:
        if v <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return v

    @field_validator("hull_precision")
    @classmethod
    def _precision(cls, v: int) -> int:
        # beyond 9 digits the integer grid no longer absorbs float noise
        if not 0 <= v <= 9:
            raise ValueError("hull_precision must be within [0, 9]")
        return v


# ----------------- MEDOID INITIALIZERS ---------------------


class MedoidInitRandomModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    kind: Literal["random"] = "random"


class MedoidInitPlusPlusModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    kind: Literal["plus_plus"] = "plus_plus"


MedoidInitUnion = Annotated[
    MedoidInitRandomModel | MedoidInitPlusPlusModel,
    Field(discriminator="kind"),
]


class ClusteringModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    max_iterations: int = 500  # -1 => iterate until no vertex moves
    load_tolerance: float = 1.1
    consider_real_substations: bool = True
    max_restarts: int = 3
    medoid_init: MedoidInitUnion = Field(default_factory=MedoidInitRandomModel)

    @field_validator("max_iterations")
    @classmethod
    def _iterations(cls, v: int) -> int:
        if v == 0 or v < -1:
            raise ValueError("max_iterations must be positive or -1")
        return v

    @field_validator("max_restarts")
    @classmethod
    def _restarts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_restarts must be >= 1")
        return v

    @model_validator(mode="after")
    def _check_tolerance(self):
        if self.load_tolerance < 1.0:
            raise ValueError("load_tolerance below 1.0 makes an even split infeasible")
        return self


# ------------------------------------------------------------------


class SynthesisModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    name: str = "lvgrid"
    run_id: str = "local"
    run: RunModel = RunModel()
    log: LogModel = LogModel()
    grid: GridModel = GridModel()
    builder: BuilderModel = BuilderModel()
    clustering: ClusteringModel = ClusteringModel()
