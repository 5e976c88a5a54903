from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Literal, Optional, List


class RunCfg(BaseModel):
    """
    Global run controls.

    n_channels is the SiPM count C of the simulated detector. It is a
    run-scoped constant threaded into every aggregation component.
    """

    model_config = ConfigDict(validate_assignment=True)

    n_channels: int = 4

    # Diagnostics
    diagnostics_level: int = 1  # 0=off, 1=minimal, 2=verbose
    progress: bool = True

    @field_validator("n_channels")
    def _channels_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("n_channels must be >= 1")
        return v

    @field_validator("diagnostics_level")
    def _diag_range(cls, v: int) -> int:
        if v not in (0, 1, 2):
            raise ValueError("diagnostics_level must be 0, 1, or 2")
        return v


class CollectionsCfg(BaseModel):
    """
    Names of the per-event hit collections delivered by the hit source.

    TOML:

    [collections]
    sensor = "SiliconPMSD/OpticalPhotonCollection"
    scint_edep = "ScintillatorMFD/Edep"
    scint_mu_path_length = "ScintillatorMFD/MuPathLength"
    coating_edep = "CoatingMFD/Edep"
    """

    sensor: str = "SiliconPMSD/OpticalPhotonCollection"
    scint_edep: str = "ScintillatorMFD/Edep"
    scint_mu_path_length: str = "ScintillatorMFD/MuPathLength"
    coating_edep: str = "CoatingMFD/Edep"


class H1Cfg(BaseModel):
    nbins: int
    lo: float
    hi: float


class H2Cfg(BaseModel):
    nx: int
    x_lo: float
    x_hi: float
    ny: int
    y_lo: float
    y_hi: float


class HistogramsCfg(BaseModel):
    """Binning of the global optical-photon histograms (display units)."""

    energy_eV: H1Cfg = Field(default_factory=lambda: H1Cfg(nbins=1000, lo=2.2, hi=3.3))
    time_ns: H1Cfg = Field(default_factory=lambda: H1Cfg(nbins=1000, lo=0.0, hi=30.0))
    spread_mm: H2Cfg = Field(
        default_factory=lambda: H2Cfg(nx=100, x_lo=-40.0, x_hi=40.0, ny=100, y_lo=-40.0, y_hi=40.0)
    )
    reflections: H1Cfg = Field(default_factory=lambda: H1Cfg(nbins=1000, lo=0.0, hi=1000.0))


class SynthCfg(BaseModel):
    """Synthetic hit source used when no external simulation feeds the run."""

    model_config = ConfigDict(validate_assignment=True)

    n_events: int = 1000
    seed: Optional[int] = None
    plate_half_mm: float = 25.0
    sensor_half_mm: float = 40.0
    mean_scint_photons: float = 400.0
    mean_cer_photons: float = 5.0
    p_missing_map: float = 0.0
    p_bad_channel: float = 0.0

    @field_validator("n_events")
    def _events_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("n_events must be >= 0")
        return v


class AggregateCfg(BaseModel):
    """
    Aggregation stage output.

    [aggregate]
    output_path = "runs/output.h5"
    """

    model_config = ConfigDict(validate_assignment=True)

    output_path: str = "output.h5"
    synth: SynthCfg = Field(default_factory=SynthCfg)


class PredictCfg(BaseModel):
    """
    Offline prediction stage.

    [predict]
    model_path = "model.onnx"
    input_dir = "inputs"
    predictions_dir = "predictions"
    reports_dir = "reports"
    n_features = 64           # omit to use [run].n_channels
    batch_size = 256          # omit to use one batch per run file
    """

    model_config = ConfigDict(validate_assignment=True)

    model_path: str = "model.onnx"
    input_dir: str = "inputs"
    predictions_dir: str = "predictions"
    reports_dir: str = "reports"
    input_suffixes: List[str] = Field(default_factory=lambda: [".h5", ".root"])

    n_features: Optional[int] = None
    feature_prefix: str = "ScintOPsCollected"
    batch_size: Optional[int] = None
    intra_op_threads: int = 4

    @field_validator("n_features")
    def _features_positive(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("n_features must be >= 1")
        return v

    @field_validator("batch_size")
    def _batch_positive(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("batch_size must be >= 1")
        return v


class Config(BaseModel):
    """
    Top-level TOML configuration. Every section is optional.
    """

    run: RunCfg = Field(default_factory=RunCfg)
    collections: CollectionsCfg = Field(default_factory=CollectionsCfg)
    histograms: HistogramsCfg = Field(default_factory=HistogramsCfg)
    aggregate: AggregateCfg = Field(default_factory=AggregateCfg)
    predict: PredictCfg = Field(default_factory=PredictCfg)
