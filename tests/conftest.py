import numpy as np
import pytest

from sipmrecon.config.schemas import Config
from sipmrecon.physics.events import CollectionRegistry
from sipmrecon.physics.hits import HitRecord


def make_hit(ch, process="Scintillation", energy_eV=2.8, time_ns=5.0, xy=(0.0, 0.0), refl_coat=0):
    return HitRecord(
        channel_id=ch,
        process=process,
        energy=energy_eV * 1e-6,  # native MeV
        time=time_ns,
        position=np.array([xy[0], xy[1], 0.0]),
        n_reflections=refl_coat,
        n_reflections_at_coating=refl_coat,
    )


@pytest.fixture
def cfg2():
    return Config(run={"n_channels": 2, "diagnostics_level": 0, "progress": False})


@pytest.fixture
def cfg4():
    return Config(run={"n_channels": 4, "diagnostics_level": 0, "progress": False})


@pytest.fixture
def registry():
    c = Config().collections
    return CollectionRegistry([c.sensor, c.scint_edep, c.scint_mu_path_length, c.coating_edep])


@pytest.fixture
def hit():
    return make_hit
