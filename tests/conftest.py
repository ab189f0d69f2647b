import math
from collections import namedtuple

import pytest

from radec_od.config import EARTH_MU, PropagatorSettings
from radec_od.dynamics import DynamicsConfiguration
from radec_od.measurements import MeasurementGenerator, create_ground_station, create_random_source

from org.hipparchus.geometry.euclidean.threed import Vector3D
from org.orekit.frames import FramesFactory
from org.orekit.orbits import CartesianOrbit
from org.orekit.propagation import SpacecraftState
from org.orekit.time import AbsoluteDate, TimeScalesFactory
from org.orekit.utils import PVCoordinates

KM_TO_M = 1000.0
SPACECRAFT_MASS = 500.0  # kg
BURST_INTERVAL = 3600 * 6.0  # 6 hours between sets of measurements
BURST_DURATION = 60.0
MEASUREMENT_STEP = 10.0  # 10 seconds between measurements
SEED = 123456

ReferenceObject = namedtuple('ReferenceObject', ['name', 'object_id', 'state', 'station', 'sigmas'])

SAMPLE_OIF = """CLASSIFICATION: UNCLASSIFIED
Observation Debug Output (RA,Dec, in GCRF; SenPos in GCRF) from Sensor 34 Chip 0 Filter "None" with base MJD = 60021 0.351950231481169
TargetID  Time(Seconds)  RA(Degrees)  Dec(Degrees)  SensorPosX  SensorPosY  SensorPosZ  SensorVelX  SensorVelY  SensorVelZ  VizMag  EstRange
 50008     0.00   -44.8827439541   -2.7056903972   6152.814973   1679.541697   37.682399   -0.122474   0.448663   0.000259   13.000000   38453.944526
 50008     6.20   -44.8540245107   -2.7048480984   6152.055007   1682.323236   37.684007   -0.122677   0.448608   0.000260   13.000000   38552.120189
 50013    12.40   -44.8253049911   -2.7040057511   6151.295016   1685.104754   37.685615   -0.122880   0.448552   0.000261   13.000000   38650.296104
NaN       NaN     NaN              NaN             NaN           NaN           NaN         NaN         NaN        NaN        NaN         NaN
"""


def create_state(epoch, position_km, velocity_km_s, mass=SPACECRAFT_MASS):
    date = AbsoluteDate(epoch, TimeScalesFactory.getUTC())
    pv = PVCoordinates(Vector3D(*(v * KM_TO_M for v in position_km)),
                       Vector3D(*(v * KM_TO_M for v in velocity_km_s)))
    orbit = CartesianOrbit(pv, FramesFactory.getGCRF(), date, EARTH_MU)
    return SpacecraftState(orbit, float(mass))


def perturbed_state(state, delta_position_m):
    pv = state.getPVCoordinates()
    position = pv.getPosition().add(Vector3D(*(float(v) for v in delta_position_m)))
    orbit = CartesianOrbit(PVCoordinates(position, pv.getVelocity()), state.getFrame(), state.getDate(),
                           state.getMu())
    return SpacecraftState(orbit, state.getMass())


def generate_bursts(state, station, sigmas, seed=SEED, settings=None, bursts=3):
    """Three 60 s bursts of RA/Dec measurements every 10 s, 6 h apart, from a shared noise source."""
    propagator = DynamicsConfiguration(state, settings).build()
    random_source = None if seed is None else create_random_source(seed)

    measurements = []
    start = state.getDate().shiftedBy(60.0)
    for _ in range(bursts):
        stop = start.shiftedBy(BURST_DURATION)
        generator = MeasurementGenerator(propagator, random_source)
        measurements.extend(generator.generate_radec_measurements(station, sigmas, start, stop, MEASUREMENT_STEP))
        start = stop.shiftedBy(BURST_INTERVAL)
    return measurements


@pytest.fixture
def fast_settings():
    """Low degree gravity field and tight integration tolerance."""
    return PropagatorSettings(gravity_degree=4, gravity_order=4, position_error=0.01)


@pytest.fixture
def af3():
    sigma = math.radians(0.005)
    return ReferenceObject(
        name='AF3',
        object_id=50008,
        state=create_state('2023-03-18T00:00:00.000',
                           (-4.062348841462340e+04, -1.131092510063584e+04, -1.074224879016023e+02),
                           (8.243020099302774e-01, -2.957143748313477e+00, -1.692574154589104e-01)),
        station=create_ground_station('DiegoGarcia', 0.465765, 73.2162, -94.1783),
        sigmas=(sigma, sigma),
    )


@pytest.fixture
def cp1():
    sigma = math.radians(0.01)
    return ReferenceObject(
        name='CP1',
        object_id=50013,
        state=create_state('2023-03-18T00:14:26.889',
                           (4.189974449058950e+04, -4.713177927901786e+03, 3.562232987686665e+02),
                           (3.433104066667355e-01, 3.055016180848359e+00, 5.550461291772908e-02)),
        station=create_ground_station('Maui', 20.6924, -156.309, 2119.62),
        sigmas=(sigma, sigma),
    )


@pytest.fixture
def sa2():
    sigma = math.radians(0.01)
    return ReferenceObject(
        name='SA2',
        object_id=50036,
        state=create_state('2023-03-18T00:12:14.305',
                           (-1.824071309541569e+04, 3.801466820067245e+04, 3.508492406457166e+02),
                           (-2.771468115015459e+00, -1.330284523529563e+00, 5.610314702236215e-02)),
        station=create_ground_station('Eglin', 30.476, -86.5857, -21.24),
        sigmas=(sigma, sigma),
    )


@pytest.fixture
def oif_file(tmp_path):
    path = tmp_path / 'sample.oif'
    path.write_text(SAMPLE_OIF)
    return path
