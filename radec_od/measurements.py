"""
Right ascension / declination measurements: generation from a propagator,
evaluation against a trial spacecraft state and ground station helpers.

Orekit can generate measurements for all types of measurements that are used
for OD, the generator below only wires an AngularRaDecBuilder to a fixed step
scheduler.
"""

from dataclasses import dataclass
from functools import cmp_to_key
import logging
import math

from jpype import JArray, JException
import numpy as np

from org.hipparchus.linear import MatrixUtils
from org.hipparchus.random import CorrelatedRandomVectorGenerator
from org.hipparchus.random import GaussianRandomGenerator
from org.hipparchus.random import RandomDataGenerator
from org.orekit.bodies import GeodeticPoint
from org.orekit.estimation.measurements import AngularRaDec
from org.orekit.estimation.measurements import EstimatedMeasurement
from org.orekit.estimation.measurements import GroundStation
from org.orekit.estimation.measurements.generation import AngularRaDecBuilder
from org.orekit.estimation.measurements.generation import ContinuousScheduler
from org.orekit.estimation.measurements.generation import GatheringSubscriber
from org.orekit.estimation.measurements.generation import Generator
from org.orekit.frames import FramesFactory
from org.orekit.frames import TopocentricFrame
from org.orekit.propagation import SpacecraftState
from org.orekit.time import FixedStepSelector
from org.orekit.time import TimeScalesFactory

from .config import DEFAULT_EARTH
from .dynamics import to_java_doubles
from .errors import EstimationFailure, InvalidInput, PropagationFailure

logger = logging.getLogger(__name__)

PROCESSED = 'processed'
REJECTED = 'rejected'

DEFAULT_RADEC_WEIGHTS = (1.0, 1.0)  # equally weighted and unscaled
NOISE_SMALL = 1e-10  # diagonal elements threshold under which the noise covariance is singular


def create_ground_station(name, latitude_deg, longitude_deg, altitude_m, earth=DEFAULT_EARTH):
    geodetic_point = GeodeticPoint(math.radians(latitude_deg), math.radians(longitude_deg), float(altitude_m))
    return ground_station_at(geodetic_point, name, earth)


def ground_station_at(geodetic_point, name, earth=DEFAULT_EARTH):
    topocentric_frame = TopocentricFrame(earth.body, geodetic_point, name)
    return GroundStation(topocentric_frame)


def create_random_source(seed):
    """Seeded Hipparchus random generator. Sharing it across generators advances the same sequence."""
    return RandomDataGenerator(int(seed))


def create_radec_builder(random_source, ground_station, satellite, ra_dec_sigmas, ra_dec_weights):
    ra_sigma, dec_sigma = (float(s) for s in ra_dec_sigmas)
    if random_source is None:
        noise_generator = None
    else:
        covariance = MatrixUtils.createRealDiagonalMatrix(to_java_doubles([ra_sigma * ra_sigma,
                                                                           dec_sigma * dec_sigma]))
        noise_generator = CorrelatedRandomVectorGenerator(covariance, NOISE_SMALL,
                                                          GaussianRandomGenerator(random_source))
    return AngularRaDecBuilder(noise_generator, ground_station, FramesFactory.getGCRF(),
                               to_java_doubles([ra_sigma, dec_sigma]),
                               to_java_doubles(ra_dec_weights),
                               satellite)


class MeasurementGenerator:
    """
    Generates RA/Dec measurements of the spacecraft flown by ``propagator``.

    Without a random source the measurements are the exact geometric values.
    """

    def __init__(self, propagator, random_source=None):
        self.propagator = propagator
        self.random_source = random_source

    def generate_radec_measurements(self, ground_station, ra_dec_sigmas, start, stop, step,
                                    ra_dec_weights=DEFAULT_RADEC_WEIGHTS):
        if step <= 0:
            raise InvalidInput(f'measurement step must be positive, got {step!r}', stage='generation')

        generator = Generator()
        satellite = generator.addPropagator(self.propagator)
        builder = create_radec_builder(self.random_source, ground_station, satellite,
                                       ra_dec_sigmas, ra_dec_weights)
        selector = FixedStepSelector(float(step), TimeScalesFactory.getUTC())
        generator.addScheduler(ContinuousScheduler(builder, selector))
        gatherer = GatheringSubscriber()
        generator.addSubscriber(gatherer)

        try:
            generator.generate(start, stop)
        except JException as exc:
            raise PropagationFailure(f'measurement generation between {start} and {stop} failed',
                                     stage='generation', cause=exc) from exc

        measurements = list(gatherer.getGeneratedMeasurements())
        logger.debug('Generated %d RA/Dec measurements from %s between %s and %s',
                     len(measurements), ground_station.getBaseFrame().getName(), start, stop)
        return measurements


def generate_radec_measurements(propagator, ground_station, ra_dec_sigmas, start, stop, step,
                                seed=None, ra_dec_weights=DEFAULT_RADEC_WEIGHTS):
    """One-shot generation. ``seed=None`` gives noise-free measurements."""
    random_source = None if seed is None else create_random_source(seed)
    generator = MeasurementGenerator(propagator, random_source)
    return generator.generate_radec_measurements(ground_station, ra_dec_sigmas, start, stop, step,
                                                 ra_dec_weights)


def measurement_values(measurement):
    return np.array(list(measurement.getObservedValue()), dtype=float)


def sort_by_epoch(measurements):
    """New list, chronological order. Measurements at the same date keep their relative order."""
    return sorted(measurements, key=cmp_to_key(lambda a, b: a.getDate().compareTo(b.getDate())))


@dataclass(frozen=True, eq=False)
class MeasurementEvaluation:
    """Model-predicted counterpart of an observed RA/Dec measurement."""

    measurement: object
    observed: np.ndarray
    estimated: np.ndarray
    sigma: np.ndarray
    weight: np.ndarray
    partials: np.ndarray  # d(ra, dec) / d(x, y, z, vx, vy, vz)
    status: str

    @property
    def residuals(self):
        return self.observed - self.estimated

    @property
    def weighted_residuals(self):
        """Normalized residuals; zero when the evaluation is rejected."""
        if self.status == REJECTED:
            return np.zeros_like(self.observed)
        return self.weight * self.residuals / self.sigma

    @property
    def weighted_partials(self):
        if self.status == REJECTED:
            return np.zeros_like(self.partials)
        return (self.weight / self.sigma)[:, np.newaxis] * self.partials


def evaluate_measurement(measurement, state, iteration=0, evaluation=0):
    """Estimate ``measurement`` at the trial ``state``."""
    weight = np.array(list(measurement.getBaseWeight()), dtype=float)
    # station drivers need a reference date before the first estimation
    for driver in measurement.getParametersDrivers():
        if driver.getReferenceDate() is None:
            driver.setReferenceDate(measurement.getDate())
    try:
        estimated = measurement.estimate(int(iteration), int(evaluation), JArray(SpacecraftState)([state]))
    except JException as exc:
        raise EstimationFailure(f'unable to evaluate measurement at {measurement.getDate()}',
                                stage='measurement', cause=exc) from exc

    rejected = (estimated.getStatus() == EstimatedMeasurement.Status.REJECTED
                or not measurement.isEnabled()
                or bool(np.any(weight <= 0.0)))

    return MeasurementEvaluation(
        measurement=measurement,
        observed=measurement_values(measurement),
        estimated=np.array(list(estimated.getEstimatedValue()), dtype=float),
        sigma=np.array(list(measurement.getTheoreticalStandardDeviation()), dtype=float),
        weight=weight,
        partials=np.array([list(row) for row in estimated.getStateDerivatives(0)], dtype=float),
        status=REJECTED if rejected else PROCESSED,
    )


def is_radec(measurement):
    return isinstance(measurement, AngularRaDec)
