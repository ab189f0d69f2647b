"""
Settings for the orbit determination.

Units: meters (m), seconds (s), kilograms (kg), radians unless stated otherwise.
"""

from dataclasses import dataclass, fields
from functools import cached_property

from org.orekit.bodies import OneAxisEllipsoid
from org.orekit.frames import FramesFactory
from org.orekit.utils import Constants as orekit_constants
from org.orekit.utils import IERSConventions

from .errors import InvalidInput

# Orbit propagator parameters
PROP_MIN_STEP = 0.001  # s
PROP_MAX_STEP = 300.0  # s
PROP_POSITION_ERROR = 10.0  # m
GRAVITY_DEGREE = 21
GRAVITY_ORDER = 21
SRP_AREA = 0.2  # m2
SRP_COEFFICIENT = 1.0

# Estimator parameters
ESTIMATOR_POSITION_SCALE = 1.0  # m
ESTIMATOR_SINGULARITY_THRES = 1e-11
ESTIMATOR_CONVERGENCE_THRES = 1e-3
ESTIMATOR_MAX_ITERATIONS = 20
ESTIMATOR_MAX_EVALUATIONS = 25
# Smallest positive double, the covariance is extracted even for nearly singular problems
COVARIANCE_SINGULARITY_THRES = 5e-324

EARTH_MU = orekit_constants.IERS2010_EARTH_MU


class _Settings:

    @classmethod
    def from_mapping(cls, mapping):
        """Build settings from a plain dict, e.g. parsed from a config file."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(mapping) - known)
        if unknown:
            raise InvalidInput(f'unknown {cls.__name__} keys: {", ".join(unknown)}', stage='config')
        return cls(**mapping)

    def _require_positive(self, *names):
        for name in names:
            value = getattr(self, name)
            if not value > 0:
                raise InvalidInput(f'{type(self).__name__}.{name} must be positive, got {value!r}',
                                   stage='config')


@dataclass(frozen=True)
class EarthModel(_Settings):
    """Earth ellipsoid shared by stations, ingestion and force models."""

    equatorial_radius: float = orekit_constants.IERS2010_EARTH_EQUATORIAL_RADIUS
    flattening: float = orekit_constants.IERS2010_EARTH_FLATTENING
    iers_conventions: str = 'IERS_2010'
    simple_eop: bool = True

    def __post_init__(self):
        self._require_positive('equatorial_radius')
        if not 0.0 <= self.flattening < 1.0:
            raise InvalidInput(f'EarthModel.flattening must be in [0, 1), got {self.flattening!r}',
                               stage='config')
        if not hasattr(IERSConventions, self.iers_conventions):
            raise InvalidInput(f'unknown IERS conventions {self.iers_conventions!r}', stage='config')

    @cached_property
    def body_frame(self):
        return FramesFactory.getITRF(getattr(IERSConventions, self.iers_conventions), self.simple_eop)

    @cached_property
    def body(self):
        return OneAxisEllipsoid(self.equatorial_radius, self.flattening, self.body_frame)


DEFAULT_EARTH = EarthModel()


@dataclass(frozen=True)
class PropagatorSettings(_Settings):
    min_step: float = PROP_MIN_STEP
    max_step: float = PROP_MAX_STEP
    position_error: float = PROP_POSITION_ERROR
    position_scale: float = ESTIMATOR_POSITION_SCALE
    gravity_degree: int = GRAVITY_DEGREE
    gravity_order: int = GRAVITY_ORDER
    srp_area: float = SRP_AREA
    srp_coefficient: float = SRP_COEFFICIENT

    def __post_init__(self):
        self._require_positive('min_step', 'max_step', 'position_error', 'position_scale')
        if self.min_step > self.max_step:
            raise InvalidInput('PropagatorSettings.min_step must not exceed max_step', stage='config')
        if self.gravity_degree < 0 or not 0 <= self.gravity_order <= self.gravity_degree:
            raise InvalidInput('gravity field needs 0 <= order <= degree', stage='config')
        if self.srp_area < 0 or self.srp_coefficient < 0:
            raise InvalidInput('SRP area and coefficient must not be negative', stage='config')


@dataclass(frozen=True)
class EstimatorSettings(_Settings):
    singularity_threshold: float = ESTIMATOR_SINGULARITY_THRES
    convergence_threshold: float = ESTIMATOR_CONVERGENCE_THRES
    max_iterations: int = ESTIMATOR_MAX_ITERATIONS
    max_evaluations: int = ESTIMATOR_MAX_EVALUATIONS
    covariance_threshold: float = COVARIANCE_SINGULARITY_THRES

    def __post_init__(self):
        self._require_positive('singularity_threshold', 'convergence_threshold',
                               'max_iterations', 'max_evaluations', 'covariance_threshold')
