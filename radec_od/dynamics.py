"""
Dynamics configuration: a numerical propagator builder with a fixed set of
force models (Earth gravity field, Sun and Moon third body, solar radiation
pressure) and a Dormand-Prince 8(5,3) adaptive integrator.
"""

from dataclasses import dataclass
import logging

from jpype import JArray, JDouble, JException
import numpy as np

from org.orekit.attitudes import FrameAlignedProvider
from org.orekit.bodies import CelestialBodyFactory
from org.orekit.forces.gravity import HolmesFeatherstoneAttractionModel
from org.orekit.forces.gravity import ThirdBodyAttraction
from org.orekit.forces.gravity.potential import GravityFieldFactory
from org.orekit.forces.radiation import IsotropicRadiationSingleCoefficient
from org.orekit.forces.radiation import SolarRadiationPressure
from org.orekit.orbits import OrbitType
from org.orekit.orbits import PositionAngleType
from org.orekit.propagation.conversion import DormandPrince853IntegratorBuilder
from org.orekit.propagation.conversion import NumericalPropagatorBuilder

from .config import DEFAULT_EARTH, PropagatorSettings
from .errors import InvalidInput, PropagationFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParameterSnapshot:
    """Copy of an Orekit ParameterDriver, safe to keep after the driver changes."""

    name: str
    value: float
    normalized_value: float
    reference_value: float
    scale: float
    min_value: float
    max_value: float
    estimated: bool

    @classmethod
    def from_driver(cls, driver):
        return cls(name=str(driver.getName()),
                   value=float(driver.getValue()),
                   normalized_value=float(driver.getNormalizedValue()),
                   reference_value=float(driver.getReferenceValue()),
                   scale=float(driver.getScale()),
                   min_value=float(driver.getMinValue()),
                   max_value=float(driver.getMaxValue()),
                   estimated=bool(driver.isSelected()))


def snapshot_drivers(drivers_list):
    """Snapshot an Orekit ParameterDriversList."""
    return [ParameterSnapshot.from_driver(driver) for driver in drivers_list.getDrivers()]


def create_integrator_builder(min_step, max_step, position_error):
    return DormandPrince853IntegratorBuilder(float(min_step), float(max_step), float(position_error))


def create_force_models(settings=None, earth=DEFAULT_EARTH):
    """
    Default force models, in the order they are added to the builder:
    Moon and Sun point-mass attraction, spherical harmonics gravity field and
    solar radiation pressure with an isotropic single coefficient spacecraft.
    """
    settings = settings or PropagatorSettings()
    moon = CelestialBodyFactory.getMoon()
    sun = CelestialBodyFactory.getSun()

    gravity_provider = GravityFieldFactory.getNormalizedProvider(settings.gravity_degree,
                                                                 settings.gravity_order)
    gravity_attraction_model = HolmesFeatherstoneAttractionModel(earth.body_frame, gravity_provider)

    isotropic_radiation_single_coeff = IsotropicRadiationSingleCoefficient(float(settings.srp_area),
                                                                           float(settings.srp_coefficient))
    solar_radiation_pressure = SolarRadiationPressure(sun, earth.body, isotropic_radiation_single_coeff)

    return [ThirdBodyAttraction(moon),
            ThirdBodyAttraction(sun),
            gravity_attraction_model,
            solar_radiation_pressure]


def to_java_doubles(values):
    return JArray(JDouble)([float(v) for v in values])


class DynamicsConfiguration:
    """
    Owns a NumericalPropagatorBuilder and its reference orbit.

    The builder's normalized parameter vector belongs to this instance only,
    one instance must not be shared by two orbit determinations running at
    the same time.
    """

    def __init__(self, initial_state, settings=None, earth=DEFAULT_EARTH, force_models=None):
        if initial_state is None:
            raise InvalidInput('an initial spacecraft state is required', stage='dynamics')
        self.settings = settings or PropagatorSettings()
        self.earth = earth
        self.frame = initial_state.getFrame()
        self.mass = float(initial_state.getMass())
        # orbital drivers are estimated in Cartesian coordinates whatever the input orbit type
        orbit = OrbitType.CARTESIAN.convertType(initial_state.getOrbit())

        integrator_builder = create_integrator_builder(self.settings.min_step,
                                                       self.settings.max_step,
                                                       self.settings.position_error)
        self.builder = NumericalPropagatorBuilder(orbit, integrator_builder,
                                                  PositionAngleType.MEAN, float(self.settings.position_scale))
        if force_models is None:
            force_models = create_force_models(self.settings, earth)
        self.force_models = list(force_models)
        for force_model in self.force_models:
            self.builder.addForceModel(force_model)

        self.builder.setAttitudeProvider(FrameAlignedProvider(self.frame))
        self.builder.setMass(self.mass)
        self.builder.resetOrbit(orbit)

    @property
    def reference_orbit(self):
        return self.build().getInitialState().getOrbit()

    @property
    def epoch(self):
        return self.builder.getInitialOrbitDate()

    def normalized_parameters(self):
        """Copy of the selected normalized parameters."""
        return np.array(list(self.builder.getSelectedNormalizedParameters()), dtype=float)

    def orbital_parameters(self):
        return snapshot_drivers(self.builder.getOrbitalParametersDrivers())

    def propagation_parameters(self):
        return snapshot_drivers(self.builder.getPropagationParametersDrivers())

    def build(self, normalized_parameters=None):
        """Build a propagator; identical normalized parameters give identical propagators."""
        if normalized_parameters is None:
            normalized_parameters = self.builder.getSelectedNormalizedParameters()
        else:
            normalized_parameters = to_java_doubles(normalized_parameters)
        try:
            return self.builder.buildPropagator(normalized_parameters)
        except JException as exc:
            raise PropagationFailure('unable to build the propagator', stage='build', cause=exc) from exc

    def propagate(self, target):
        """Propagate the reference state to ``target`` without changing it."""
        propagator = self.build()
        try:
            return propagator.propagate(target)
        except JException as exc:
            raise PropagationFailure(f'propagation to {target} failed', stage='propagate', cause=exc) from exc

    def shift_epoch(self, target):
        """Move the reference state to ``target``. Does nothing if already there."""
        if self.epoch.isEqualTo(target):
            return
        logger.debug('Shifting reference state from %s to %s', self.epoch, target)
        propagated_state = self.propagate(target)
        self.builder.resetOrbit(propagated_state.getOrbit())
