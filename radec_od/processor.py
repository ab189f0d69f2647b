"""
RA/Dec orbit determination: initial state + angular measurements in, state
and Cartesian covariance at the epoch of the last measurement out.
"""

import logging

from .config import DEFAULT_EARTH, EstimatorSettings, PropagatorSettings
from .dynamics import DynamicsConfiguration
from .errors import InvalidInput
from .estimation import BatchEstimator
from .measurements import is_radec, sort_by_epoch
from .models import StateAndCovariance
from .observer import ConvergenceObserver

logger = logging.getLogger(__name__)


def check_inputs(initial_state, measurements):
    """Validated measurements, as a new list."""
    if initial_state is None:
        raise InvalidInput('initial state must not be None', stage='input')
    if measurements is None:
        raise InvalidInput('measurements must not be None', stage='input')
    measurements = list(measurements)
    if len(measurements) == 0:
        raise InvalidInput('must provide at least 1 measurement', stage='input')
    for index, measurement in enumerate(measurements):
        if not is_radec(measurement):
            raise InvalidInput(f'measurement #{index} is not an AngularRaDec: {measurement!r}', stage='input')
    return measurements


class RaDecOdProcessor:
    """
    Batch least squares orbit determination from RA/Dec measurements.

    The processor keeps no state between calls: each call builds its own
    dynamics configuration and estimator.
    """

    def __init__(self, propagator_settings=None, estimator_settings=None, earth=DEFAULT_EARTH):
        self.propagator_settings = propagator_settings or PropagatorSettings()
        self.estimator_settings = estimator_settings or EstimatorSettings()
        self.earth = earth

    def create_estimator(self, initial_state, measurements, observers=None):
        """Estimator ready to run, the reference state already moved to the OD epoch."""
        sorted_measurements = sort_by_epoch(check_inputs(initial_state, measurements))

        dynamics = DynamicsConfiguration(initial_state, self.propagator_settings, self.earth)
        estimator = BatchEstimator(dynamics, sorted_measurements, self.estimator_settings,
                                   observers=[ConvergenceObserver()] + list(observers or []))
        estimator.shift_to_od_epoch()
        return estimator

    def process_measurements(self, initial_state, measurements, observers=None):
        """
        Estimate the state at the epoch of the chronologically last measurement.

        ``measurements`` may come in any order, the list itself is left
        untouched. ``observers`` are extra callables receiving each
        EvaluationRecord.
        """
        estimator = self.create_estimator(initial_state, measurements, observers)
        logger.debug('OD epoch %s, %d measurements', estimator.od_epoch, len(estimator.measurements))

        result = estimator.estimate()
        if not result.converged:
            logger.warning('Returning the last trial estimate after %d iterations (RMS %.6e)',
                           result.iterations, result.rms)
        return StateAndCovariance(result.state, result.cartesian_covariance)


def process_measurements(initial_state, measurements, observers=None, propagator_settings=None,
                         estimator_settings=None, earth=DEFAULT_EARTH):
    processor = RaDecOdProcessor(propagator_settings, estimator_settings, earth)
    return processor.process_measurements(initial_state, measurements, observers)
