"""
Batch least squares estimation: Gauss-Newton iterations solved with a QR
decomposition, on top of Orekit's BatchLSEstimator.

Reaching the iteration or evaluation limit is not an error, the last trial
orbit is returned with ``converged=False``. Any other failure of the solver
(singular problem, propagation error during an evaluation) ends the run with
an EstimationFailure.
"""

from dataclasses import dataclass
import logging

from jpype import JException
import numpy as np

from org.hipparchus.exception import LocalizedCoreFormats
from org.hipparchus.linear import QRDecomposer
from org.hipparchus.optim.nonlinear.vector.leastsquares import GaussNewtonOptimizer
from org.orekit.estimation.leastsquares import BatchLSEstimator

from .config import EstimatorSettings
from .dynamics import snapshot_drivers
from .errors import EstimationFailure, InvalidInput, PropagationFailure
from .measurements import sort_by_epoch
from .observer import EvaluationChannel

logger = logging.getLogger(__name__)


def real_matrix_to_numpy(matrix):
    return np.array([list(matrix.getRow(i)) for i in range(matrix.getRowDimension())], dtype=float)


def is_count_exceeded(exc):
    """True if ``exc`` or one of its causes reports a maximal iterations/evaluations count."""
    throwable = exc
    while throwable is not None:
        get_specifier = getattr(throwable, 'getSpecifier', None)
        if get_specifier is not None and get_specifier() == LocalizedCoreFormats.MAX_COUNT_EXCEEDED:
            return True
        throwable = throwable.getCause()
    return False


@dataclass(frozen=True, eq=False)
class EstimationResult:
    propagator: object
    state: object  # SpacecraftState at the OD epoch
    covariance: np.ndarray  # physical units, estimated parameters in drivers order
    parameters: list  # ParameterSnapshot of the estimated parameters, covariance order
    iterations: int
    evaluations: int
    rms: float
    converged: bool

    @property
    def epoch(self):
        return self.state.getDate()

    @property
    def cartesian_covariance(self):
        """Position/velocity block of the covariance."""
        return self.covariance[:6, :6].copy()


class BatchEstimator:
    """
    Fits the orbit of ``dynamics`` to ``measurements``.

    The reference state of ``dynamics`` is moved once to the epoch of the
    last measurement before the iterations start.
    """

    def __init__(self, dynamics, measurements, settings=None, observers=()):
        if dynamics is None:
            raise InvalidInput('a dynamics configuration is required', stage='estimator')
        if not measurements:
            raise InvalidInput('must provide at least 1 measurement', stage='estimator')
        self.dynamics = dynamics
        self.measurements = sort_by_epoch(measurements)
        self.settings = settings or EstimatorSettings()
        self.channel = EvaluationChannel(observers)
        self.od_epoch = self.measurements[-1].getDate()
        self._estimator = None
        self._shifted = False

    def subscribe(self, observer):
        self.channel.subscribe(observer)

    def _create_estimator(self):
        matrix_decomposer = QRDecomposer(float(self.settings.singularity_threshold))
        optimizer = GaussNewtonOptimizer(matrix_decomposer, False)

        estimator = BatchLSEstimator(optimizer, self.dynamics.builder)
        estimator.setParametersConvergenceThreshold(float(self.settings.convergence_threshold))
        estimator.setMaxIterations(int(self.settings.max_iterations))
        estimator.setMaxEvaluations(int(self.settings.max_evaluations))
        for measurement in self.measurements:
            estimator.addMeasurement(measurement)
        # The observer is used for obtaining results for each evaluation of the estimator
        estimator.setObserver(self.channel)
        return estimator

    def shift_to_od_epoch(self):
        if self._shifted:
            return
        # PropagationFailure from the shift reaches the caller as is
        self.dynamics.shift_epoch(self.od_epoch)
        self._shifted = True

    def estimate(self):
        self.shift_to_od_epoch()
        self._estimator = self._create_estimator()
        logger.info('Estimating orbit at %s from %d measurements', self.od_epoch, len(self.measurements))

        try:
            propagator = self._estimator.estimate()[0]
        except JException as exc:
            if is_count_exceeded(exc) and self.channel.last_record is not None:
                logger.warning('Orbit determination stopped before convergence: %s', exc.getMessage())
                return self._unconverged_result()
            raise EstimationFailure('batch least squares estimation failed', stage='estimation',
                                    cause=exc) from exc

        try:
            covariance = real_matrix_to_numpy(
                self._estimator.getPhysicalCovariances(float(self.settings.covariance_threshold)))
        except JException as exc:
            raise EstimationFailure('unable to compute the covariance', stage='covariance', cause=exc) from exc

        result = EstimationResult(propagator=propagator,
                                  state=propagator.getInitialState(),
                                  covariance=covariance,
                                  parameters=self.estimated_parameters(),
                                  iterations=int(self._estimator.getIterationsCount()),
                                  evaluations=int(self._estimator.getEvaluationsCount()),
                                  rms=float(self._estimator.getOptimum().getRMS()),
                                  converged=True)
        logger.info('Converged after %d iterations, %d evaluations, RMS %.6e',
                    result.iterations, result.evaluations, result.rms)
        return result

    def _unconverged_result(self):
        """Best available estimate: the last trial point evaluated by the optimizer."""
        record = self.channel.last_record
        parameters = record.parameters
        try:
            normalized = real_matrix_to_numpy(
                self.channel.last_evaluation.getCovariances(float(self.settings.covariance_threshold)))
            propagator = self.dynamics.build()
        except (JException, PropagationFailure) as exc:
            raise EstimationFailure('unable to recover the last trial estimate', stage='estimation',
                                    cause=exc) from exc

        scales = np.array([parameter.scale for parameter in parameters])
        covariance = normalized * np.outer(scales, scales)
        return EstimationResult(propagator=propagator,
                                state=propagator.getInitialState(),
                                covariance=covariance,
                                parameters=parameters,
                                iterations=record.iteration,
                                evaluations=record.evaluation,
                                rms=record.rms,
                                converged=False)

    def _require_estimator(self):
        if self._estimator is None:
            raise EstimationFailure('estimate() has not been run', stage='estimator')
        return self._estimator

    def orbital_parameters(self):
        return snapshot_drivers(self._require_estimator().getOrbitalParametersDrivers(True))

    def propagator_parameters(self):
        return snapshot_drivers(self._require_estimator().getPropagatorParametersDrivers(True))

    def measurement_parameters(self):
        return snapshot_drivers(self._require_estimator().getMeasurementsParametersDrivers(True))

    def estimated_parameters(self):
        return self.orbital_parameters() + self.propagator_parameters() + self.measurement_parameters()

    def last_estimations(self):
        """(observed, estimated) measurement pairs of the last evaluation."""
        last_estimations = self._require_estimator().getLastEstimations()
        return [(entry.getKey(), entry.getValue()) for entry in last_estimations.entrySet()]
