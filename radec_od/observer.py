"""
Observation of the batch least squares iterations.

The estimator calls ``EvaluationChannel`` after each evaluation. The channel
turns the call into an ``EvaluationRecord`` and hands it to its subscribers,
which are only allowed to look at it: a failing subscriber is logged and the
estimation goes on untouched.
"""

from dataclasses import dataclass, field
import logging
import math

from jpype import JImplements, JOverride
import numpy as np
import pandas as pd

from org.orekit.estimation.leastsquares import BatchLSObserver
from org.orekit.estimation.measurements import EstimatedMeasurement

from .dynamics import snapshot_drivers

logger = logging.getLogger(__name__)

FORMAT_HEADER = 'iteration evaluations      ΔP(m)        ΔV(m/s)           RMS        nb {}'
FORMAT_0 = '    {:2d}         {:2d}                                 {:16.12f}     {}'
FORMAT_L = '    {:2d}         {:2d}      {:13.6f} {:12.9f} {:16.12f}     {}'
PAR_STR = '  {:>22s}'
PAR_VAL = '  {:22.9f}'
COUNT_WIDTH = 8
ANGULAR_BIAS_TAGS = ('/az bias', '/el bias', '/ra bias', '/dec bias')


class EvaluationCounter:
    """Active (processed) / total count of measurement evaluations."""

    def __init__(self):
        self.active = 0
        self.total = 0

    def add(self, processed):
        self.total += 1
        if processed:
            self.active += 1

    def format(self, size=COUNT_WIDTH):
        text = f'{self.active}/{self.total}'
        while len(text) < size:
            if len(text) % 2 == 0:
                text = ' ' + text
            else:
                text = text + ' '
        return text


@dataclass(frozen=True, eq=False)
class EvaluationRecord:
    iteration: int
    evaluation: int
    orbit: object  # trial Orekit orbit, immutable
    position: np.ndarray
    velocity: np.ndarray
    orbital_parameters: list
    propagator_parameters: list
    measurement_parameters: list
    counts: dict  # measurement type -> (active, total)
    rms: float

    @property
    def parameters(self):
        return self.orbital_parameters + self.propagator_parameters + self.measurement_parameters


def count_evaluations(evaluations_provider):
    counters = {}
    for i in range(evaluations_provider.getNumber()):
        estimated_measurement = evaluations_provider.getEstimatedMeasurement(i)
        measurement_type = str(estimated_measurement.getObservedMeasurement().getMeasurementType())
        counter = counters.setdefault(measurement_type, EvaluationCounter())
        counter.add(estimated_measurement.getStatus() == EstimatedMeasurement.Status.PROCESSED)
    return counters


@JImplements(BatchLSObserver)
class EvaluationChannel:
    """Orekit BatchLSObserver publishing an EvaluationRecord per evaluation."""

    def __init__(self, subscribers=()):
        self.subscribers = list(subscribers)
        self.last_record = None
        self.last_evaluation = None

    def subscribe(self, subscriber):
        self.subscribers.append(subscriber)

    @JOverride
    def evaluationPerformed(self, iterations_count, evaluations_count, orbits,
                            estimated_orbital_parameters, estimated_propagator_parameters,
                            estimated_measurements_parameters, evaluations_provider, lsp_evaluation):
        try:
            record = self.create_record(iterations_count, evaluations_count, orbits,
                                        estimated_orbital_parameters, estimated_propagator_parameters,
                                        estimated_measurements_parameters, evaluations_provider, lsp_evaluation)
        except Exception:
            # the estimation goes on, the evaluation is just not reported
            logger.exception('Unable to record evaluation %d', evaluations_count)
            return
        self.last_record = record
        self.last_evaluation = lsp_evaluation
        self.publish(record)

    @staticmethod
    def create_record(iterations_count, evaluations_count, orbits, estimated_orbital_parameters,
                      estimated_propagator_parameters, estimated_measurements_parameters,
                      evaluations_provider, lsp_evaluation):
        pv = orbits[0].getPVCoordinates()
        counters = count_evaluations(evaluations_provider)
        return EvaluationRecord(
            iteration=int(iterations_count),
            evaluation=int(evaluations_count),
            orbit=orbits[0],
            position=np.array(list(pv.getPosition().toArray())),
            velocity=np.array(list(pv.getVelocity().toArray())),
            orbital_parameters=snapshot_drivers(estimated_orbital_parameters),
            propagator_parameters=snapshot_drivers(estimated_propagator_parameters),
            measurement_parameters=snapshot_drivers(estimated_measurements_parameters),
            counts={name: (c.active, c.total) for name, c in counters.items()},
            rms=float(lsp_evaluation.getRMS()),
        )

    def publish(self, record):
        for subscriber in self.subscribers:
            try:
                subscriber(record)
            except Exception:
                logger.exception('Convergence subscriber %r failed on evaluation %d',
                                 subscriber, record.evaluation)


def pv_change(previous, current):
    """Position and velocity distance between two records, (None, None) without previous record."""
    if previous is None:
        return None, None
    return (float(np.linalg.norm(current.position - previous.position)),
            float(np.linalg.norm(current.velocity - previous.velocity)))


def display_value(parameter):
    """Driver value as printed in the table, angular biases in degrees."""
    if any(tag in parameter.name for tag in ANGULAR_BIAS_TAGS):
        return math.degrees(parameter.value)
    return parameter.value


def format_counts(counts, size=COUNT_WIDTH):
    counter = EvaluationCounter()
    counter.active = sum(active for active, _ in counts.values())
    counter.total = sum(total for _, total in counts.values())
    return counter.format(size)


class ConvergenceObserver:
    """
    Logs one line per evaluation: ΔP and ΔV with respect to the previous
    trial orbit, weighted RMS, active/total measurements and the estimated
    parameters.
    """

    def __init__(self, log=logger, measurement_label='Angular'):
        self.log = log
        self.measurement_label = measurement_label
        self.previous = None
        self.last_position_change = None
        self.last_velocity_change = None

    def header(self, record):
        out = FORMAT_HEADER.format(self.measurement_label)
        for parameter in record.parameters:
            out += PAR_STR.format(parameter.name)
        return out

    def line(self, record):
        counts = format_counts(record.counts)
        if self.last_position_change is None:
            out = FORMAT_0.format(record.iteration, record.evaluation, record.rms, counts)
        else:
            out = FORMAT_L.format(record.iteration, record.evaluation, self.last_position_change,
                                  self.last_velocity_change, record.rms, counts)
        for parameter in record.parameters:
            out += PAR_VAL.format(display_value(parameter))
        return out

    def __call__(self, record):
        if self.previous is None:
            self.log.info(self.header(record))
        self.last_position_change, self.last_velocity_change = pv_change(self.previous, record)
        self.log.info(self.line(record))
        self.previous = record


@dataclass
class ConvergenceHistory:
    """Keeps every record, e.g. to plot the RMS against the evaluations."""

    records: list = field(default_factory=list)

    def __call__(self, record):
        self.records.append(record)

    def to_dataframe(self):
        rows = []
        previous = None
        for record in self.records:
            position_change, velocity_change = pv_change(previous, record)
            active = sum(a for a, _ in record.counts.values())
            total = sum(t for _, t in record.counts.values())
            rows.append([record.iteration, record.evaluation, record.rms,
                         position_change, velocity_change, active, total])
            previous = record
        return pd.DataFrame(rows, columns=['iteration', 'evaluation', 'rms', 'delta_position',
                                           'delta_velocity', 'active', 'total'])
