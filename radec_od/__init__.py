"""Batch least squares orbit determination from RA/Dec measurements, with Orekit."""

import logging

from .orekit_setup import init_orekit

logging.getLogger(__name__).addHandler(logging.NullHandler())

# The JVM must be running before any ``org.orekit`` import below
init_orekit()

from .config import DEFAULT_EARTH, EarthModel, EstimatorSettings, PropagatorSettings  # noqa: E402
from .dynamics import DynamicsConfiguration  # noqa: E402
from .errors import (EstimationFailure, FileFormatError, InvalidInput, OdError,  # noqa: E402
                     PropagationFailure)
from .estimation import BatchEstimator, EstimationResult  # noqa: E402
from .measurements import (MeasurementGenerator, create_ground_station,  # noqa: E402
                           create_random_source, evaluate_measurement, generate_radec_measurements)
from .models import StateAndCovariance  # noqa: E402
from .observer import ConvergenceHistory, ConvergenceObserver, EvaluationRecord  # noqa: E402
from .oif import load_oif_directory, parse_oif_file  # noqa: E402
from .processor import RaDecOdProcessor, process_measurements  # noqa: E402

__version__ = '0.1.0'

__all__ = [
    'BatchEstimator',
    'ConvergenceHistory',
    'ConvergenceObserver',
    'DEFAULT_EARTH',
    'DynamicsConfiguration',
    'EarthModel',
    'EstimationFailure',
    'EstimationResult',
    'EstimatorSettings',
    'EvaluationRecord',
    'FileFormatError',
    'InvalidInput',
    'MeasurementGenerator',
    'OdError',
    'PropagationFailure',
    'PropagatorSettings',
    'RaDecOdProcessor',
    'StateAndCovariance',
    'create_ground_station',
    'create_random_source',
    'evaluate_measurement',
    'generate_radec_measurements',
    'init_orekit',
    'load_oif_directory',
    'parse_oif_file',
    'process_measurements',
]
