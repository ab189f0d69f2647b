"""
Parsing of OIF (Observation debug output) RA/Dec files and conversion to
Orekit measurements.

Sample OIF::

    CLASSIFICATION: UNCLASSIFIED
    Observation Debug Output (RA,Dec, in GCRF; SenPos in GCRF) from Sensor 34 Chip 0 Filter "None" with base MJD = 60021 0.351950231481169
    TargetID  Time(Seconds)  RA(Degrees)  Dec(Degrees)  SensorPosX  SensorPosY  SensorPosZ  SensorVelX  SensorVelY  SensorVelZ  VizMag  EstRange
     50008     0.00   -44.8827439541   -2.7056903972   6152.814973   1679.541697   37.682399   -0.122474   0.448663   0.000259   13.000000   38453.944526
     50008     6.20   -44.8540245107   -2.7048480984   6152.055007   1682.323236   37.684007   -0.122677   0.448608   0.000260   13.000000   38552.120189
    NaN       NaN     NaN              NaN             NaN           NaN           NaN         NaN         NaN        NaN        NaN         NaN

RA/Dec and sensor positions are assumed to be expressed in GCRF.
"""

from dataclasses import dataclass
import logging
import math
from pathlib import Path
import re

import numpy as np
import pandas as pd

from orekit_jpype.pyhelpers import absolutedate_to_datetime

from org.hipparchus.geometry.euclidean.threed import Vector3D
from org.orekit.estimation.measurements import AngularRaDec
from org.orekit.estimation.measurements import ObservableSatellite
from org.orekit.frames import FramesFactory
from org.orekit.time import AbsoluteDate
from org.orekit.utils import Constants as orekit_constants

from .config import DEFAULT_EARTH
from .dynamics import to_java_doubles
from .errors import FileFormatError
from .measurements import DEFAULT_RADEC_WEIGHTS, ground_station_at

logger = logging.getLogger(__name__)

KM_TO_M = 1000.0
NAN_MARKER = 'nan'
NUMBER_OF_HEADER_LINES = 3
MIN_FIELDS = 7  # target id, time, RA, Dec, sensor position
MJD_PATTERN = re.compile(r'MJD\s*=\s*(\S+)\s+(\S+)')


@dataclass(frozen=True, eq=False)
class OifRecord:
    """Data contained in a line of an OIF measurement file."""

    target_id: int
    epoch: object  # AbsoluteDate
    right_ascension: float  # rad
    declination: float  # rad
    ra_dec_frame: object
    sensor_position: np.ndarray  # m, in ra_dec_frame
    sensor_location: object  # GeodeticPoint


@dataclass
class OifLoadResult:
    measurements: list
    failures: dict  # file path -> FileFormatError


def parse_reference_epoch(line, filename=None):
    """Base epoch from the ``MJD = <day> <day fraction>`` part of the second header line."""
    match = MJD_PATTERN.search(line)
    if match is None:
        raise FileFormatError("missing 'MJD =' reference epoch", filename, 2)
    try:
        mjd_day = float(match.group(1))
        mjd_day_fraction = float(match.group(2))
    except ValueError as exc:
        raise FileFormatError('malformed MJD reference epoch', filename, 2, cause=exc) from exc
    return AbsoluteDate.MODIFIED_JULIAN_EPOCH.shiftedBy((mjd_day + mjd_day_fraction) * orekit_constants.JULIAN_DAY)


def is_sentinel(tokens):
    return not tokens or tokens[0].lower().startswith(NAN_MARKER)


def parse_oif_lines(lines, source='<lines>', earth=DEFAULT_EARTH):
    lines = list(lines)
    if len(lines) < NUMBER_OF_HEADER_LINES:
        raise FileFormatError(f'expected {NUMBER_OF_HEADER_LINES} header lines, got {len(lines)}', source)

    # TODO: parse the frames from line 2 once other frames than GCRF show up in OIF files
    ra_dec_frame = FramesFactory.getGCRF()
    sensor_position_frame = FramesFactory.getGCRF()
    oif_epoch = parse_reference_epoch(lines[1], source)

    records = []
    for line_number, line in enumerate(lines[NUMBER_OF_HEADER_LINES:], start=NUMBER_OF_HEADER_LINES + 1):
        tokens = line.split()
        if is_sentinel(tokens):
            continue
        if len(tokens) < MIN_FIELDS:
            raise FileFormatError(f'expected at least {MIN_FIELDS} fields, got {len(tokens)}', source, line_number)
        try:
            target_id = int(tokens[0])
            offset, ra_deg, dec_deg, x_km, y_km, z_km = (float(token) for token in tokens[1:MIN_FIELDS])
        except ValueError as exc:
            raise FileFormatError('non-numeric field', source, line_number, cause=exc) from exc
        if not all(math.isfinite(v) for v in (offset, ra_deg, dec_deg, x_km, y_km, z_km)):
            raise FileFormatError('non-finite field in data record', source, line_number)

        epoch = oif_epoch.shiftedBy(offset)
        sensor_position = np.array([x_km, y_km, z_km]) * KM_TO_M
        sensor_location = earth.body.transform(Vector3D(*(float(v) for v in sensor_position)),
                                               sensor_position_frame, epoch)
        records.append(OifRecord(target_id=target_id,
                                 epoch=epoch,
                                 right_ascension=math.radians(ra_deg),
                                 declination=math.radians(dec_deg),
                                 ra_dec_frame=ra_dec_frame,
                                 sensor_position=sensor_position,
                                 sensor_location=sensor_location))
    return records


def parse_oif_file(path, earth=DEFAULT_EARTH):
    """Parse one OIF file. OSError propagates unchanged when the file cannot be read."""
    path = Path(path)
    with path.open('r') as oif_file:
        lines = oif_file.read().splitlines()
    records = parse_oif_lines(lines, source=str(path), earth=earth)
    logger.debug('Read %d records from %s', len(records), path)
    return records


def convert_oif_records(records, ra_dec_sigmas, ra_dec_weights=DEFAULT_RADEC_WEIGHTS,
                        target_id=None, earth=DEFAULT_EARTH):
    """OIF records to AngularRaDec measurements, optionally for one target only."""
    observable_satellite = ObservableSatellite(0)  # Propagator index = 0
    sigmas = to_java_doubles(ra_dec_sigmas)
    weights = to_java_doubles(ra_dec_weights)

    measurements = []
    for record in records:
        if target_id is not None and record.target_id != target_id:
            continue
        ground_station = ground_station_at(record.sensor_location, 'gsFrame', earth)
        measurements.append(AngularRaDec(ground_station, record.ra_dec_frame, record.epoch,
                                         to_java_doubles([record.right_ascension, record.declination]),
                                         sigmas, weights, observable_satellite))
    return measurements


def load_oif_directory(directory, ra_dec_sigmas, pattern='*.oif', ra_dec_weights=DEFAULT_RADEC_WEIGHTS,
                       target_id=None, earth=DEFAULT_EARTH):
    """
    Load every OIF file of ``directory``. A malformed file is logged and
    reported in ``failures`` without stopping the other files.
    """
    result = OifLoadResult(measurements=[], failures={})
    for path in sorted(Path(directory).glob(pattern)):
        try:
            records = parse_oif_file(path, earth)
        except FileFormatError as exc:
            logger.warning('Skipping OIF file: %s', exc)
            result.failures[str(path)] = exc
            continue
        result.measurements.extend(convert_oif_records(records, ra_dec_sigmas, ra_dec_weights, target_id, earth))
    logger.info('Loaded %d measurements from %s (%d file(s) rejected)',
                len(result.measurements), directory, len(result.failures))
    return result


def records_to_dataframe(records):
    rows = []
    for record in records:
        location = record.sensor_location
        rows.append([absolutedate_to_datetime(record.epoch),
                     record.target_id,
                     np.rad2deg(record.right_ascension),
                     np.rad2deg(record.declination),
                     np.rad2deg(location.getLatitude()),
                     np.rad2deg(location.getLongitude()),
                     location.getAltitude()])
    records_df = pd.DataFrame(rows, columns=['epoch', 'target_id', 'ra_deg', 'dec_deg', 'lat_deg', 'lon_deg', 'alt_m'])
    return records_df.set_index('epoch')
