"""Post-fit products: ephemeris and residual tables, residual plots."""

import logging

from jpype import JException
import numpy as np
import pandas as pd
import plotly.graph_objs as go

from orekit_jpype.pyhelpers import absolutedate_to_datetime

from .config import DEFAULT_EARTH
from .dynamics import DynamicsConfiguration
from .errors import InvalidInput, PropagationFailure

logger = logging.getLogger(__name__)

EPHEMERIS_COLUMNS = ['x', 'y', 'z', 'vx', 'vy', 'vz']
RESIDUAL_COLUMNS = ['station', 'ra', 'dec', 'status']


def generate_ephemeris(state, start, stop, step, settings=None, earth=DEFAULT_EARTH):
    """
    Position and velocity (m, m/s, in the state frame) every ``step`` seconds
    from ``start`` to ``stop``. The interval may lie before, around or after
    the state epoch.
    """
    if step <= 0:
        raise InvalidInput(f'ephemeris step must be positive, got {step!r}', stage='ephemeris')
    if stop.compareTo(start) < 0:
        raise InvalidInput('ephemeris stop date is before its start date', stage='ephemeris')

    dynamics = DynamicsConfiguration(state, settings, earth)
    propagator = dynamics.build()
    frame = state.getFrame()

    # Propagating in ephemeris mode, first to start then to stop
    eph_generator = propagator.getEphemerisGenerator()
    try:
        propagator.propagate(start, stop)
        bounded_propagator = eph_generator.getGeneratedEphemeris()
    except JException as exc:
        raise PropagationFailure(f'ephemeris generation between {start} and {stop} failed',
                                 stage='ephemeris', cause=exc) from exc

    ephemeris = {}
    date_current = start
    while date_current.compareTo(stop) <= 0:
        pv = bounded_propagator.getPVCoordinates(date_current, frame)
        ephemeris[absolutedate_to_datetime(date_current)] = np.concatenate(
            (np.array(list(pv.getPosition().toArray())), np.array(list(pv.getVelocity().toArray())))
        )
        date_current = date_current.shiftedBy(float(step))

    logger.debug('Generated %d ephemeris points from %s to %s', len(ephemeris), start, stop)
    return pd.DataFrame.from_dict(ephemeris, columns=EPHEMERIS_COLUMNS, orient='index')


def residuals_dataframe(estimator):
    """RA/Dec residuals (observed - estimated, rad) of the last evaluation of a BatchEstimator."""
    rows = []
    index = []
    for observed, estimated in estimator.last_estimations():
        residual = np.array(list(observed.getObservedValue())) - np.array(list(estimated.getEstimatedValue()))
        index.append(absolutedate_to_datetime(estimated.getDate()))
        rows.append([str(observed.getStation().getBaseFrame().getName()),
                     residual[0],
                     residual[1],
                     str(estimated.getStatus()).lower()])
    residuals = pd.DataFrame(rows, index=pd.Index(index, name='epoch'), columns=RESIDUAL_COLUMNS)
    return residuals.sort_index(kind='stable')


def plot_residuals(residuals, title='RA/Dec residuals'):
    trace_ra = go.Scattergl(
        x=residuals.index, y=np.rad2deg(residuals['ra']),
        mode='markers',
        name='Right ascension'
    )

    trace_dec = go.Scattergl(
        x=residuals.index, y=np.rad2deg(residuals['dec']),
        mode='markers',
        name='Declination'
    )

    layout = go.Layout(
        title=title,
        xaxis=dict(
            title='Datetime UTC'
        ),
        yaxis=dict(
            title='Angle residual (deg)'
        )
    )

    return go.Figure(data=[trace_ra, trace_dec], layout=layout)
