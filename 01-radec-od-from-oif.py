## Parameters for the orbit determination
import datetime
import logging
import math
from pathlib import Path

import numpy as np

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(message)s')

oif_dir = Path('oif-data')  # written by 00-generate-radec-data.py
target_id = 50008
sigma_radec = math.radians(0.005)  # rad

# A priori state, e.g. from a TLE or from the previous OD
orbit_epoch = datetime.datetime(2023, 3, 18)
position_km = [-4.062348841462340e+04, -1.131092510063584e+04, -1.074224879016023e+02]  # GCRF
velocity_km_s = [8.243020099302774e-01, -2.957143748313477e+00, -1.692574154589104e-01]
spacecraft_mass = 500.0  # kg

ephemeris_step = 300.0  # s
ephemeris_days_after_od = 1.0

## Firing up a JVM for Orekit and loading the Orekit data, done when importing radec_od
from radec_od.config import EARTH_MU
from radec_od.models import StateAndCovariance
from radec_od.observer import ConvergenceHistory
from radec_od.oif import load_oif_directory
from radec_od.processor import RaDecOdProcessor
from radec_od.products import generate_ephemeris, plot_residuals, residuals_dataframe

from org.hipparchus.geometry.euclidean.threed import Vector3D
from org.orekit.frames import FramesFactory
from org.orekit.orbits import CartesianOrbit
from org.orekit.propagation import SpacecraftState
from org.orekit.utils import PVCoordinates
from orekit_jpype.pyhelpers import datetime_to_absolutedate

gcrf = FramesFactory.getGCRF()
initial_date = datetime_to_absolutedate(orbit_epoch)
orbit = CartesianOrbit(PVCoordinates(Vector3D(*[1e3 * v for v in position_km]),
                                     Vector3D(*[1e3 * v for v in velocity_km_s])),
                       gcrf, initial_date, EARTH_MU)
initial_state = SpacecraftState(orbit, spacecraft_mass)

## Reading the OIF files, a malformed file is skipped
oif_data = load_oif_directory(oif_dir, [sigma_radec, sigma_radec], target_id=target_id)
for filename, error in oif_data.failures.items():
    print(f'Skipped {filename}: {error}')
measurements = oif_data.measurements

## Setting up the estimator, the reference state is moved to the date of the last measurement
processor = RaDecOdProcessor()
history = ConvergenceHistory()
estimator = processor.create_estimator(initial_state, measurements, observers=[history])

## Performing the orbit determination
result = estimator.estimate()
estimated = StateAndCovariance(result.state, result.cartesian_covariance)

print(f'Converged: {result.converged} after {result.iterations} iterations, RMS {result.rms:.6f}')
print(f'OD epoch: {estimated.epoch_datetime}')
print(f'Position (m): {estimated.position}')
print(f'Velocity (m/s): {estimated.velocity}')
print(f'Keplerian elements: {estimated.keplerian_elements()}')
print(f'Standard deviations in LVLH: {estimated.lvlh_standard_deviations()}')
print(history.to_dataframe())

## Residuals of the last evaluation
residuals = residuals_dataframe(estimator)
print(residuals)
print(f'RA/Dec residuals RMS (deg): {np.rad2deg(np.sqrt(np.mean(residuals[["ra", "dec"]] ** 2)))}')

import plotly.io as pio
pio.show(plot_residuals(residuals))

## Ephemeris from the initial date to one day after the OD epoch
ephemeris = generate_ephemeris(estimated.state, initial_date,
                               estimated.epoch.shiftedBy(ephemeris_days_after_od * 86400.0), ephemeris_step)
print(ephemeris)
ephemeris.to_csv('ephemeris_gcrf.csv')
