## Parameters for data generation
import datetime
import logging
import math
from pathlib import Path

import numpy as np

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(message)s')

orbit_epoch = datetime.datetime(2023, 3, 18)
position_km = [-4.062348841462340e+04, -1.131092510063584e+04, -1.074224879016023e+02]  # GCRF
velocity_km_s = [8.243020099302774e-01, -2.957143748313477e+00, -1.692574154589104e-01]
spacecraft_mass = 500.0  # kg
target_id = 50008

station_name = 'DiegoGarcia'
station_lat_deg = 0.465765
station_lon_deg = 73.2162
station_alt_m = -94.1783

sigma_radec = math.radians(0.005)  # Noise (standard deviation of gaussian distribution) of RA/Dec in radians
seed = 123456

n_bursts = 3
burst_interval = 3600 * 6.0  # 6 hours between sets of measurements
burst_duration = 60.0
T = 10.0  # Sample time of output data in seconds

output_dir = Path('oif-data')

## Firing up a JVM for Orekit and loading the Orekit data, done when importing radec_od
import radec_od  # noqa: F401
from radec_od.config import EARTH_MU
from radec_od.measurements import MeasurementGenerator, create_ground_station, create_random_source, measurement_values
from radec_od.dynamics import DynamicsConfiguration

## Setting up models (frames, timescales)
from org.orekit.frames import FramesFactory
gcrf = FramesFactory.getGCRF()

from org.hipparchus.geometry.euclidean.threed import Vector3D
from org.orekit.orbits import CartesianOrbit
from org.orekit.propagation import SpacecraftState
from org.orekit.time import AbsoluteDate
from org.orekit.utils import PVCoordinates
from orekit_jpype.pyhelpers import datetime_to_absolutedate, absolutedate_to_datetime

initial_date = datetime_to_absolutedate(orbit_epoch)
orbit = CartesianOrbit(PVCoordinates(Vector3D(*[1e3 * v for v in position_km]),
                                     Vector3D(*[1e3 * v for v in velocity_km_s])),
                       gcrf, initial_date, EARTH_MU)
initial_state = SpacecraftState(orbit, spacecraft_mass)

## Numerical propagator with the default force models (21x21 gravity field, Sun, Moon, SRP)
propagator = DynamicsConfiguration(initial_state).build()
ground_station = create_ground_station(station_name, station_lat_deg, station_lon_deg, station_alt_m)

## Orekit generates the RA/Dec measurements, the noise source is shared by the bursts
random_source = create_random_source(seed)
measurements = []
date_start = initial_date.shiftedBy(60.0)
for _ in range(n_bursts):
    date_end = date_start.shiftedBy(burst_duration)
    generator = MeasurementGenerator(propagator, random_source)
    measurements.extend(generator.generate_radec_measurements(ground_station, [sigma_radec, sigma_radec],
                                                              date_start, date_end, T))
    date_start = date_end.shiftedBy(burst_interval)

print(f'{len(measurements)} measurements generated')

## Finally, saving the measurements to an OIF file, with the sensor position in GCRF
mjd_epoch = initial_date.durationFrom(AbsoluteDate.MODIFIED_JULIAN_EPOCH) / 86400.0
mjd_day = math.floor(mjd_epoch)

output_dir.mkdir(exist_ok=True)
oif_path = output_dir / f'{target_id}.oif'
with oif_path.open('w') as oif_file:
    oif_file.write('CLASSIFICATION: UNCLASSIFIED\n')
    oif_file.write(f'Observation Debug Output (RA,Dec, in GCRF; SenPos in GCRF) from Sensor {station_name} '
                   f'with base MJD = {mjd_day} {mjd_epoch - mjd_day:.15f}\n')
    oif_file.write('TargetID  Time(Seconds)  RA(Degrees)  Dec(Degrees)  SensorPosX  SensorPosY  SensorPosZ  '
                   'SensorVelX  SensorVelY  SensorVelZ  VizMag  EstRange\n')
    for measurement in measurements:
        date = measurement.getDate()
        ra_deg, dec_deg = np.rad2deg(measurement_values(measurement))
        sensor_pv = ground_station.getBaseFrame().getPVCoordinates(date, gcrf)
        sensor_pos_km = np.array(list(sensor_pv.getPosition().toArray())) / 1e3
        sensor_vel_km_s = np.array(list(sensor_pv.getVelocity().toArray())) / 1e3
        range_km = propagator.getPVCoordinates(date, gcrf).getPosition().distance(sensor_pv.getPosition()) / 1e3
        oif_file.write(f' {target_id}  {date.durationFrom(initial_date):10.2f}  {ra_deg:16.10f}  {dec_deg:15.10f}'
                       f'  {sensor_pos_km[0]:13.6f}  {sensor_pos_km[1]:13.6f}  {sensor_pos_km[2]:13.6f}'
                       f'  {sensor_vel_km_s[0]:10.6f}  {sensor_vel_km_s[1]:10.6f}  {sensor_vel_km_s[2]:10.6f}'
                       f'  13.000000  {range_km:13.6f}\n')
    oif_file.write('NaN       NaN     NaN              NaN             NaN           NaN           NaN'
                   '         NaN         NaN        NaN        NaN         NaN\n')

print(f'Measurements from {absolutedate_to_datetime(measurements[0].getDate())} '
      f'to {absolutedate_to_datetime(measurements[-1].getDate())} saved to {oif_path}')
