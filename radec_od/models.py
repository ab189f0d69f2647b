"""Orbit determination result: spacecraft state and its Cartesian covariance."""

from dataclasses import dataclass

from jpype import JArray, JDouble
import numpy as np

from orekit_jpype.pyhelpers import absolutedate_to_datetime

from org.hipparchus.linear import MatrixUtils
from org.orekit.frames import LOFType
from org.orekit.orbits import OrbitType, PositionAngleType
from org.orekit.propagation import StateCovariance

from .estimation import real_matrix_to_numpy


@dataclass(frozen=True, eq=False)
class StateAndCovariance:
    """
    Estimated state and 6x6 covariance (m, m/s) of the Cartesian position and
    velocity, both at the OD epoch and expressed in the state frame.
    """

    state: object  # SpacecraftState
    covariance: np.ndarray
    orbit_type: str = 'CARTESIAN'
    position_angle: str = 'MEAN'

    def __post_init__(self):
        covariance = np.array(self.covariance, dtype=float)
        if covariance.shape != (6, 6):
            raise ValueError(f'expected a 6x6 covariance, got {covariance.shape}')
        covariance.setflags(write=False)
        object.__setattr__(self, 'covariance', covariance)

    @property
    def epoch(self):
        return self.state.getDate()

    @property
    def epoch_datetime(self):
        return absolutedate_to_datetime(self.epoch)

    @property
    def frame(self):
        return self.state.getFrame()

    @property
    def position(self):
        return np.array(list(self.state.getPVCoordinates().getPosition().toArray()))

    @property
    def velocity(self):
        return np.array(list(self.state.getPVCoordinates().getVelocity().toArray()))

    @property
    def pv(self):
        return np.concatenate((self.position, self.velocity))

    def standard_deviations(self):
        return np.sqrt(np.diag(self.covariance))

    def keplerian_elements(self):
        """Osculating Keplerian elements (m, rad, mean anomaly)."""
        orbit = OrbitType.KEPLERIAN.convertType(self.state.getOrbit())
        return {
            'a': float(orbit.getA()),
            'e': float(orbit.getE()),
            'i': float(orbit.getI()),
            'pa': float(orbit.getPerigeeArgument()),
            'raan': float(orbit.getRightAscensionOfAscendingNode()),
            'ma': float(orbit.getMeanAnomaly()),
            'mu': float(orbit.getMu()),
        }

    def to_state_covariance(self):
        matrix = MatrixUtils.createRealMatrix(JArray(JDouble, 2)(self.covariance.tolist()))
        return StateCovariance(matrix, self.epoch, self.frame,
                               getattr(OrbitType, self.orbit_type),
                               getattr(PositionAngleType, self.position_angle))

    def lvlh_standard_deviations(self):
        """
        Position/velocity standard deviations in the LVLH (CCSDS) local orbital
        frame, reference: David Vallado, Covariance Transformations for
        Satellite Flight Dynamics Operations, 2003.
        """
        covariance_lvlh = self.to_state_covariance().changeCovarianceFrame(self.state.getOrbit(),
                                                                           LOFType.LVLH_CCSDS)
        sigmas = np.sqrt(np.diag(real_matrix_to_numpy(covariance_lvlh.getMatrix())))
        return dict(zip(['pos_x', 'pos_y', 'pos_z', 'vel_x', 'vel_y', 'vel_z'], sigmas))
