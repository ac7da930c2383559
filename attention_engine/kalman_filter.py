# =============================================================================
# attention_engine/kalman_filter.py
#
# Kalman smoothing for the head-posture display values (yaw, pitch).
# Posture never feeds the counters; this only steadies what the
# presentation layer draws.
#
# Constant-velocity model per channel:
#   x = [angle, angular_velocity]ᵀ,  z = [angle]
#
#   F = [[1, dt],    H = [[1, 0]]
#        [0,  1]]
# =============================================================================

import numpy as np
from filterpy.kalman import KalmanFilter as _KF

from config import KALMAN_PROCESS_NOISE, KALMAN_MEASUREMENT_NOISE
from attention_engine.data_structures import HeadPosture


class ScalarKalmanFilter:
    """
    1D constant-velocity Kalman filter for one noisy angle.

    The first measurement seeds the state, so a fresh filter does not drag
    the estimate up from zero.
    """

    def __init__(
        self,
        process_noise: float = KALMAN_PROCESS_NOISE,
        measurement_noise: float = KALMAN_MEASUREMENT_NOISE,
        dt: float = 1.0,
    ):
        self._kf = _KF(dim_x=2, dim_z=1)
        self._kf.F = np.array([[1.0, dt],
                               [0.0, 1.0]])
        self._kf.H = np.array([[1.0, 0.0]])
        self._kf.Q = np.eye(2) * process_noise
        self._kf.R = np.array([[measurement_noise]])
        self._seeded = False
        self.reset()

    def update(self, measurement: float) -> float:
        """Feed a raw measurement, return the smoothed estimate."""
        if not self._seeded:
            self._kf.x = np.array([[measurement], [0.0]])
            self._seeded = True
            return float(measurement)
        self._kf.predict()
        self._kf.update(np.array([[measurement]]))
        return float(self._kf.x[0, 0])

    def reset(self) -> None:
        self._kf.x = np.zeros((2, 1))
        self._kf.P = np.eye(2)
        self._seeded = False

    @property
    def current_estimate(self) -> float:
        return float(self._kf.x[0, 0])


class PostureKalmanFilter:
    """
    Two independent channels: yaw and pitch.

    Usage:
        pkf = PostureKalmanFilter()
        smooth = pkf.update(HeadPosture(yaw=12.0, pitch=-3.0))
    """

    def __init__(self,
                 process_noise: float = KALMAN_PROCESS_NOISE,
                 measurement_noise: float = KALMAN_MEASUREMENT_NOISE):
        self._yaw = ScalarKalmanFilter(process_noise, measurement_noise)
        self._pitch = ScalarKalmanFilter(process_noise, measurement_noise)

    def update(self, posture: HeadPosture) -> HeadPosture:
        return HeadPosture(
            yaw=self._yaw.update(posture.yaw),
            pitch=self._pitch.update(posture.pitch),
        )

    def reset(self) -> None:
        self._yaw.reset()
        self._pitch.reset()
