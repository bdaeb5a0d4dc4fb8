# This file contains the geometry, the bridle topology and the aerodynamic tables of the four point kite
import numpy as np
from scipy.interpolate import splrep, splev

from awes_kps4.exceptions import ConfigurationError
from awes_kps4.utils import normalize

KITE_PARTICLES = 4
KITE_SPRINGS = 9
PRE_STRESS = 0.9998  # Multiplier for the initial spring lengths of the bridle

# Bridle springs as pairs of kite particles: 0 = KCU, 1 = A, 2 = B, 3 = C, 4 = D
BRIDLE_SPRINGS = np.array(
    [
        [0, 1],  # s1, KCU - A
        [3, 1],  # s2, C - A
        [3, 4],  # s3, C - D
        [2, 3],  # s4, B - C
        [4, 0],  # s5, D - KCU
        [3, 0],  # s6, C - KCU
        [2, 4],  # s7, B - D
        [4, 1],  # s8, D - A
        [1, 2],  # s9, A - B
    ]
)


def get_particles(
    height_k,
    height_b,
    width,
    m_k,
    pos_pod=(75.0, 0.0, 129.90381057),
    vec_c=(-15.0, 0.0, -25.98076211),
    v_app=(10.4855, 0.0, -3.08324),
):
    """
    Calculate the initial positions of the kite particles.

    Parameters:
    height_k (float): Height of the kite itself [m].
    height_b (float): Height of the bridle [m].
    width (float): Width of the kite [m].
    m_k (float): Relative nose distance [-].
    pos_pod (array-like): Position of the kite control unit [m].
    vec_c (array-like): Direction of the last tether segment, pointing from the KCU towards the ground.
    v_app (array-like): Apparent wind velocity [m/s].

    Returns:
    np.ndarray: Array of shape (6, 3) with the origin, the KCU and the particles A, B, C and D.
    """
    pos_pod = np.asarray(pos_pod, dtype=float)
    z = normalize(np.asarray(vec_c, dtype=float))
    y = normalize(np.cross(np.asarray(v_app, dtype=float), z))
    x = normalize(np.cross(y, z))

    pos_kite = pos_pod - (height_k + height_b) * z  # top particle B
    pos_C = pos_kite + height_k * z + 0.5 * width * y  # side point
    pos_D = pos_kite + height_k * z - 0.5 * width * y  # side point
    pos_A = pos_kite + width * m_k * x  # nose
    return np.array([np.zeros(3), pos_pod, pos_A, pos_kite, pos_C, pos_D])


def bridle_spring_lengths(settings):
    """Unstressed lengths of the bridle springs, derived from the reference geometry"""
    particles = get_particles(settings.height_k, settings.h_bridle, settings.width, settings.m_k)
    lengths = np.empty(KITE_SPRINGS)
    for j, (p0, p1) in enumerate(BRIDLE_SPRINGS):
        lengths[j] = np.linalg.norm(particles[p1 + 1] - particles[p0 + 1]) * PRE_STRESS
    return lengths


def bridle_length(settings):
    """Sum of the lengths of the simulated bridle lines [m]"""
    particles = get_particles(settings.height_k, settings.h_bridle, settings.width, settings.m_k)
    return sum(np.linalg.norm(particles[p1 + 1] - particles[p0 + 1]) for p0, p1 in BRIDLE_SPRINGS)


def kite_masses(settings):
    """Masses of the particles A, B, C and D [kg]"""
    k2 = settings.rel_top_mass * (1.0 - settings.rel_nose_mass)
    k3 = 0.5 * (1.0 - settings.rel_top_mass) * (1.0 - settings.rel_nose_mass)
    masses = settings.mass * np.array([settings.rel_nose_mass, k2, k3, k3])
    if np.any(masses <= 0):
        raise ConfigurationError(f"Kite particle masses must be positive, got {masses}")
    return masses


class KiteAerodynamics:
    """Lift and drag coefficients of the kite surfaces as function of the angle of attack"""

    def __init__(self, settings):
        try:
            self.spline_cl = splrep(settings.alpha_cl, settings.cl_list, s=0)
            self.spline_cd = splrep(settings.alpha_cd, settings.cd_list, s=0)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"Invalid aerodynamic tables: {e}") from e
        self.drag_corr = settings.drag_corr

    def calc_cl(self, alpha):
        """Lift coefficient for the angle of attack `alpha` in degrees"""
        return float(splev(alpha, self.spline_cl))

    def calc_cd(self, alpha):
        """Drag coefficient for the angle of attack `alpha` in degrees, drag correction included"""
        return self.drag_corr * float(splev(alpha, self.spline_cd))
