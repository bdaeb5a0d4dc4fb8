from dataclasses import dataclass, field

import numpy as np

from awes_kps4.exceptions import DegenerateGeometry, DegenerateWind
from awes_kps4.setup.kite import KITE_PARTICLES
from awes_kps4.utils import EPSILON, acos2, normalize, project_onto_plane

MIN_HEIGHT = -1000.0  # Lowest allowed height of a spring [m]
MIN_WIND_HEIGHT = 6.0  # The wind profile is evaluated at least at this height [m]


@dataclass
class AeroForces:
    """Aerodynamic forces and angles of the kite, result of the last force evaluation"""

    lift_force: np.ndarray = field(default_factory=lambda: np.zeros(3))  # Lift of the central surface (N)
    drag_force: np.ndarray = field(default_factory=lambda: np.zeros(3))  # Drag of the kite (N)
    side_force: np.ndarray = field(default_factory=lambda: np.zeros(3))  # Lift of the side surfaces (N)
    side_cl: float = 0.0  # Difference of the lift coefficients of the side surfaces (-)
    alpha_2: float = 0.0  # Angle of attack at particle B (deg)
    alpha_3: float = 0.0  # Angle of attack at particle C (deg)
    alpha_4: float = 0.0  # Angle of attack at particle D (deg)
    side_slip: float = 0.0  # Side slip angle (rad)
    v_apparent: np.ndarray = field(default_factory=lambda: np.zeros(3))  # Apparent wind at particle B (m/s)
    f_d: np.ndarray = field(default_factory=lambda: np.zeros(3))  # Pitch damping force on the nose (N)
    f_s: np.ndarray = field(default_factory=lambda: np.zeros(3))  # Steering force on the side particles (N)
    x: np.ndarray = field(default_factory=lambda: np.array([1.0, 0.0, 0.0]))  # Kite reference frame
    y: np.ndarray = field(default_factory=lambda: np.array([0.0, 1.0, 0.0]))
    z: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, 1.0]))


def calc_segment_force(
    pos1,
    pos2,
    vel1,
    vel2,
    length,
    c_spring,
    damping,
    rho,
    v_wind,
    is_kite,
    settings,
    stiffness_factor=1.0,
    bridle_factor=1.0,
):
    """
    Spring, damping and drag force of one segment.

    Parameters:
    pos1, pos2 (np.ndarray): Positions of the end points [m].
    vel1, vel2 (np.ndarray): Velocities of the end points [m/s].
    length (float): Unstressed length [m].
    c_spring (float): Spring constant [N/m].
    damping (float): Damping coefficient [Ns/m].
    rho (float): Air density at the height of the segment [kg/m^3].
    v_wind (np.ndarray): Wind velocity at the height of the segment [m/s].
    is_kite (bool): True for bridle and kite springs.
    settings (Settings): Parameters of the system.
    stiffness_factor (float): Multiplier of the spring constant.
    bridle_factor (float): Ratio of the real and the simulated bridle line length.

    Returns:
    tuple: Spring force acting on `pos1` (the opposite force acts on `pos2`) and the
    total drag force of the segment [N], which is shared by both end points.
    """
    segment = pos1 - pos2
    norm1 = np.linalg.norm(segment)
    if norm1 < EPSILON:
        raise DegenerateGeometry(f"Segment with coincident end points at {pos1}")
    unit_vector = segment / norm1

    k = c_spring * stiffness_factor
    elongation = norm1 - length
    spring_vel = np.dot(unit_vector, vel1 - vel2)
    if elongation > 0.0:
        c = settings.rel_damping * damping if is_kite else damping
        magnitude = k * elongation + c * spring_vel
    elif is_kite:
        magnitude = settings.rel_compr_stiffness * k * elongation + damping * spring_vel
    else:
        magnitude = settings.rel_compr_tether * k * elongation + damping * spring_vel
    tension_force = -magnitude * unit_vector

    # Drag, using the apparent wind perpendicular to the segment
    v_apparent = v_wind - 0.5 * (vel1 + vel2)
    v_app_perp = project_onto_plane(v_apparent, unit_vector)
    if is_kite and settings.version != 1:
        area = norm1 * settings.d_line / 1000.0 * bridle_factor
    else:
        area = norm1 * settings.d_tether / 1000.0
    drag_force = 0.5 * rho * settings.cd_tether * np.linalg.norm(v_app_perp) * area * v_app_perp
    return tension_force, drag_force


def calc_kcu_drag(pos1, pos2, vel_kcu, v_wind, rho, kcu):
    """Drag of the KCU at `pos2`, the end point of the segment `pos1` -> `pos2`"""
    unit_vector = normalize(pos1 - pos2)
    return kcu.calc_drag(project_onto_plane(v_wind - vel_kcu, unit_vector), rho)


def accumulate_spring_forces(
    forces,
    pos,
    vel,
    springs,
    atmosphere,
    v_wind_gnd,
    settings,
    stiffness_factor=1.0,
    bridle_factor=1.0,
    kcu=None,
    kcu_spring=None,
):
    """
    Add the forces of all springs to `forces`, using the local air density and wind speed.

    The drag of `kcu` is added to the end point of the spring `kcu_spring`.

    Returns the force acting on the anchor after the first spring, the force at the winch.
    """
    last_force = np.zeros(3)
    is_kite = springs.is_kite
    for i in range(len(springs)):
        p1, p2 = springs.p1[i], springs.p2[i]
        height = 0.5 * (pos[p1, 2] + pos[p2, 2])
        if not height > MIN_HEIGHT:
            raise DegenerateGeometry(f"Spring {i} is below the ground limit, height {height} m")
        rho = atmosphere.calc_rho(height)
        v_wind_tether = atmosphere.calc_wind_factor(max(height, MIN_WIND_HEIGHT)) * v_wind_gnd

        tension_force, drag_force = calc_segment_force(
            pos[p1],
            pos[p2],
            vel[p1],
            vel[p2],
            springs.length[i],
            springs.c_spring[i],
            springs.damping[i],
            rho,
            v_wind_tether,
            is_kite[i],
            settings,
            stiffness_factor,
            bridle_factor,
        )
        if kcu is not None and i == kcu_spring:
            forces[p2] += calc_kcu_drag(pos[p1], pos[p2], vel[p2], v_wind_tether, rho, kcu)

        forces[p1] += tension_force + 0.5 * drag_force
        forces[p2] += -tension_force + 0.5 * drag_force
        if i == 0:
            last_force[:] = forces[p1]
    return last_force


def calc_kite_frame(pos_B, pos_C, pos_D):
    """Orthonormal reference frame of the kite from the positions of the particles B, C and D"""
    z = -normalize(pos_B - 0.5 * (pos_C + pos_D))
    y = normalize(project_onto_plane(pos_C - pos_D, z))
    x = np.cross(y, z)
    return x, y, z


def calc_aero_forces(forces, pos, vel, v_wind, rho, alpha_depower, steering, settings, aero, ks, pitch_rate=0.0):
    """
    Add the aerodynamic forces of the kite to the forces of the particles A, B, C and D.

    The central surface acts on B, the side surfaces on C and D, the pitch damping on A.

    Parameters:
    forces (np.ndarray): Accumulator of the particle forces, shape (N, 3) [N].
    pos (np.ndarray): Particle positions [m].
    vel (np.ndarray): Particle velocities [m/s].
    v_wind (np.ndarray): Wind velocity at the height of the kite [m/s].
    rho (float): Air density at the height of the kite [kg/m^3].
    alpha_depower (float): Depower angle [rad].
    steering (float): Relative steering [-1..1].
    settings (Settings): Parameters of the system.
    aero (KiteAerodynamics): Lift and drag coefficient tables.
    ks (float): Max. steering angle [rad].
    pitch_rate (float): Pitch rate of the kite [rad/s].

    Returns:
    AeroForces: Forces and angles for logging.
    """
    i_A = len(pos) - KITE_PARTICLES
    i_B, i_C, i_D = i_A + 1, i_A + 2, i_A + 3
    rel_side_area = settings.rel_side_area / 100.0
    K = 1 - rel_side_area  # correction factor for the drag
    area = settings.area

    va_1 = v_wind - vel[i_A]
    va_2 = v_wind - vel[i_B]
    va_3 = v_wind - vel[i_C]
    va_4 = v_wind - vel[i_D]

    x, y, z = calc_kite_frame(pos[i_B], pos[i_C], pos[i_D])

    va_xz1 = project_onto_plane(va_1, y)
    va_xz2 = project_onto_plane(va_2, y)
    va_xy3 = project_onto_plane(va_3, z)
    va_xy4 = project_onto_plane(va_4, z)

    va_k = np.column_stack((x, y, z)).T @ va_2
    side_slip = np.arctan2(va_k[1], -va_k[0])

    alpha_2 = np.rad2deg(np.pi - acos2(np.dot(normalize(va_xz2, DegenerateWind), x)) - alpha_depower)
    alpha_3 = np.rad2deg(np.pi - acos2(np.dot(normalize(va_xy3, DegenerateWind), x)) + steering * ks)
    alpha_4 = np.rad2deg(np.pi - acos2(np.dot(normalize(va_xy4, DegenerateWind), x)) - steering * ks)
    alpha_2 += settings.alpha_zero
    alpha_3 += settings.alpha_ztip
    alpha_4 += settings.alpha_ztip

    CL2, CD2 = aero.calc_cl(alpha_2), aero.calc_cd(alpha_2)
    CL3, CD3 = aero.calc_cl(alpha_3), aero.calc_cd(alpha_3)
    CL4, CD4 = aero.calc_cl(alpha_4), aero.calc_cd(alpha_4)

    norm_xz2 = np.linalg.norm(va_xz2)
    norm_xy3 = np.linalg.norm(va_xy3)
    norm_xy4 = np.linalg.norm(va_xy4)
    L2 = (0.5 * rho * norm_xz2**2 * area * CL2) * normalize(np.cross(va_2, y), DegenerateWind)
    L3 = (0.5 * rho * norm_xy3**2 * area * rel_side_area * CL3) * normalize(np.cross(va_3, z), DegenerateWind)
    L4 = (0.5 * rho * norm_xy4**2 * area * rel_side_area * CL4) * normalize(np.cross(z, va_4), DegenerateWind)
    D2 = (0.5 * K * rho * np.linalg.norm(va_2) * area * CD2) * va_2
    D3 = (0.5 * K * rho * np.linalg.norm(va_3) * area * rel_side_area * CD3) * va_3
    D4 = (0.5 * K * rho * np.linalg.norm(va_4) * area * rel_side_area * CD4) * va_4

    if settings.version == 3:
        drag_force = D2
        forces[i_B] += L2 + D2 - D3 - D4
    else:
        drag_force = D2 + D3 + D4
        forces[i_B] += L2 + D2

    f_d = -(0.5 * rho * area * np.linalg.norm(va_xz1) ** 2 * settings.cmq * pitch_rate * settings.cord_length) * z
    f_s = -(0.5 * rho * area * (0.5 * (norm_xy3 + norm_xy4)) ** 2 * settings.smc * steering * ks) * x
    forces[i_A] += f_d
    forces[i_C] += L3 + D3 - 0.5 * f_d + 0.5 * f_s
    forces[i_D] += L4 + D4 - 0.5 * f_d - 0.5 * f_s

    return AeroForces(
        lift_force=L2,
        drag_force=drag_force,
        side_force=L3 + L4,
        side_cl=CL4 - CL3,
        alpha_2=alpha_2,
        alpha_3=alpha_3,
        alpha_4=alpha_4,
        side_slip=side_slip,
        v_apparent=va_2,
        f_d=f_d,
        f_s=f_s,
        x=x,
        y=y,
        z=z,
    )
