import logging
from dataclasses import dataclass

import numpy as np

from awes_kps4.environment import AtmosphericModel
from awes_kps4.exceptions import KiteModelError, NonFiniteResidual
from awes_kps4.kcu import KCU
from awes_kps4.model.forces import (
    MIN_WIND_HEIGHT,
    AeroForces,
    accumulate_spring_forces,
    calc_aero_forces,
    calc_kite_frame,
)
from awes_kps4.setup.kite import KITE_PARTICLES, KiteAerodynamics, bridle_length, get_particles
from awes_kps4.setup.tether import MassModel, SpringNetwork, number_of_points
from awes_kps4.utils import Rz, calculate_euler_from_reference_frame, calculate_polar_coordinates, normalize
from awes_kps4.winch import ControlMode, create_winch_model, select_control_mode

logger = logging.getLogger(__name__)


@dataclass
class ResidualResult:
    """Outcome of a residual evaluation that does not raise"""

    ok: bool
    residual: np.ndarray = None  # Residual vector, None if the evaluation failed
    error: Exception = None  # Reason of the failure


class KPS4:
    """
    Four point kite power system model in implicit DAE form.

    The tether is modelled as a chain of point masses, connected by spring-dampers. The kite
    consists of the four particles A (nose), B (top), C and D (sides), connected to the KCU
    by the bridle springs. The model evaluates the residual F(y, yd, t) that an implicit
    DAE solver drives to zero.

    State vector y: positions and velocities of all points except the anchor, followed by
    the tether length and the reel out speed.
    """

    def __init__(self, settings, kcu=None, winch=None, atmosphere=None):
        self.settings = settings
        self.segments = settings.segments
        self.n_points = number_of_points(self.segments)

        self.kcu = KCU(settings) if kcu is None else kcu
        self.winch = create_winch_model(settings) if winch is None else winch
        self.atmosphere = AtmosphericModel(settings) if atmosphere is None else atmosphere
        self.aero = KiteAerodynamics(settings)

        self.springs = SpringNetwork.from_settings(settings)
        self.mass_model = MassModel(settings, kcu=self.kcu)
        self.bridle_factor = settings.l_bridle / bridle_length(settings)
        self.ks = np.deg2rad(settings.max_steering)

        # Working arrays, recalculated by each residual call
        self.forces = np.zeros((self.n_points, 3))
        self._pos = np.zeros((self.n_points, 3))
        self._vel = np.zeros((self.n_points, 3))

        self.iter = 0
        self.stiffness_factor = 1.0
        self.clear()

    @property
    def masses(self):
        """Particle masses for the current tether length [kg]"""
        return self.mass_model.rebuild(self.l_tether)

    @property
    def n_state(self):
        """Length of the state vector"""
        return 6 * (self.segments + KITE_PARTICLES) + 2

    def clear(self):
        """Reset the model to the initial values of the settings"""
        settings = self.settings
        self.t_0 = 0.0
        self.v_reel_out = settings.v_reel_out
        self.last_v_reel_out = settings.v_reel_out
        # start in the control mode of the machine, a torque controlled winch starts without torque
        speed_controlled = ControlMode.SPEED in self.winch.control_modes
        self.sync_speed = settings.v_reel_out if speed_controlled else None
        self.set_torque = None if speed_controlled else 0.0

        self.l_tether = settings.l_tether
        self.segment_length = self.l_tether / self.segments
        self.mass_model.rebuild(self.l_tether)
        self.springs.rebuild_geometry(self.l_tether)
        self.forces[:] = 0.0
        self.last_force = np.zeros(3)
        self.rho = settings.rho_0

        self.v_wind_gnd = np.array([settings.v_wind, 0.0, 0.0])
        height = np.sin(np.deg2rad(settings.elevation)) * self.l_tether
        self.v_wind = self.v_wind_gnd * self.atmosphere.calc_wind_factor(max(height, MIN_WIND_HEIGHT))

        self.kcu.depower = settings.depower / 100.0
        self.kcu.steering = 0.0
        self.set_depower_steering(self.kcu.depower, self.kcu.steering)

        y0, _ = self.init_state()
        self.set_state(y0)
        self.aero_forces = AeroForces()
        self.aero_forces.x, self.aero_forces.y, self.aero_forces.z = self.kite_frame_from_positions()
        _, self.pitch, _ = self.orient_euler()
        self.pitch_rate = 0.0
        logger.debug(f"Model cleared: {self.segments} segments, tether length {self.l_tether} m")

    # %% Inputs
    def set_v_wind_ground(self, height, v_wind_gnd=None, upwind_dir=-np.pi / 2):
        """
        Set the wind speed at reference height and update the wind and air density at the kite.

        Parameters:
        height (float): Height of the kite [m].
        v_wind_gnd (float): Wind speed at reference height [m/s], default from the settings.
        upwind_dir (float): Upwind direction [rad], -pi/2 is wind along the x axis.
        """
        v_wind_gnd = self.settings.v_wind if v_wind_gnd is None else v_wind_gnd
        direction = upwind_dir + np.pi / 2
        self.v_wind_gnd = v_wind_gnd * np.array([np.cos(direction), np.sin(direction), 0.0])
        self.v_wind = self.v_wind_gnd * self.atmosphere.calc_wind_factor(max(height, MIN_WIND_HEIGHT))
        self.rho = self.atmosphere.calc_rho(height)

    def set_depower_steering(self, depower, steering):
        """Set the relative depower (0..1) and the relative steering (-1..1) of the KCU"""
        self.kcu.depower = depower
        self.kcu.steering = steering
        self.depower = depower
        self.kcu_steering = steering
        self.alpha_depower = self.kcu.calc_alpha_depower(depower) * (self.settings.alpha_d_max / 31.0)
        self.steering = self.kcu.calc_effective_steering(steering, self.alpha_depower)

    # %% State handling
    def init_state(self, X=None, delta=0.0, upwind_dir=-np.pi / 2):
        """
        Initial state of a straight tether at the configured elevation angle.

        Parameters:
        X (np.ndarray): Offsets of all points except the anchor, flattened as (x, y, z) per
            point [m]. The kite particles are placed relative to the shifted KCU.
        delta (float): Small value, used as initial velocity and acceleration.
        upwind_dir (float): Upwind direction [rad].

        Returns:
        tuple: State vector y0 and its derivative yd0.
        """
        segments = self.segments
        X = np.zeros(3 * (self.n_points - 1)) if X is None else np.asarray(X, dtype=float)
        offsets = np.zeros((self.n_points, 3))
        offsets[1:] = np.reshape(X, (-1, 3))

        pos = np.zeros((self.n_points, 3))
        vel = np.zeros((self.n_points, 3))
        acc = np.zeros((self.n_points, 3))
        sin_el, cos_el = np.sin(np.deg2rad(self.settings.elevation)), np.cos(np.deg2rad(self.settings.elevation))
        l_0 = self.settings.l_tether / segments
        for i in range(1, segments + 1):
            pos[i] = [cos_el * i * l_0, delta, sin_el * i * l_0]
        pos[: segments + 1] += offsets[: segments + 1]

        settings = self.settings
        particles = get_particles(
            settings.height_k,
            settings.h_bridle,
            settings.width,
            settings.m_k,
            pos[segments],
            pos[segments - 1] - pos[segments],
            np.array([1.0, 0.0, 0.0]),
        )
        pos[segments + 1 :] = particles[2:] + offsets[segments + 1 :]
        vel[1:] = delta
        acc[1:] = delta

        rotation = Rz(upwind_dir + np.pi / 2)
        pos = pos @ rotation.T
        vel = vel @ rotation.T
        acc = acc @ rotation.T

        y0 = np.concatenate((pos[1:].ravel(), vel[1:].ravel(), [self.settings.l_tether, self.settings.v_reel_out]))
        yd0 = np.concatenate((vel[1:].ravel(), acc[1:].ravel(), [self.settings.v_reel_out, 0.0]))
        return y0, yd0

    def unpack(self, y):
        """Positions and velocities of all points, the anchor included, from a state vector"""
        n = 3 * (self.n_points - 1)
        pos = np.zeros((self.n_points, 3))
        vel = np.zeros((self.n_points, 3))
        pos[1:] = np.reshape(y[:n], (-1, 3))
        vel[1:] = np.reshape(y[n : 2 * n], (-1, 3))
        return pos, vel

    def set_state(self, y):
        """Copy a state vector into the read-back values without evaluating the forces"""
        self.pos, self.vel = self.unpack(y)
        self.vel_kite = self.vel[self.segments + 2].copy()
        self.l_tether = y[-2]
        self.segment_length = self.l_tether / self.segments
        self.v_reel_out = y[-1]

    # %% Residual
    def residual(self, res, yd, y, time):
        """
        Residual of the DAE, written in-place into `res`.

        The read-back values (positions, forces, tether length) are only updated if the
        evaluation succeeds.

        Parameters:
        res (np.ndarray): Output vector.
        yd (np.ndarray): Derivative of the state vector.
        y (np.ndarray): State vector.
        time (float): Simulation time [s], not used by the model equations.
        """
        n = self.n_state
        if len(y) != n or len(yd) != n or len(res) != n:
            raise ValueError(f"State vectors must have length {n}, got {len(y)}, {len(yd)} and {len(res)}")
        if not (np.all(np.isfinite(y)) and np.all(np.isfinite(yd))):
            raise NonFiniteResidual("State vector or derivative contains NaN or inf")
        mode = select_control_mode(self.sync_speed, self.set_torque)
        self.winch.check_control_mode(mode)

        n_pos = 3 * (self.n_points - 1)
        pos, vel = self._pos, self._vel
        pos[1:] = np.reshape(y[:n_pos], (-1, 3))
        vel[1:] = np.reshape(y[n_pos : 2 * n_pos], (-1, 3))
        posd = np.reshape(yd[:n_pos], (-1, 3))
        veld = np.reshape(yd[n_pos : 2 * n_pos], (-1, 3))
        length, v_reel_out = y[-2], y[-1]
        lengthd, v_reel_outd = yd[-2], yd[-1]

        # core calculations
        self.springs.rebuild_geometry(length)
        masses = self.mass_model.rebuild(length)
        self.forces[:] = 0.0
        aero_forces = calc_aero_forces(
            self.forces,
            pos,
            vel,
            self.v_wind,
            self.rho,
            self.alpha_depower,
            self.steering,
            self.settings,
            self.aero,
            self.ks,
            self.pitch_rate,
        )
        last_force = accumulate_spring_forces(
            self.forces,
            pos,
            vel,
            self.springs,
            self.atmosphere,
            self.v_wind_gnd,
            self.settings,
            self.stiffness_factor,
            self.bridle_factor,
            kcu=self.kcu,
            kcu_spring=self.segments - 1,
        )

        gravity = np.array([0.0, 0.0, -self.settings.g_earth])
        res[:n_pos] = (vel[1:] - posd).ravel()
        res[n_pos : 2 * n_pos] = (veld - (gravity + self.forces[1:] / masses[1:, None])).ravel()

        # winch calculations
        res[-2] = lengthd - v_reel_out
        res[-1] = v_reel_outd - self.winch.calc_acceleration(
            v_reel_out,
            np.linalg.norm(last_force),
            set_speed=self.sync_speed if mode == ControlMode.SPEED else None,
            set_torque=self.set_torque if mode == ControlMode.TORQUE else None,
            use_brake=mode == ControlMode.BRAKE,
        )

        if not np.all(np.isfinite(res)):
            raise NonFiniteResidual(f"Residual contains NaN or inf at t = {time}")

        # commit the outputs of the successful evaluation
        self.pos = pos.copy()
        self.vel = vel.copy()
        self.vel_kite = vel[self.segments + 2].copy()
        self.l_tether = length
        self.segment_length = length / self.segments
        self.v_reel_out = v_reel_out
        self.aero_forces = aero_forces
        self.last_force = last_force
        self.iter += 1

    def calc_residual(self, y, yd, time=0.0):
        res = np.zeros(self.n_state)
        self.residual(res, yd, y, time)
        return res

    def try_residual(self, y, yd, time=0.0):
        """Evaluate the residual, model errors are returned instead of raised"""
        try:
            return ResidualResult(ok=True, residual=self.calc_residual(y, yd, time))
        except KiteModelError as e:
            logger.debug(f"Residual evaluation failed: {e}")
            return ResidualResult(ok=False, error=e)

    # %% Output queries
    def pos_kite(self):
        """Position of the kite (top particle B)"""
        return self.pos[self.segments + 2]

    def calc_height(self):
        return self.pos_kite()[2]

    def tether_length(self):
        return self.l_tether

    def elevation(self):
        el, _, _ = calculate_polar_coordinates(self.pos_kite())
        return el

    def azimuth(self):
        _, az, _ = calculate_polar_coordinates(self.pos_kite())
        return az

    def winch_force(self):
        """Absolute value of the force at the winch of the last residual call [N]"""
        return np.linalg.norm(self.last_force)

    def lift_drag(self):
        return np.linalg.norm(self.aero_forces.lift_force), np.linalg.norm(self.aero_forces.drag_force)

    def cl_cd(self):
        """Lift and drag coefficient of the kite for the current angles of attack"""
        K = 1 - self.settings.rel_side_area / 100.0
        CL2, CD2 = self.aero.calc_cl(self.aero_forces.alpha_2), self.aero.calc_cd(self.aero_forces.alpha_2)
        if self.settings.version == 3:
            return CL2, CD2
        CD3 = self.aero.calc_cd(self.aero_forces.alpha_3)
        CD4 = self.aero.calc_cd(self.aero_forces.alpha_4)
        return CL2, K * (CD2 + CD3 + CD4)

    def kite_frame_from_positions(self):
        i_B = self.segments + 2
        return calc_kite_frame(self.pos[i_B], self.pos[i_B + 1], self.pos[i_B + 2])

    def kite_ref_frame(self, one_point=False):
        """Unit vectors x, y and z of the kite reference frame"""
        if one_point:
            c = self.aero_forces.z
            y = normalize(np.cross(self.aero_forces.v_apparent, c))
            x = normalize(np.cross(y, c))
            return x, y, c
        return self.aero_forces.x, self.aero_forces.y, self.aero_forces.z

    def orient_euler(self):
        """Roll, pitch and yaw angles of the kite [rad]"""
        x, y, z = self.kite_ref_frame()
        return calculate_euler_from_reference_frame(np.column_stack((x, y, z)))

    def spring_forces(self, warn=True):
        """
        Tension of all springs for the last positions [N].

        Compressed springs use the same reduced stiffness as the residual: `rel_compr_stiffness`
        for bridle springs and `rel_compr_tether` for tether segments. An advisory warning is
        logged for each spring with a tension above `max_force`.
        """
        springs = self.springs
        springs.rebuild_geometry(self.l_tether)
        is_kite = springs.is_kite
        forces = np.zeros(len(springs))
        for i in range(len(springs)):
            elongation = np.linalg.norm(self.pos[springs.p1[i]] - self.pos[springs.p2[i]]) - springs.length[i]
            k = springs.c_spring[i] * self.stiffness_factor
            if elongation <= 0.0 and is_kite[i]:
                k *= self.settings.rel_compr_stiffness
            elif elongation <= 0.0:
                k *= self.settings.rel_compr_tether
            forces[i] = k * elongation
            if warn and forces[i] > self.settings.max_force:
                kind = "Bridle spring" if is_kite[i] else "Tether segment"
                logger.warning(f"{kind} {i} overloaded: {forces[i]:.1f} N > {self.settings.max_force} N")
        return forces
