import logging
from dataclasses import asdict, dataclass
from typing import List

import numpy as np
import pandas as pd

from awes_kps4.model.steady_state import find_steady_state
from awes_kps4.simulation.integrator import ImplicitEulerIntegrator
from awes_kps4.winch import select_control_mode

logger = logging.getLogger(__name__)

STIFFNESS_INCREMENT = 0.01  # Increase of the stiffness factor per time step after initialisation


def init_sim(kps4, stiffness_factor=0.035, delta=0.01, upwind_dir=-np.pi / 2, **kwargs):
    """
    Find the steady state and create the integrator.

    Keyword arguments are passed to the ImplicitEulerIntegrator.
    """
    kps4.clear()
    result = find_steady_state(kps4, delta=delta, stiffness_factor=stiffness_factor, upwind_dir=upwind_dir)
    if not result.success:
        logger.warning("Starting the simulation from a state that is not in equilibrium")
    return ImplicitEulerIntegrator(kps4.residual, result.y0, result.yd0, **kwargs)


def next_step(kps4, integrator, set_speed=None, set_torque=None, v_wind_gnd=None, upwind_dir=-np.pi / 2, dt=None):
    """
    Advance the simulation by one time step.

    Parameters:
    kps4 (KPS4): The model.
    integrator (ImplicitEulerIntegrator): Integrator created by init_sim.
    set_speed (float): Set value of the reel out speed [m/s].
    set_torque (float): Set value of the winch torque [Nm].
    v_wind_gnd (float): Wind speed at reference height [m/s], default from the settings.
    upwind_dir (float): Upwind direction [rad].
    dt (float): Time step [s], default 1 / sample_freq.

    Returns:
    float: The new simulation time [s].

    Raises:
    ValueError: If both set values are given.
    ConfigurationError: If the winch does not support the requested control mode.
    """
    if set_speed is not None and set_torque is not None:
        raise ValueError("Provide either set_speed or set_torque, not both")
    kps4.winch.check_control_mode(select_control_mode(set_speed, set_torque))
    dt = 1.0 / kps4.settings.sample_freq if dt is None else dt
    v_wind_gnd = kps4.settings.v_wind if v_wind_gnd is None else v_wind_gnd

    kps4.iter = 0
    kps4.set_depower_steering(kps4.kcu.depower, kps4.kcu.steering)
    kps4.sync_speed = set_speed
    kps4.set_torque = set_torque
    kps4.set_v_wind_ground(kps4.calc_height(), v_wind_gnd, upwind_dir=upwind_dir)
    kps4.t_0 = integrator.t
    kps4.last_v_reel_out = kps4.v_reel_out

    t = integrator.step(dt)
    # evaluate the accepted state, the outputs must not belong to a rejected trial state
    kps4.calc_residual(integrator.y, integrator.yd, t)

    if kps4.stiffness_factor < 1.0:
        kps4.stiffness_factor = min(1.0, kps4.stiffness_factor + STIFFNESS_INCREMENT)
    _, pitch, _ = kps4.orient_euler()
    kps4.pitch_rate = (pitch - kps4.pitch) / dt
    kps4.pitch = pitch
    return t


@dataclass
class SimulationStep:
    """Values of one time step"""

    time: float  # Simulation time (s)
    kite_position_x: float  # Position of the top particle (m)
    kite_position_y: float  # Position of the top particle (m)
    kite_position_z: float  # Position of the top particle (m)
    elevation: float  # Elevation angle of the kite (rad)
    azimuth: float  # Azimuth angle of the kite (rad)
    tether_length: float  # Unstretched tether length (m)
    reel_out_speed: float  # Reel out speed (m/s)
    winch_force: float  # Tether force at the winch (N)
    lift: float  # Lift of the central surface (N)
    drag: float  # Drag of the kite (N)
    angle_of_attack: float  # Angle of attack at particle B (deg)
    side_slip: float  # Side slip angle (rad)
    stiffness_factor: float  # Stiffness factor of the springs (-)
    iterations: int  # Residual evaluations during the time step (-)


class SimulationLog:
    """Log of the outputs of the model, one entry per time step"""

    def __init__(self):
        self.steps: List[SimulationStep] = []

    def __len__(self):
        return len(self.steps)

    def record(self, kps4, time):
        pos_kite = kps4.pos_kite()
        lift, drag = kps4.lift_drag()
        self.steps.append(
            SimulationStep(
                time=time,
                kite_position_x=pos_kite[0],
                kite_position_y=pos_kite[1],
                kite_position_z=pos_kite[2],
                elevation=kps4.elevation(),
                azimuth=kps4.azimuth(),
                tether_length=kps4.l_tether,
                reel_out_speed=kps4.v_reel_out,
                winch_force=kps4.winch_force(),
                lift=lift,
                drag=drag,
                angle_of_attack=kps4.aero_forces.alpha_2,
                side_slip=kps4.aero_forces.side_slip,
                stiffness_factor=kps4.stiffness_factor,
                iterations=kps4.iter,
            )
        )

    def to_dataframe(self) -> pd.DataFrame:
        """Convert the log to a DataFrame with one row per time step"""
        return pd.DataFrame([asdict(step) for step in self.steps])
