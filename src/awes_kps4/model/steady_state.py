import logging
from dataclasses import dataclass

import numpy as np
from scipy.optimize import least_squares

logger = logging.getLogger(__name__)

PENALTY = 1e6  # Objective value of a state for which the residual cannot be evaluated


@dataclass
class SteadyStateResult:
    """Result of the steady state finder"""

    y0: np.ndarray  # Initial state vector
    yd0: np.ndarray  # Derivative of the initial state vector
    success: bool  # True if the solver converged
    message: str  # Status message of the solver
    nfev: int  # Number of objective evaluations
    cost: float  # Final value of the cost function


def steady_state_objective(X, kps4, delta=0.01):
    """
    Accelerations of the particles for the particle offsets `X`.

    Returns the x, y and z accelerations of all points except the anchor, in the order of
    the offsets, so the least squares problem is square.
    """
    n_pos = 3 * (kps4.n_points - 1)
    y0, yd0 = kps4.init_state(X, delta)
    result = kps4.try_residual(y0, yd0, 0.0)
    if not result.ok:
        return np.full(n_pos, PENALTY)
    return result.residual[n_pos : 2 * n_pos].copy()


def find_steady_state(kps4, delta=0.01, stiffness_factor=0.035, upwind_dir=-np.pi / 2, max_iter=None):
    """
    Find an initial equilibrium for the initial tether length, elevation and reel out speed.

    Parameters:
    kps4 (KPS4): The model; its wind and stiffness factor are modified.
    delta (float): Small value, used as initial velocity and acceleration.
    stiffness_factor (float): Reduced stiffness, used while searching the equilibrium.
    upwind_dir (float): Upwind direction of the returned state [rad].
    max_iter (int): Max. number of objective evaluations, default from the settings.

    Returns:
    SteadyStateResult: Initial state; convergence failures are reported, not raised.
    """
    max_iter = kps4.settings.max_iter if max_iter is None else max_iter
    height = kps4.calc_height()
    kps4.set_v_wind_ground(height, kps4.settings.v_wind, upwind_dir=-np.pi / 2)
    kps4.stiffness_factor = stiffness_factor

    X00 = np.zeros(3 * (kps4.n_points - 1))
    logger.info("Searching steady state...")
    opt_res = least_squares(
        steady_state_objective,
        X00,
        args=(kps4, delta),
        x_scale="jac",
        xtol=4e-7,
        ftol=4e-7,
        max_nfev=max_iter,
        verbose=0,
    )
    if opt_res.success:
        logger.info(f"Steady state found after {opt_res.nfev} evaluations, cost {opt_res.cost:.3e}")
    else:
        logger.warning(f"Steady state not found after {opt_res.nfev} evaluations: {opt_res.message}")

    # same offsets, velocities and wind as in the objective, rotated to the requested direction
    y0, yd0 = kps4.init_state(opt_res.x, delta, upwind_dir=upwind_dir)
    kps4.set_v_wind_ground(height, kps4.settings.v_wind, upwind_dir=upwind_dir)
    final = kps4.try_residual(y0, yd0, 0.0)
    if final.ok:
        kps4.set_state(y0)
    else:
        logger.warning(f"Residual of the steady state cannot be evaluated: {final.error}")
    return SteadyStateResult(
        y0=y0,
        yd0=yd0,
        success=bool(opt_res.success),
        message=str(opt_res.message),
        nfev=int(opt_res.nfev),
        cost=float(opt_res.cost),
    )
