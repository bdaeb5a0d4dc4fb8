"""
Implicit Euler stepper for DAEs in residual form F(y, yd, t) = 0.

Each step solves F(y_new, (y_new - y_prev) / h, t + h) = 0 for y_new. If the residual
cannot be evaluated or the root finder does not converge, the step size is halved.
"""

import logging

import numpy as np
from scipy.optimize import root

from awes_kps4.exceptions import ConfigurationError, KiteModelError

logger = logging.getLogger(__name__)


class ImplicitEulerIntegrator:
    """Reference integrator for residual functions with the signature residual(res, yd, y, time)"""

    def __init__(self, residual, y0, yd0, t0=0.0, tol=1e-8, max_halvings=6, method="hybr"):
        self.residual = residual
        self.y = np.array(y0, dtype=float)
        self.yd = np.array(yd0, dtype=float)
        self.t = t0
        self.tol = tol
        self.max_halvings = max_halvings
        self.method = method
        self.n_steps = 0  # number of accepted sub steps

    def _solve(self, y_prev, h, t_new):
        res = np.zeros_like(y_prev)

        def fun(y_new):
            self.residual(res, (y_new - y_prev) / h, y_new, t_new)
            return res.copy()

        guess = y_prev + h * self.yd
        sol = root(fun, guess, method=self.method, tol=self.tol)
        # hybr may stop with "not making good progress" exactly at the root
        success = sol.success or bool(np.all(np.isfinite(sol.x)) and np.max(np.abs(fun(sol.x))) <= self.tol)
        return success, sol.x, sol.message

    def step(self, dt):
        """
        Advance the solution by `dt`.

        Returns:
        float: The new time [s].

        Raises:
        RuntimeError: If no step size down to dt / 2**max_halvings succeeds.
        """
        t_end = self.t + dt
        h = dt
        halvings = 0
        while t_end - self.t > 1e-12 * max(1.0, abs(t_end)):
            h = min(h, t_end - self.t)
            try:
                success, y_new, message = self._solve(self.y, h, self.t + h)
            except ConfigurationError:
                raise
            except KiteModelError as e:
                success, message = False, str(e)
            if not success:
                halvings += 1
                if halvings > self.max_halvings:
                    raise RuntimeError(f"Implicit Euler step failed at t = {self.t:.4f} s: {message}")
                h *= 0.5
                logger.debug(f"Step failed at t = {self.t:.4f} s ({message}), retry with h = {h:.3e} s")
                continue
            self.yd = (y_new - self.y) / h
            self.y = y_new
            self.t += h
            self.n_steps += 1
        return self.t
