from dataclasses import replace

import numpy as np
import pytest

from awes_kps4.exceptions import ConfigurationError
from awes_kps4.model.kps4 import KPS4, ResidualResult
from awes_kps4.model.steady_state import PENALTY, SteadyStateResult, find_steady_state, steady_state_objective
from awes_kps4.simulation.simulator import STIFFNESS_INCREMENT, SimulationLog, next_step


class FrozenIntegrator:
    """Integrator stub that keeps the state and only advances the time"""

    def __init__(self, y, yd):
        self.y, self.yd, self.t = y, yd, 0.0

    def step(self, dt):
        self.t += dt
        return self.t


def test_steady_state_objective(kps4):
    n = 3 * (kps4.n_points - 1)
    F = steady_state_objective(np.zeros(n), kps4)
    assert F.shape == (n,)
    assert np.all(np.isfinite(F))


def test_steady_state_objective_penalty(kps4, monkeypatch):
    monkeypatch.setattr(kps4, "try_residual", lambda y, yd, time: ResidualResult(ok=False))
    F = steady_state_objective(np.zeros(3 * (kps4.n_points - 1)), kps4)
    assert np.all(F == PENALTY)


def test_find_steady_state_reports_status(settings):
    kps4 = KPS4(replace(settings, segments=2))
    result = find_steady_state(kps4, max_iter=3)
    assert isinstance(result, SteadyStateResult)
    assert len(result.y0) == len(result.yd0) == kps4.n_state
    assert isinstance(result.success, bool)
    assert result.nfev >= 1
    assert np.isfinite(result.cost)
    assert kps4.stiffness_factor == 0.035


@pytest.mark.parametrize("upwind_dir", [-np.pi / 2, 0.0])
def test_find_steady_state_is_in_equilibrium(kps4, upwind_dir):
    result = find_steady_state(kps4, upwind_dir=upwind_dir)
    assert result.success
    res = kps4.calc_residual(result.y0, result.yd0)
    n = 3 * (kps4.n_points - 1)
    acc = np.reshape(res[n : 2 * n], (-1, 3))
    # every point except the anchor, the kite particles included
    assert acc.shape == (kps4.n_points - 1, 3)
    assert np.max(np.abs(acc)) < 0.05
    assert np.allclose(res[:n], 0.0)


def test_next_step(kps4, settings):
    y0, yd0 = kps4.init_state()
    kps4.stiffness_factor = 0.5
    integrator = FrozenIntegrator(y0, yd0)
    t = next_step(kps4, integrator, set_speed=1.0, dt=0.05)
    assert np.isclose(t, 0.05)
    assert kps4.sync_speed == 1.0
    assert kps4.set_torque is None
    assert np.isclose(kps4.stiffness_factor, 0.5 + STIFFNESS_INCREMENT)
    assert kps4.iter == 1
    # the pitch does not change for a frozen state
    assert np.isclose(kps4.pitch_rate, 0.0, atol=1e-9)


def test_next_step_stiffness_limit(settings):
    kps4 = KPS4(replace(settings, winch_model="TorqueControlledMachine"))
    y0, yd0 = kps4.init_state()
    kps4.stiffness_factor = 0.995
    next_step(kps4, FrozenIntegrator(y0, yd0), set_torque=-10.0)
    assert kps4.stiffness_factor == 1.0
    assert kps4.sync_speed is None
    assert kps4.set_torque == -10.0


def test_next_step_rejects_two_set_values(kps4):
    y0, yd0 = kps4.init_state()
    with pytest.raises(ValueError):
        next_step(kps4, FrozenIntegrator(y0, yd0), set_speed=1.0, set_torque=1.0)


def test_next_step_rejects_unsupported_control_mode(kps4):
    y0, yd0 = kps4.init_state()
    integrator = FrozenIntegrator(y0, yd0)
    with pytest.raises(ConfigurationError):
        next_step(kps4, integrator, set_torque=-10.0)
    # the inputs of the model are not changed
    assert kps4.set_torque is None
    assert integrator.t == 0.0


def test_simulation_log(kps4):
    y0, yd0 = kps4.init_state()
    integrator = FrozenIntegrator(y0, yd0)
    log = SimulationLog()
    for _ in range(3):
        t = next_step(kps4, integrator, set_speed=0.0, dt=0.1)
        log.record(kps4, t)
    df = log.to_dataframe()
    assert len(log) == len(df) == 3
    assert np.allclose(df["time"], [0.1, 0.2, 0.3])
    assert (df["winch_force"] > 0).all()
    assert np.allclose(df["tether_length"], kps4.settings.l_tether)
