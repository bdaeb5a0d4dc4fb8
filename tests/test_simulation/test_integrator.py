import numpy as np
import pytest

from awes_kps4.exceptions import ConfigurationError, DegenerateGeometry
from awes_kps4.simulation.integrator import ImplicitEulerIntegrator

G = 9.81


def falling_mass(res, yd, y, time):
    # y = [height, velocity]
    res[0] = y[1] - yd[0]
    res[1] = yd[1] + G


def test_falling_mass():
    integrator = ImplicitEulerIntegrator(falling_mass, [0.0, 0.0], [0.0, -G])
    dt, n = 0.01, 100
    for _ in range(n):
        integrator.step(dt)
    assert np.isclose(integrator.t, 1.0)
    assert np.isclose(integrator.y[1], -G * n * dt)
    # implicit Euler uses the velocity at the end of each step
    assert np.isclose(integrator.y[0], -G * dt**2 * n * (n + 1) / 2)
    assert np.allclose(integrator.yd, [integrator.y[1], -G])


def test_step_is_halved_after_failures():
    calls = {"n": 0}

    def flaky(res, yd, y, time):
        calls["n"] += 1
        if calls["n"] <= 2:
            raise DegenerateGeometry("not yet")
        falling_mass(res, yd, y, time)

    integrator = ImplicitEulerIntegrator(flaky, [0.0, 0.0], [0.0, -G])
    t = integrator.step(0.1)
    assert np.isclose(t, 0.1)
    assert integrator.n_steps == 4
    assert np.isclose(integrator.y[1], -G * 0.1)


def test_step_fails_after_max_halvings():
    def broken(res, yd, y, time):
        raise DegenerateGeometry("always")

    integrator = ImplicitEulerIntegrator(broken, [0.0, 0.0], [0.0, 0.0], max_halvings=2)
    with pytest.raises(RuntimeError):
        integrator.step(0.1)
    assert integrator.t == 0.0


@pytest.mark.parametrize("dt", [0.01, 0.025, 0.05, 0.1])
def test_step_accepts_solved_state(dt):
    integrator = ImplicitEulerIntegrator(falling_mass, [0.0, 0.0], [0.0, -G])
    t = integrator.step(dt)
    assert np.isclose(t, dt)
    assert integrator.n_steps == 1
    assert np.isclose(integrator.y[1], -G * dt)
    assert np.isclose(integrator.y[0], -G * dt**2)


def test_configuration_error_is_not_retried():
    calls = {"n": 0}

    def misconfigured(res, yd, y, time):
        calls["n"] += 1
        raise ConfigurationError("unsupported control mode")

    integrator = ImplicitEulerIntegrator(misconfigured, [0.0, 0.0], [0.0, 0.0])
    with pytest.raises(ConfigurationError):
        integrator.step(0.1)
    assert calls["n"] == 1
