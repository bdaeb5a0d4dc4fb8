from dataclasses import replace

import numpy as np
import pytest

from awes_kps4.exceptions import ConfigurationError
from awes_kps4.setup.kite import (
    BRIDLE_SPRINGS,
    KITE_SPRINGS,
    PRE_STRESS,
    bridle_length,
    bridle_spring_lengths,
    get_particles,
    kite_masses,
)
from awes_kps4.setup.tether import MassModel, SpringNetwork, number_of_points


def test_get_particles_geometry(settings):
    particles = get_particles(settings.height_k, settings.h_bridle, settings.width, settings.m_k)
    origin, pod, A, B, C, D = particles
    assert np.allclose(origin, 0.0)
    assert np.allclose(pod, [75.0, 0.0, 129.90381057])
    assert np.isclose(np.linalg.norm(B - pod), settings.height_k + settings.h_bridle)
    assert np.isclose(np.linalg.norm(C - D), settings.width)
    assert np.isclose(np.linalg.norm(A - B), settings.width * settings.m_k)
    # the side particles are symmetric to the plane of the tether
    assert np.isclose(C[1], -D[1])
    assert B[2] > pod[2]


def test_spring_network_topology(settings):
    springs = SpringNetwork.from_settings(settings)
    segments = settings.segments
    assert len(springs) == segments + KITE_SPRINGS
    assert springs.n_points == number_of_points(segments) == segments + 5
    assert np.array_equal(springs.p1[:segments], np.arange(segments))
    assert np.array_equal(springs.p2[:segments], np.arange(1, segments + 1))
    assert np.array_equal(springs.p1[segments:], BRIDLE_SPRINGS[:, 0] + segments)
    assert np.array_equal(springs.p2[segments:], BRIDLE_SPRINGS[:, 1] + segments)
    assert not springs.is_kite[:segments].any()
    assert springs.is_kite[segments:].all()


def test_spring_parameters(settings):
    springs = SpringNetwork.from_settings(settings)
    segments = settings.segments
    l_0 = settings.l_tether / segments
    assert np.allclose(springs.length[:segments], l_0)
    assert np.allclose(springs.c_spring[:segments], settings.c_spring / l_0)
    assert np.allclose(springs.damping[:segments], settings.damping / l_0)

    particles = get_particles(settings.height_k, settings.h_bridle, settings.width, settings.m_k)
    p0, p1 = BRIDLE_SPRINGS[0]
    expected = PRE_STRESS * np.linalg.norm(particles[p1 + 1] - particles[p0 + 1])
    assert np.isclose(springs.length[segments], expected)
    k_bridle = settings.c_spring * (settings.d_line / settings.d_tether) ** 2
    assert np.allclose(springs.c_spring[segments:], k_bridle / springs.length[segments:])


def test_rebuild_geometry_is_idempotent(settings):
    springs = SpringNetwork.from_settings(settings)
    springs.rebuild_geometry(180.0)
    first = (springs.length.copy(), springs.c_spring.copy(), springs.damping.copy())
    springs.rebuild_geometry(180.0)
    assert np.array_equal(first[0], springs.length)
    assert np.array_equal(first[1], springs.c_spring)
    assert np.array_equal(first[2], springs.damping)


def test_rebuild_geometry_keeps_bridle(settings):
    springs = SpringNetwork.from_settings(settings)
    bridle = springs.length[settings.segments :].copy()
    springs.rebuild_geometry(300.0)
    assert np.allclose(springs.length[: settings.segments], 50.0)
    assert np.array_equal(springs.length[settings.segments :], bridle)


def test_rebuild_geometry_invalid_length(settings):
    springs = SpringNetwork.from_settings(settings)
    with pytest.raises(ConfigurationError):
        springs.rebuild_geometry(0.0)


@pytest.mark.parametrize("p1, p2, n_points", [
    ([0, 1], [1, 1], 2),  # self loop
    ([0, 1], [1, 3], 3),  # index out of range
    ([0, 2], [1, 3], 4),  # points 2 and 3 not connected to the anchor
    ([0, -1], [1, 0], 2),  # negative index
])
def test_invalid_topology(p1, p2, n_points):
    with pytest.raises(ConfigurationError):
        SpringNetwork(p1, p2, [1.0, 1.0], [1.0, 1.0], [0.0, 0.0], n_points=n_points)


def test_bridle_length(settings):
    lengths = bridle_spring_lengths(settings)
    assert len(lengths) == KITE_SPRINGS
    assert np.all(lengths > 0)
    assert np.isclose(np.sum(lengths), PRE_STRESS * bridle_length(settings))


@pytest.mark.parametrize("segments", [1, 2, 20])
@pytest.mark.parametrize("l_tether", [1e-3, 1.0, 150.0, 1e4])
def test_masses_positive(settings, segments, l_tether):
    settings = replace(settings, segments=segments, l_tether=l_tether)
    model = MassModel(settings)
    assert len(model.masses) == number_of_points(segments)
    assert np.all(model.masses > 0)
    # also after changing the tether length
    for length in (1e-3, 1.0, 1e4):
        assert np.all(model.rebuild(length) > 0)


def test_mass_distribution(settings):
    masses = MassModel(settings).masses
    segments = settings.segments
    m_tether_particle = settings.mass_per_meter * settings.l_tether / segments
    assert np.allclose(masses[:segments], m_tether_particle)
    assert np.isclose(masses[segments], settings.kcu_mass + 0.5 * m_tether_particle)
    assert np.isclose(np.sum(masses[segments + 1 :]), settings.mass)
    assert np.isclose(masses[segments + 1], settings.rel_nose_mass * settings.mass)
    assert np.isclose(masses[segments + 3], masses[segments + 4])


def test_masses_follow_tether_length(settings):
    model = MassModel(settings)
    m_150 = model.masses[0]
    model.rebuild(300.0)
    assert np.isclose(model.masses[0], 2 * m_150)


@pytest.mark.parametrize("overrides", [
    {"rel_nose_mass": 1.0},
    {"rel_top_mass": 1.0},
])
def test_zero_kite_mass(settings, overrides):
    with pytest.raises(ConfigurationError):
        kite_masses(replace(settings, **overrides))
