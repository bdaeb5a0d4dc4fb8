import logging
from collections import deque

import numpy as np

from awes_kps4.exceptions import ConfigurationError
from awes_kps4.setup.kite import BRIDLE_SPRINGS, KITE_PARTICLES, KITE_SPRINGS, bridle_spring_lengths, kite_masses

logger = logging.getLogger(__name__)


def number_of_points(segments):
    """Anchor, tether particles incl. the KCU and the four kite particles"""
    return segments + KITE_PARTICLES + 1


class SpringNetwork:
    """Springs of the tether and the bridle, stored as flat arrays indexed by spring number"""

    def __init__(self, p1, p2, length, c_spring, damping, n_points=None, tether_springs=0):
        self.p1 = np.asarray(p1, dtype=int)
        self.p2 = np.asarray(p2, dtype=int)
        self.length = np.asarray(length, dtype=float)
        self.c_spring = np.asarray(c_spring, dtype=float)
        self.damping = np.asarray(damping, dtype=float)
        self.n_points = int(n_points) if n_points is not None else int(max(self.p1.max(), self.p2.max())) + 1
        self.tether_springs = tether_springs
        self.validate()

    def __len__(self):
        return len(self.p1)

    @property
    def is_kite(self):
        """Mask of the springs that belong to the bridle and the kite"""
        mask = np.zeros(len(self), dtype=bool)
        mask[self.tether_springs :] = True
        return mask

    @classmethod
    def from_settings(cls, settings, l_tether=None):
        segments = settings.segments
        l_tether = settings.l_tether if l_tether is None else l_tether
        n_springs = segments + KITE_SPRINGS

        p1 = np.empty(n_springs, dtype=int)
        p2 = np.empty(n_springs, dtype=int)
        p1[:segments] = np.arange(segments)
        p2[:segments] = np.arange(1, segments + 1)
        p1[segments:] = BRIDLE_SPRINGS[:, 0] + segments
        p2[segments:] = BRIDLE_SPRINGS[:, 1] + segments

        length = np.zeros(n_springs)
        c_spring = np.zeros(n_springs)
        damping = np.zeros(n_springs)
        network = cls(
            p1,
            p2,
            length,
            c_spring,
            damping,
            n_points=number_of_points(segments),
            tether_springs=segments,
        )
        network.settings = settings
        network.bridle_lengths = bridle_spring_lengths(settings)
        network.rebuild_geometry(l_tether)
        logger.debug(f"Spring network with {n_springs} springs and {network.n_points} points created")
        return network

    def rebuild_geometry(self, l_tether):
        """Recalculate rest lengths and stiffness of all springs for the tether length `l_tether`"""
        settings = self.settings
        segments = self.tether_springs
        if l_tether <= 0:
            raise ConfigurationError(f"Tether length must be positive, got {l_tether}")
        l_0 = l_tether / segments

        self.length[:segments] = l_0
        self.c_spring[:segments] = settings.c_spring / l_0
        self.damping[:segments] = settings.damping / l_0

        l_bridle = self.bridle_lengths
        k_bridle = settings.c_spring * (settings.d_line / settings.d_tether) ** 2
        self.length[segments:] = l_bridle
        self.c_spring[segments:] = k_bridle / l_bridle
        self.damping[segments:] = settings.damping / l_bridle

        if np.any(self.length <= 0):
            raise ConfigurationError("Spring rest lengths must be positive")
        return self

    def validate(self):
        """Check the topology: indices in range, no self loops, every point reachable from the anchor"""
        if not (len(self.p1) == len(self.p2) == len(self.length) == len(self.c_spring) == len(self.damping)):
            raise ConfigurationError("Spring arrays must have the same length")
        if len(self.p1) == 0:
            raise ConfigurationError("Spring network is empty")
        if self.p1.min() < 0 or self.p2.min() < 0:
            raise ConfigurationError("Negative particle index in spring network")
        if max(self.p1.max(), self.p2.max()) >= self.n_points:
            raise ConfigurationError(f"Particle index out of range, the network has {self.n_points} points")
        if np.any(self.p1 == self.p2):
            raise ConfigurationError("Spring connects a particle with itself")

        neighbours = [[] for _ in range(self.n_points)]
        for a, b in zip(self.p1, self.p2):
            neighbours[a].append(b)
            neighbours[b].append(a)
        visited = np.zeros(self.n_points, dtype=bool)
        visited[0] = True
        queue = deque([0])
        while queue:
            for nxt in neighbours[queue.popleft()]:
                if not visited[nxt]:
                    visited[nxt] = True
                    queue.append(nxt)
        if not visited.all():
            raise ConfigurationError(f"Particles {np.flatnonzero(~visited)} are not connected to the anchor")


class MassModel:
    """Point masses of the tether particles, the KCU and the kite particles"""

    def __init__(self, settings, l_tether=None, kcu=None):
        self.settings = settings
        self.kcu_mass = settings.kcu_mass if kcu is None else kcu.mass
        self.masses = np.zeros(number_of_points(settings.segments))
        self.rebuild(settings.l_tether if l_tether is None else l_tether)

    def rebuild(self, l_tether):
        settings = self.settings
        segments = settings.segments
        m_tether_particle = settings.mass_per_meter * l_tether / segments

        self.masses[:segments] = m_tether_particle
        self.masses[segments] = self.kcu_mass + 0.5 * m_tether_particle
        self.masses[segments + 1 :] = kite_masses(settings)

        if np.any(self.masses <= 0):
            raise ConfigurationError(f"Particle masses must be positive, got {self.masses}")
        return self.masses
