import numpy as np


class KCU:
    """Kite control unit: point mass with drag at the end of the tether, actuates depower and steering"""

    def __init__(self, settings):
        self.settings = settings
        self.mass = settings.kcu_mass
        self.diameter = settings.kcu_diameter
        self.cd = settings.cd_kcu
        self.area = np.pi * (self.diameter / 2) ** 2  # frontal area of the KCU

        # Initial actuator positions
        self.depower = settings.depower / 100.0
        self.steering = 0.0

    def calc_alpha_depower(self, depower):
        """
        Change of the angle of attack of the central surface due to depowering.

        Parameters:
        depower (float): Relative depower setting [0..1].

        Returns:
        float: Depower angle [rad], zero at the depower offset.
        """
        return (depower - self.settings.depower_offset / 100.0) * np.deg2rad(self.settings.alpha_d_max)

    def calc_effective_steering(self, steering, alpha_depower):
        # Steering sensitivity decreases when the kite is depowered
        settings = self.settings
        return (steering - settings.c0) / (1.0 + settings.k_ds * (alpha_depower / np.deg2rad(settings.alpha_d_max)))

    def calc_drag(self, v_perp, rho):
        """Drag force of the KCU for the apparent wind `v_perp` perpendicular to the last tether segment"""
        return 0.25 * rho * self.cd * np.linalg.norm(v_perp) * self.area * v_perp
