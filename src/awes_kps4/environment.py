from enum import IntEnum

import numpy as np

from awes_kps4.exceptions import ConfigurationError

H_P = 8550.0  # Scale height of the barometric density law [m]


class ProfileLaw(IntEnum):
    EXP = 1
    LOG = 2
    EXPLOG = 3


class AtmosphericModel:
    """Air density and wind profile as function of the height above ground"""

    def __init__(self, settings):
        self.rho_0 = settings.rho_0
        self.h_ref = settings.h_ref
        self.alpha = settings.alpha
        self.z0 = settings.z0
        try:
            self.profile_law = ProfileLaw(settings.profile_law)
        except ValueError as e:
            raise ConfigurationError(f"Invalid profile law {settings.profile_law}, use 1, 2 or 3") from e

    def calc_rho(self, height):
        # Barometric height formula for constant temperature
        return self.rho_0 * np.exp(-height / H_P)

    def calc_wind_factor(self, height, profile_law=None):
        """
        Ratio of the wind speed at `height` and the wind speed at the reference height.

        Parameters:
        height (float): Height above ground [m], must be larger than the surface roughness.
        profile_law (ProfileLaw): Optional override of the configured profile law.

        Returns:
        float: Wind factor [-]
        """
        law = self.profile_law if profile_law is None else ProfileLaw(profile_law)
        if law == ProfileLaw.EXP:
            return (height / self.h_ref) ** self.alpha
        log_factor = np.log(height / self.z0) / np.log(self.h_ref / self.z0)
        if law == ProfileLaw.LOG:
            return log_factor
        exp_factor = (height / self.h_ref) ** self.alpha
        return log_factor + (log_factor - exp_factor)
