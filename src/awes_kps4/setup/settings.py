import yaml
import numpy as np
from dataclasses import dataclass, fields, replace
import logging
import os

from awes_kps4.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# %% Define physical parameters
G_EARTH = 9.81  # Gravity acceleration [m/s^2]
RHO_0 = 1.225  # Air density at sea level [kg/m^3]

DEFAULT_CONFIG = os.path.join("data", "config", "kps4.yaml")

REQUIRED_SECTIONS = ["system", "initial", "kite", "kps4", "bridle", "kcu", "tether", "winch", "environment"]


# Load the configuration file
def load_config(config_path=DEFAULT_CONFIG):
    """Read a yaml configuration file and return the raw nested dictionary"""
    with open(config_path, "r") as file:
        config_data = yaml.safe_load(file)

    if not validate_config(config_data):
        raise ConfigurationError(f"Configuration file {config_path} is missing required data.")

    logger.info("Configuration loaded from: %s", config_path)
    return config_data


def validate_config(config_data):
    # Ensure that all required sections are present
    if not isinstance(config_data, dict):
        return False
    return all(key in config_data for key in REQUIRED_SECTIONS)


def load_settings(config_path=DEFAULT_CONFIG, **overrides):
    """Load the settings from a yaml file; keyword arguments override single values"""
    settings = Settings.from_dict(load_config(config_path))
    if overrides:
        settings = replace(settings, **overrides)
    return settings


@dataclass(frozen=True)
class Settings:
    """Immutable set of parameters of the kite power system"""

    # system
    segments: int = 6  # number of tether segments [-]
    sample_freq: float = 20.0  # sample frequency of the simulation [Hz]
    # initial state
    l_tether: float = 150.0  # initial tether length [m]
    v_reel_out: float = 0.0  # initial reel out speed [m/s]
    elevation: float = 70.8  # initial elevation angle [deg]
    depower: float = 25.0  # initial depower setting [%]
    max_iter: int = 1000  # max. number of residual evaluations of the steady state finder
    # steering
    c0: float = 0.0  # steering offset [-]
    k_ds: float = 1.5  # influence of the depower angle on the steering sensitivity [-]
    max_steering: float = 16.83  # max. steering angle of the side planes [deg]
    # depower
    alpha_d_max: float = 31.0  # max. depower angle [deg]
    depower_offset: float = 23.6  # depower setting that results in a depower angle of zero [%]
    # kite
    version: int = 2  # coefficient set of the four point model (1, 2 or 3)
    mass: float = 6.2  # kite mass incl. sensor unit [kg]
    area: float = 10.18  # projected kite area [m^2]
    rel_side_area: float = 30.6  # relative side area [%]
    height_k: float = 2.23  # height of the kite (without bridle) [m]
    alpha_cl: tuple = (-180.0, -160.0, -90.0, -20.0, -10.0, -5.0, 0.0, 20.0, 40.0, 90.0, 160.0, 180.0)
    cl_list: tuple = (0.0, 0.5, 0.0, 0.08, 0.125, 0.15, 0.2, 1.0, 1.0, 0.0, -0.5, 0.0)
    alpha_cd: tuple = (-180.0, -170.0, -140.0, -90.0, -20.0, 0.0, 20.0, 90.0, 140.0, 170.0, 180.0)
    cd_list: tuple = (0.5, 0.5, 0.5, 1.0, 0.2, 0.1, 0.2, 1.0, 0.5, 0.5, 0.5)
    # four point kite model
    width: float = 8.16  # width of the kite [m]
    alpha_zero: float = 4.0  # angle of attack offset of the central surface [deg]
    alpha_ztip: float = 10.0  # angle of attack offset of the side surfaces [deg]
    m_k: float = 0.2  # relative nose distance [-]
    rel_nose_mass: float = 0.47  # relative nose mass [-]
    rel_top_mass: float = 0.4  # mass of the top particle relative to the sum of top and side particles [-]
    smc: float = 0.014  # steering moment coefficient [-]
    cmq: float = 0.0  # pitch rate dependent moment coefficient [-]
    cord_length: float = 2.0  # average aerodynamic cord length of the kite [m]
    # bridle
    d_line: float = 2.5  # bridle line diameter [mm]
    h_bridle: float = 4.9  # height of the bridle [m]
    l_bridle: float = 33.4  # sum of the lengths of the bridle lines [m]
    rel_compr_stiffness: float = 0.25  # relative compression stiffness of the kite springs [-]
    rel_damping: float = 6.0  # relative damping of the kite springs [-]
    # kite control unit
    kcu_mass: float = 8.4  # mass of the kite control unit [kg]
    kcu_diameter: float = 0.4  # diameter of the kite control unit for drag calculation [m]
    cd_kcu: float = 0.47  # drag coefficient of the kite control unit [-]
    # tether
    d_tether: float = 4.0  # tether diameter [mm]
    cd_tether: float = 0.958  # drag coefficient of the tether [-]
    damping: float = 473.0  # unit damping coefficient [Ns]
    c_spring: float = 614600.0  # unit spring constant [N]
    rel_compr_tether: float = 0.1  # relative compression stiffness of the tether springs [-]
    rho_tether: float = 724.0  # density of the tether material [kg/m^3]
    # winch
    winch_model: str = "AsyncMachine"  # AsyncMachine or TorqueControlledMachine
    max_force: float = 4000.0  # max. tether force, only used for overload warnings [N]
    v_ro_max: float = 8.0  # max. reel out speed [m/s]
    v_ro_min: float = -8.0  # min. reel out speed [m/s]
    drum_radius: float = 0.1615  # radius of the drum [m]
    gear_ratio: float = 6.2  # gear ratio of the winch [-]
    inertia_total: float = 0.204  # inertia of motor, gearbox and drum at the motor side [kgm^2]
    f_coulomb: float = 122.0  # Coulomb friction [N]
    c_vf: float = 30.6  # viscous friction coefficient [Ns/m]
    tau_b: float = 121.0  # breakdown torque of the asynchronous machine [Nm]
    omega_sn: float = 3.0  # slip at the breakdown torque [rad/s]
    # environment
    v_wind: float = 9.51  # wind speed at reference height [m/s]
    h_ref: float = 6.0  # reference height for the wind speed [m]
    rho_0: float = RHO_0  # air density at ground level [kg/m^3]
    alpha: float = 0.08163  # exponent of the wind profile law [-]
    z0: float = 0.0002  # surface roughness [m]
    profile_law: int = 3  # 1 = EXP, 2 = LOG, 3 = EXPLOG
    g_earth: float = G_EARTH  # gravitational acceleration [m/s^2]

    def __post_init__(self):
        # Tables are stored as tuples of floats
        for name in ("alpha_cl", "cl_list", "alpha_cd", "cd_list"):
            object.__setattr__(self, name, tuple(float(v) for v in getattr(self, name)))

        if int(self.segments) < 1:
            raise ConfigurationError(f"segments must be at least 1, got {self.segments}")
        if self.l_tether <= 0:
            raise ConfigurationError(f"l_tether must be positive, got {self.l_tether}")
        if self.version not in (1, 2, 3):
            raise ConfigurationError(f"Invalid version {self.version}, use 1, 2 or 3")
        if len(self.alpha_cl) != len(self.cl_list) or len(self.alpha_cd) != len(self.cd_list):
            raise ConfigurationError("Aerodynamic tables must have the same number of angles and coefficients")
        for name in ("mass", "kcu_mass", "d_tether", "rho_tether", "c_spring", "area", "h_ref", "z0", "rho_0"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")

    @classmethod
    def from_dict(cls, config_data):
        """Create the settings from the nested dictionary of a configuration file"""
        names = {f.name for f in fields(cls)}
        kwargs = {}
        for section, values in config_data.items():
            if not isinstance(values, dict):
                continue
            for key, value in values.items():
                if key in names:
                    kwargs[key] = value
                else:
                    logger.debug("Ignoring unknown setting %s.%s", section, key)
        return cls(**kwargs)

    @property
    def mass_per_meter(self):
        """Mass of the tether per meter [kg/m]"""
        if self.version == 1:
            # fixed tether mass of coefficient set 1
            return 0.011
        return self.rho_tether * np.pi * (self.d_tether / 2000.0) ** 2

    @property
    def drag_corr(self):
        """Correction of the kite drag for the four point model"""
        if self.version == 3:
            return 1.0
        return DRAG_CORR


DRAG_CORR = 0.93
