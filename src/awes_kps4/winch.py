from abc import ABC, abstractmethod
from enum import Enum
import logging

import numpy as np

from awes_kps4.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

SMOOTH_SIGN_EPS = 6.0  # Width of the smoothed sign function [rad/s]
BRAKE_SPEED = 0.01  # Below this reel out speed an engaged brake holds the drum [m/s]


class ControlMode(Enum):
    SPEED = "speed"
    TORQUE = "torque"
    BRAKE = "brake"


def smooth_sign(x, eps=SMOOTH_SIGN_EPS):
    # Differentiable approximation of sign(x)
    return x / np.sqrt(x * x + eps * eps)


def select_control_mode(set_speed=None, set_torque=None):
    """
    Select the control mode of the winch from the available inputs.

    A set speed of zero or the absence of any input engages the brake.
    """
    if set_speed is not None:
        if set_speed == 0.0:
            return ControlMode.BRAKE
        return ControlMode.SPEED
    if set_torque is not None:
        return ControlMode.TORQUE
    return ControlMode.BRAKE


class WinchModel(ABC):
    """Drum, gearbox and electrical machine, converts the tether force into the reel out acceleration"""

    control_modes = (ControlMode.BRAKE,)

    def __init__(self, settings):
        self.drum_radius = settings.drum_radius
        self.gear_ratio = settings.gear_ratio
        self.inertia_total = settings.inertia_total
        self.f_coulomb = settings.f_coulomb
        self.c_vf = settings.c_vf
        self.v_ro_max = settings.v_ro_max
        self.v_ro_min = settings.v_ro_min
        if self.drum_radius <= 0 or self.gear_ratio <= 0 or self.inertia_total <= 0:
            raise ConfigurationError("drum_radius, gear_ratio and inertia_total must be positive")

    def calc_omega(self, speed):
        """Angular velocity of the motor [rad/s] for the reel out speed `speed`"""
        return self.gear_ratio / self.drum_radius * speed

    def calc_friction(self, speed):
        """Coulomb and viscous friction at the drum [N]"""
        return self.f_coulomb * smooth_sign(self.calc_omega(speed)) + self.c_vf * speed

    def check_control_mode(self, mode):
        """Raise a ConfigurationError if the machine cannot follow the set value of the control mode `mode`"""
        if mode not in self.control_modes:
            supported = ", ".join(m.value for m in self.control_modes)
            raise ConfigurationError(f"{type(self).__name__} does not support {mode.value} control, use one of: {supported}")

    @abstractmethod
    def calc_motor_torque(self, speed, set_speed=None, set_torque=None):
        pass

    def calc_acceleration(self, speed, force, set_speed=None, set_torque=None, use_brake=False):
        """
        Reel out acceleration of the winch.

        Parameters:
        speed (float): Reel out speed [m/s].
        force (float): Tether force at the winch [N].
        set_speed (float): Set value of the reel out speed [m/s], used by speed controlled machines.
        set_torque (float): Set value of the motor torque [Nm], used by torque controlled machines.
        use_brake (bool): Engage the holding brake.

        Returns:
        float: Reel out acceleration [m/s^2]

        Raises:
        ConfigurationError: If the machine does not support the requested control mode.
        """
        self.check_control_mode(ControlMode.BRAKE if use_brake else select_control_mode(set_speed, set_torque))
        if use_brake and abs(speed) < BRAKE_SPEED:
            return 0.0
        tau_motor = self.calc_motor_torque(speed, set_speed, set_torque)
        k = self.drum_radius / self.gear_ratio
        omega_dot = (tau_motor + k * (force - self.calc_friction(speed))) / self.inertia_total
        return k * omega_dot


class AsyncMachine(WinchModel):
    """Speed controlled asynchronous machine, torque from the Kloss formula"""

    control_modes = (ControlMode.SPEED, ControlMode.BRAKE)

    def __init__(self, settings):
        super().__init__(settings)
        self.tau_b = settings.tau_b  # breakdown torque
        self.omega_sn = settings.omega_sn  # slip at the breakdown torque

    def calc_motor_torque(self, speed, set_speed=None, set_torque=None):
        set_speed = 0.0 if set_speed is None else np.clip(set_speed, self.v_ro_min, self.v_ro_max)
        delta = self.calc_omega(set_speed) - self.calc_omega(speed)
        return 2.0 * self.tau_b * delta * self.omega_sn / (delta**2 + self.omega_sn**2)


class TorqueControlledMachine(WinchModel):
    """Machine with an ideal torque controller"""

    control_modes = (ControlMode.TORQUE, ControlMode.BRAKE)

    def calc_motor_torque(self, speed, set_speed=None, set_torque=None):
        return 0.0 if set_torque is None else set_torque


winch_models = {
    "AsyncMachine": AsyncMachine,
    "TorqueControlledMachine": TorqueControlledMachine,
}


def create_winch_model(settings):
    if settings.winch_model in winch_models:
        logger.debug(f"Using winch model {settings.winch_model}")
        return winch_models[settings.winch_model](settings)
    raise ConfigurationError(f"Invalid winch model {settings.winch_model}, use one of {list(winch_models)}")
