from .exceptions import ConfigurationError, DegenerateGeometry, DegenerateWind, KiteModelError, NonFiniteResidual
from .setup.settings import Settings, load_settings
from .environment import AtmosphericModel, ProfileLaw
from .kcu import KCU
from .winch import AsyncMachine, ControlMode, TorqueControlledMachine, WinchModel, create_winch_model
from .model.kps4 import KPS4, ResidualResult
from .model.steady_state import SteadyStateResult, find_steady_state
from .simulation.integrator import ImplicitEulerIntegrator
from .simulation.simulator import SimulationLog, init_sim, next_step
