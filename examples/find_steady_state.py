import logging

import numpy as np

from awes_kps4 import KPS4, find_steady_state, load_settings

logging.basicConfig(level=logging.INFO)

settings = load_settings("data/config/kps4.yaml")
kps4 = KPS4(settings)

result = find_steady_state(kps4, stiffness_factor=0.035)
print(f"success: {result.success}, evaluations: {result.nfev}, cost: {result.cost:.3e}")
print(f"height of the kite: {kps4.calc_height():.2f} m")
print(f"elevation: {np.rad2deg(kps4.elevation()):.2f} deg")
print(f"winch force: {kps4.winch_force():.2f} N")
print("spring forces [N]:", np.round(kps4.spring_forces(), 1))
