import logging
import time

from awes_kps4 import KPS4, SimulationLog, init_sim, load_settings, next_step

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

# %% User parameters
DT = 0.05  # Time step [s]
STEPS = 600
ALPHA_ZERO = 8.8  # Angle of attack offset of the central surface [deg]
ACC = 0.1  # Reel out acceleration after 15 s [m/s^2]

settings = load_settings("data/config/kps4.yaml", alpha_zero=ALPHA_ZERO, version=2)
kps4 = KPS4(settings)

# %% Simulation
integrator = init_sim(kps4, stiffness_factor=0.5)
log = SimulationLog()

v_ro = 0.0
start = time.perf_counter()
for i in range(STEPS):
    if kps4.t_0 > 15.0:
        v_ro += ACC * DT
    t = next_step(kps4, integrator, set_speed=v_ro, dt=DT)
    log.record(kps4, t)
runtime = time.perf_counter() - start

df = log.to_dataframe()
lift, drag = kps4.lift_drag()
print(f"Total simulation time: {runtime:.3f} s, {STEPS * DT / runtime:.2f} times realtime")
print(f"lift, drag [N]: {lift:.2f}, {drag:.2f}")
print(f"Average number of residual evaluations per time step: {df['iterations'].mean():.1f}")
print(df[["time", "reel_out_speed", "winch_force", "tether_length"]].tail())
