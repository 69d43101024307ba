import math

import equinox as eqx
import jax
import jax.numpy as jnp
import numpy as np


# Potentials and rates are stored as jax arrays so that filter_jit traces them;
# a new program with the same structure reuses the compiled vector field.
def _as_leaf(value: float) -> jax.Array:
    jax.config.update("jax_enable_x64", True)
    return jnp.asarray(value, dtype=float)


class ConstantPotential(eqx.Module):
    """Potentiostatic hold."""

    E: jax.Array

    def __init__(self, E: float):
        E = float(E)
        if not math.isfinite(E):
            raise ValueError(f"E must be finite, got {E}")
        self.E = _as_leaf(E)

    def __call__(self, t):
        return jnp.full_like(jnp.asarray(t, dtype=float), self.E)

    def breakpoints(self, t_end: float) -> np.ndarray:
        return np.zeros((0,), dtype=float)


class CyclicSweep(eqx.Module):
    """Triangle wave from E_start to E_vertex and back, repeated n_cycles times."""

    E_start: jax.Array
    E_vertex: jax.Array
    scan_rate: jax.Array
    n_cycles: int

    def __init__(self, E_start: float, E_vertex: float, scan_rate: float, n_cycles: int = 1):
        if scan_rate <= 0:
            raise ValueError(f"scan_rate must be positive, got {scan_rate}")
        if E_start == E_vertex:
            raise ValueError(f"E_vertex must differ from E_start, got {E_vertex}")
        if n_cycles <= 0:
            raise ValueError(f"n_cycles must be positive, got {n_cycles}")
        self.E_start = _as_leaf(E_start)
        self.E_vertex = _as_leaf(E_vertex)
        self.scan_rate = _as_leaf(scan_rate)
        self.n_cycles = int(n_cycles)

    @property
    def half_period(self) -> float:
        return float(abs(self.E_vertex - self.E_start) / self.scan_rate)

    @property
    def duration(self) -> float:
        return 2.0 * self.half_period * self.n_cycles

    def __call__(self, t):
        t = jnp.asarray(t, dtype=float)
        half = jnp.abs(self.E_vertex - self.E_start) / self.scan_rate
        direction = jnp.sign(self.E_vertex - self.E_start)
        tau = jnp.mod(t, 2.0 * half)
        elapsed = jnp.where(tau < half, tau, 2.0 * half - tau)
        return self.E_start + direction * self.scan_rate * elapsed

    def breakpoints(self, t_end: float) -> np.ndarray:
        # vertices and returns to E_start are kinks in E(t)
        half = self.half_period
        n = int(np.floor(t_end / half))
        times = half * np.arange(1, n + 1, dtype=float)
        return times[times < t_end]


class SquareWaveVoltammetry(eqx.Module):
    """
    Osteryoung square-wave program: a staircase stepping by step_height each
    period with a symmetric pulse of +/- amplitude superimposed on every tread.

    The forward pulse (first half period) points in the scan direction and the
    reverse pulse (second half) against it. n_steps is static, so programs with
    a different number of treads compile separately.
    """

    E_start: jax.Array
    E_end: jax.Array
    step_height: jax.Array
    amplitude: jax.Array
    frequency: jax.Array
    n_steps: int

    def __init__(
        self,
        E_start: float,
        E_end: float,
        step_height: float = 0.004,
        amplitude: float = 0.025,
        frequency: float = 25.0,
    ):
        if step_height <= 0:
            raise ValueError(f"step_height must be positive, got {step_height}")
        if amplitude < 0:
            raise ValueError(f"amplitude must be non-negative, got {amplitude}")
        if frequency <= 0:
            raise ValueError(f"frequency must be positive, got {frequency}")
        if E_start == E_end:
            raise ValueError(f"E_end must differ from E_start, got {E_end}")
        self.E_start = _as_leaf(E_start)
        self.E_end = _as_leaf(E_end)
        self.step_height = _as_leaf(step_height)
        self.amplitude = _as_leaf(amplitude)
        self.frequency = _as_leaf(frequency)
        self.n_steps = int(np.ceil(abs(float(E_end) - float(E_start)) / float(step_height) - 1e-9)) + 1

    @property
    def direction(self) -> float:
        return 1.0 if float(self.E_end) > float(self.E_start) else -1.0

    @property
    def period(self) -> float:
        return 1.0 / float(self.frequency)

    @property
    def duration(self) -> float:
        return self.n_steps * self.period

    def stair_potentials(self) -> np.ndarray:
        k = np.arange(self.n_steps, dtype=float)
        return float(self.E_start) + self.direction * float(self.step_height) * k

    def __call__(self, t):
        t = jnp.asarray(t, dtype=float)
        direction = jnp.sign(self.E_end - self.E_start)
        cycles = t * self.frequency
        k = jnp.clip(jnp.floor(cycles), 0, self.n_steps - 1)
        E_stair = self.E_start + direction * self.step_height * k
        forward = (cycles - jnp.floor(cycles)) < 0.5
        pulse = jnp.where(forward, self.amplitude, -self.amplitude)
        return E_stair + direction * pulse

    def breakpoints(self, t_end: float) -> np.ndarray:
        n = int(np.floor(2.0 * t_end / self.period))
        times = 0.5 * self.period * np.arange(1, n + 1, dtype=float)
        return times[times < t_end]
