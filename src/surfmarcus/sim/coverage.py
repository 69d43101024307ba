from __future__ import annotations

from typing import Callable

import equinox as eqx
import jax.numpy as jnp
import numpy as np
from scipy.integrate import solve_ivp

from surfmarcus.sim.kinetics import AsymmetricMarcus

STIFF_METHODS = ("Radau", "BDF", "LSODA")


class IntegrationError(RuntimeError):
    """Raised when the stiff integrator cannot advance the coverage state."""


def steady_state_coverage(kinetics: AsymmetricMarcus, gamma_tot: float, V_app):
    """
    Coverage the ODE relaxes to at a fixed potential: gamma_tot * k_red / (k_red + k_ox).

    Where both rates underflow to zero the coverage is defined as 0.
    """
    k_red, k_ox = kinetics.rate_constants_at(V_app)
    total = k_red + k_ox
    positive = total > 0.0
    safe_total = jnp.where(positive, total, 1.0)
    return jnp.where(positive, gamma_tot * k_red / safe_total, 0.0)


def equilibrium_coverage(kinetics: AsymmetricMarcus, gamma_tot: float, V_start: float) -> float:
    """Initial coverage for a device that has been held at V_start before t = 0."""
    return float(steady_state_coverage(kinetics, gamma_tot, V_start))


class CoverageODE(eqx.Module):
    """dGamma/dt = k_red(eta) * (gamma_tot - Gamma) - k_ox(eta) * Gamma."""

    kinetics: AsymmetricMarcus
    gamma_tot: float

    def vector_field(self, t, gamma, V_app):
        k_red, k_ox = self.kinetics.rate_constants_at(V_app)
        return k_red * (self.gamma_tot - gamma) - k_ox * gamma

    def jacobian(self, t, gamma, V_app):
        k_red, k_ox = self.kinetics.rate_constants_at(V_app)
        return -(k_red + k_ox) + jnp.zeros_like(jnp.asarray(gamma))


@eqx.filter_jit
def _rhs(ode: CoverageODE, voltage, t, y):
    return ode.vector_field(t, y, voltage(t))


@eqx.filter_jit
def _jac(ode: CoverageODE, voltage, t, y):
    return jnp.reshape(ode.jacobian(t, y[0], voltage(t)), (1, 1))


def integrate_coverage(
    ode: CoverageODE,
    gamma0: float,
    t_span: tuple[float, float],
    voltage: Callable,
    *,
    t_eval: np.ndarray | None = None,
    method: str = "Radau",
    rtol: float = 1e-8,
    atol: float | None = None,
    max_step: float = np.inf,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Integrates the coverage ODE over t_span with an implicit adaptive solver.

    voltage must map a time to the applied potential using jax operations.
    Returns the (t, gamma) samples, projected onto [0, gamma_tot]. Overshoot
    beyond the solver tolerance (atol + rtol * gamma_tot) raises IntegrationError.
    """
    if method not in STIFF_METHODS:
        raise ValueError(f"method must be one of {STIFF_METHODS}, got {method!r}")
    if rtol <= 0:
        raise ValueError(f"rtol must be positive, got {rtol}")
    t0, t1 = float(t_span[0]), float(t_span[1])
    if t1 < t0:
        raise ValueError(f"t_span must be increasing, got ({t0}, {t1})")
    if atol is None:
        atol = 1e-9 * ode.gamma_tot
    if not (0.0 <= gamma0 <= ode.gamma_tot):
        raise ValueError(f"gamma0 must lie in [0, {ode.gamma_tot}], got {gamma0}")

    def fun(t, y):
        return np.asarray(_rhs(ode, voltage, np.asarray(t), np.asarray(y)), dtype=float)

    def jac(t, y):
        return np.asarray(_jac(ode, voltage, np.asarray(t), np.asarray(y)), dtype=float)

    sol = solve_ivp(
        fun,
        (t0, t1),
        [float(gamma0)],
        t_eval=t_eval,
        method=method,
        rtol=rtol,
        atol=atol,
        max_step=max_step,
        jac=jac,
    )
    if not sol.success:
        raise IntegrationError(f"Coverage integration failed on [{t0}, {t1}]: {sol.message}")

    gamma = np.asarray(sol.y[0], dtype=float)
    overshoot = max(float(-np.min(gamma, initial=0.0)), float(np.max(gamma, initial=0.0)) - ode.gamma_tot, 0.0)
    tolerance = atol + rtol * ode.gamma_tot
    if overshoot > tolerance:
        raise IntegrationError(
            f"Coverage left [0, {ode.gamma_tot}] by {overshoot:.3e} on [{t0}, {t1}], "
            f"beyond the solver tolerance {tolerance:.3e}"
        )
    gamma = np.clip(gamma, 0.0, ode.gamma_tot)
    return np.asarray(sol.t, dtype=float), gamma
