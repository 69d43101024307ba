from __future__ import annotations

import math
from typing import Callable

import numpy as np

from surfmarcus.sim.coverage import CoverageODE, equilibrium_coverage, integrate_coverage
from surfmarcus.sim.current import total_current
from surfmarcus.sim.kinetics import AsymmetricMarcus
from surfmarcus.sim.params import MarcusParameters


class SurfaceRedoxDevice:
    """
    Two-terminal voltage-controlled current source backed by a surface-confined
    redox couple.

    The device owns one state variable, the surface coverage Gamma. It is seeded
    once by `initialize()` and afterwards only moves through `advance()`, which
    hands the coverage ODE to a stiff adaptive integrator. `evaluate()` reads the
    current state and never mutates it, so repeated calls at the same (t, V) agree.
    """

    def __init__(self, params: MarcusParameters | None = None):
        self.params = params or MarcusParameters()
        self.kinetics = AsymmetricMarcus.from_parameters(self.params)
        self.ode = CoverageODE(kinetics=self.kinetics, gamma_tot=self.params.gamma_tot)
        self._gamma: float | None = None
        self._gamma_init: float | None = None
        self._t = 0.0

    @property
    def initialized(self) -> bool:
        return self._gamma_init is not None

    @property
    def gamma(self) -> float:
        self._require_initialized()
        return self._gamma

    @property
    def gamma_init(self) -> float:
        self._require_initialized()
        return self._gamma_init

    @property
    def t(self) -> float:
        return self._t

    def _require_initialized(self) -> None:
        if not self.initialized:
            raise RuntimeError("initialize() must be called before the device is evaluated")

    def initialize(self) -> float:
        """Seeds Gamma with the steady state at V_start. Later calls return the stored value."""
        if self._gamma_init is None:
            self._gamma_init = equilibrium_coverage(self.kinetics, self.params.gamma_tot, self.params.V_start)
            self._gamma = self._gamma_init
            self._t = 0.0
        return self._gamma_init

    def derivative(self, t: float, gamma: float, v_app: float) -> float:
        return float(self.ode.vector_field(t, gamma, v_app))

    def evaluate(self, t: float, v_app: float) -> float:
        """Terminal current I(p, n) in amperes for the present coverage."""
        self._require_initialized()
        if not (math.isfinite(t) and math.isfinite(v_app)):
            raise ValueError(f"t and v_app must be finite, got t={t}, v_app={v_app}")
        dgamma_dt = self.derivative(t, self._gamma, v_app)
        return float(total_current(self.params, t, dgamma_dt))

    def advance(
        self,
        t_end: float,
        voltage: Callable,
        *,
        t_eval: np.ndarray | None = None,
        **solver_kwargs,
    ) -> tuple[np.ndarray, np.ndarray]:
        """
        Integrates the owned coverage from the device clock to t_end under voltage(t).

        Returns the sampled (t, gamma) trajectory; its last sample is at t_end.
        """
        self._require_initialized()
        t_end = float(t_end)
        if not math.isfinite(t_end):
            raise ValueError(f"t_end must be finite, got {t_end}")
        if t_end < self._t:
            raise ValueError(f"Cannot advance backwards from t={self._t} to t={t_end}")
        if t_end == self._t:
            return np.array([self._t]), np.array([self._gamma])

        if t_eval is None:
            samples = np.array([t_end])
        else:
            samples = np.unique(np.asarray(t_eval, dtype=float))
            samples = samples[(samples > self._t) & (samples < t_end)]
            samples = np.append(samples, t_end)

        t, gamma = integrate_coverage(
            self.ode,
            self._gamma,
            (self._t, t_end),
            voltage,
            t_eval=samples,
            **solver_kwargs,
        )
        self._t = t_end
        self._gamma = float(gamma[-1])
        return t, gamma
