from __future__ import annotations

from dataclasses import dataclass

import equinox as eqx
import jax
import jax.numpy as jnp
import numpy as np
from tqdm import tqdm

from surfmarcus.sim.current import current_components
from surfmarcus.sim.device import SurfaceRedoxDevice
from surfmarcus.sim.params import MarcusParameters
from surfmarcus.sim.waveform import ConstantPotential


@dataclass(frozen=True)
class TransientResult:
    """Sampled response of one device to one applied waveform (SI units)."""

    t: np.ndarray
    E: np.ndarray
    gamma: np.ndarray
    dgamma_dt: np.ndarray
    I_faradaic: np.ndarray
    I_nonfaradaic: np.ndarray
    I_total: np.ndarray
    gamma_init: float
    # State at the closing edge of every smooth segment, evaluated with the
    # potential that was applied during that segment.
    segment_end_t: np.ndarray
    segment_end_E: np.ndarray
    segment_end_gamma: np.ndarray
    segment_end_I: np.ndarray

    def as_dict(self) -> dict[str, np.ndarray]:
        return {
            "t": self.t,
            "E": self.E,
            "gamma": self.gamma,
            "dgamma_dt": self.dgamma_dt,
            "I_faradaic": self.I_faradaic,
            "I_nonfaradaic": self.I_nonfaradaic,
            "I_total": self.I_total,
            "gamma_init": np.asarray(self.gamma_init),
            "segment_end_t": self.segment_end_t,
            "segment_end_E": self.segment_end_E,
            "segment_end_gamma": self.segment_end_gamma,
            "segment_end_I": self.segment_end_I,
        }


class _SegmentView(eqx.Module):
    """Restricts a waveform to the interior of one smooth segment."""

    waveform: eqx.Module
    lo: jax.Array
    hi: jax.Array

    def __call__(self, t):
        return self.waveform(jnp.clip(t, self.lo, self.hi))


def _segment_view(waveform, start: float, end: float) -> _SegmentView:
    margin = 1e-9 * (end - start)
    return _SegmentView(
        waveform=waveform,
        lo=jnp.asarray(start + margin, dtype=float),
        hi=jnp.asarray(end - margin, dtype=float),
    )


def simulate_transient(
    params: MarcusParameters | None = None,
    waveform=None,
    t_max: float | None = None,
    n_points: int = 2001,
    *,
    method: str = "Radau",
    rtol: float = 1e-8,
    atol: float | None = None,
    max_step: float = np.inf,
    progress: bool = False,
) -> TransientResult:
    """
    Drives a SurfaceRedoxDevice through an applied waveform.

    The device is initialized at V_start, then each interval between waveform
    breakpoints is handed to the stiff integrator separately so that no step
    straddles a discontinuity in the applied potential.

    Args:
        params: Device parameters (defaults to MarcusParameters()).
        waveform: Applied potential program; defaults to a hold at V_start.
        t_max: Simulated duration (s). Defaults to waveform.duration.
        n_points: Number of uniformly spaced output samples on [0, t_max].
        method: solve_ivp stiff method ("Radau", "BDF" or "LSODA").
        rtol, atol, max_step: Integrator controls; atol defaults to 1e-9 * gamma_tot.
        progress: Show a tqdm bar over segments.
    """
    params = params or MarcusParameters()
    if waveform is None:
        waveform = ConstantPotential(params.V_start)
    if t_max is None:
        t_max = getattr(waveform, "duration", None)
        if t_max is None:
            raise ValueError("t_max is required for waveforms without a duration")
    t_max = float(t_max)
    if t_max <= 0:
        raise ValueError(f"t_max must be positive, got {t_max}")
    if n_points < 2:
        raise ValueError(f"n_points must be >= 2, got {n_points}")

    device = SurfaceRedoxDevice(params)
    gamma_init = device.initialize()

    t_grid = np.linspace(0.0, t_max, n_points)
    edges = np.concatenate([[0.0], waveform.breakpoints(t_max), [t_max]])
    edges = np.unique(edges)

    t_chunks = [np.array([0.0])]
    gamma_chunks = [np.array([gamma_init])]
    end_t, end_E, end_gamma, end_dgamma = [], [], [], []

    segments = list(zip(edges[:-1], edges[1:]))
    for start, end in tqdm(segments, desc="Integrating segments", disable=not progress):
        view = _segment_view(waveform, float(start), float(end))
        t_seg, gamma_seg = device.advance(
            end,
            view,
            t_eval=t_grid,
            method=method,
            rtol=rtol,
            atol=atol,
            max_step=max_step,
        )
        t_chunks.append(t_seg)
        gamma_chunks.append(gamma_seg)

        E_edge = float(view(jnp.asarray(end, dtype=float)))
        end_t.append(float(end))
        end_E.append(E_edge)
        end_gamma.append(device.gamma)
        end_dgamma.append(device.derivative(end, device.gamma, E_edge))

    t_all = np.concatenate(t_chunks)
    gamma_all = np.concatenate(gamma_chunks)
    keep = np.isin(t_all, t_grid)
    t_out = t_all[keep]
    gamma_out = gamma_all[keep]

    E_out = np.asarray(waveform(jnp.asarray(t_out)), dtype=float)
    dgamma_out = np.asarray(device.ode.vector_field(t_out, gamma_out, E_out), dtype=float)
    I_f, I_nf, I_off = current_components(params, t_out, dgamma_out)
    I_f = np.asarray(I_f, dtype=float)
    I_nf = np.asarray(I_nf, dtype=float)
    I_total = I_f + I_nf + np.asarray(I_off, dtype=float)

    end_t_arr = np.asarray(end_t, dtype=float)
    end_parts = current_components(params, end_t_arr, np.asarray(end_dgamma, dtype=float))
    end_I = np.asarray(sum(end_parts), dtype=float)

    return TransientResult(
        t=t_out,
        E=E_out,
        gamma=gamma_out,
        dgamma_dt=dgamma_out,
        I_faradaic=I_f,
        I_nonfaradaic=I_nf,
        I_total=I_total,
        gamma_init=gamma_init,
        segment_end_t=end_t_arr,
        segment_end_E=np.asarray(end_E, dtype=float),
        segment_end_gamma=np.asarray(end_gamma, dtype=float),
        segment_end_I=end_I,
    )
