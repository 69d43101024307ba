from __future__ import annotations

from typing import Any

import numpy as np
from scipy.integrate import trapezoid

from surfmarcus.sim.params import MarcusParameters
from surfmarcus.sim.transient import TransientResult, simulate_transient
from surfmarcus.sim.waveform import SquareWaveVoltammetry


def sample_square_wave(result: TransientResult, waveform: SquareWaveVoltammetry) -> dict[str, np.ndarray]:
    """
    Forward, reverse and net currents of a square-wave voltammogram.

    Currents are taken at the closing edge of each pulse, where the transient
    following the potential step has decayed the most.
    """
    half = 0.5 * waveform.period
    ends = np.asarray(result.segment_end_t, dtype=float)
    currents = np.asarray(result.segment_end_I, dtype=float)
    if ends.shape != currents.shape:
        raise ValueError(f"segment_end_t and segment_end_I shape mismatch: {ends.shape} != {currents.shape}")

    # each SWV segment is one half period, so its index follows from its end time
    pulse_idx = np.rint(ends / half).astype(int) - 1
    n_pairs = min(waveform.n_steps, int(np.max(pulse_idx, initial=-1) + 1) // 2)
    if n_pairs < 1:
        raise ValueError("Need at least one complete square-wave period to sample currents")

    I_forward = np.full((n_pairs,), np.nan)
    I_reverse = np.full((n_pairs,), np.nan)
    for idx, current in zip(pulse_idx, currents):
        step = idx // 2
        if step >= n_pairs or idx < 0:
            continue
        if idx % 2 == 0:
            I_forward[step] = current
        else:
            I_reverse[step] = current

    if np.isnan(I_forward).any() or np.isnan(I_reverse).any():
        raise ValueError("Transient is missing pulse edges; simulate with the square-wave breakpoints")

    return {
        "E_step": waveform.stair_potentials()[:n_pairs],
        "I_forward": I_forward,
        "I_reverse": I_reverse,
        "I_net": I_forward - I_reverse,
    }


def peak_metrics(E: np.ndarray, I: np.ndarray) -> dict[str, float]:
    """Peak potential, peak current and full width at half maximum of a single-peaked trace."""
    E = np.asarray(E, dtype=float)
    I = np.asarray(I, dtype=float)
    if E.shape != I.shape:
        raise ValueError(f"E and I shape mismatch: {E.shape} != {I.shape}")
    if E.ndim != 1:
        raise ValueError(f"E and I must be 1D, got {E.shape}")
    if len(E) < 3:
        raise ValueError("Need at least 3 points to extract a peak")

    idx = int(np.argmax(np.abs(I)))
    ip = float(I[idx])
    half = 0.5 * abs(ip)
    mag = np.abs(I)

    def crossing(indices) -> float:
        prev = idx
        for j in indices:
            if mag[j] < half:
                frac = (mag[prev] - half) / (mag[prev] - mag[j])
                return float(E[prev] + frac * (E[j] - E[prev]))
            prev = j
        return float("nan")

    left = crossing(range(idx - 1, -1, -1))
    right = crossing(range(idx + 1, len(E)))
    return {
        "E_peak": float(E[idx]),
        "I_peak": ip,
        "fwhm": abs(right - left),
    }


def faradaic_charge(result: TransientResult, params: MarcusParameters) -> dict[str, float]:
    """Compares integrated Faradaic current against the charge implied by the coverage change."""
    q_numeric = float(trapezoid(result.I_faradaic, result.t))
    delta_gamma = float(result.gamma[-1] - result.gamma[0])
    q_expected = -params.n_e * params.F * params.electrode_area * params.gain * delta_gamma
    scale = max(abs(q_expected), np.finfo(float).tiny)
    return {
        "q_numeric": q_numeric,
        "q_expected": q_expected,
        "rel_error": abs(q_numeric - q_expected) / scale,
    }


def square_wave_voltammogram(
    params: MarcusParameters,
    waveform: SquareWaveVoltammetry,
    *,
    points_per_pulse: int = 8,
    **solver_kwargs,
) -> dict[str, Any]:
    """Runs a square-wave experiment and returns the sampled voltammogram with its peak metrics."""
    if points_per_pulse < 1:
        raise ValueError(f"points_per_pulse must be positive, got {points_per_pulse}")
    n_points = 2 * waveform.n_steps * points_per_pulse + 1
    result = simulate_transient(params, waveform, waveform.duration, n_points, **solver_kwargs)
    sampled = sample_square_wave(result, waveform)
    return {
        "result": result,
        **sampled,
        **peak_metrics(sampled["E_step"], sampled["I_net"]),
    }
