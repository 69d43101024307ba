import jax
jax.config.update("jax_enable_x64", True)
import numpy as np
import pytest

from surfmarcus.analysis.voltammetry import faradaic_charge
from surfmarcus.sim.params import MarcusParameters
from surfmarcus.sim.transient import simulate_transient
from surfmarcus.sim.waveform import ConstantPotential, CyclicSweep, SquareWaveVoltammetry


def test_hold_at_start_potential_is_stationary():
    params = MarcusParameters(I_offset=1e-9)
    result = simulate_transient(params, t_max=0.1, n_points=11)

    assert result.t.shape == (11,)
    np.testing.assert_allclose(result.gamma, result.gamma_init, rtol=1e-9)
    assert np.max(np.abs(result.I_faradaic)) < 1e-15
    np.testing.assert_allclose(result.I_total, result.I_faradaic + result.I_nonfaradaic + 1e-9)


def test_potential_step_relaxes_to_steady_state():
    params = MarcusParameters()
    result = simulate_transient(params, ConstantPotential(params.E0), t_max=0.1, n_points=201)

    assert result.gamma[0] == result.gamma_init
    assert np.all(result.gamma >= 0.0)
    assert np.all(result.gamma <= params.gamma_tot)
    assert np.isclose(result.gamma[-1], 0.5 * params.gamma_tot, rtol=1e-6)
    # oxidative step: anodic current decaying to zero
    assert result.I_faradaic[0] > 0.0
    assert abs(result.I_faradaic[-1]) < 1e-6 * result.I_faradaic[0]


def test_forward_sweep_charge_matches_coverage_change():
    params = MarcusParameters()
    sweep = CyclicSweep(E_start=params.V_start, E_vertex=-0.1, scan_rate=1.0)
    result = simulate_transient(params, sweep, t_max=sweep.half_period, n_points=2001)

    charge = faradaic_charge(result, params)
    assert charge["q_numeric"] > 0.0
    assert charge["rel_error"] < 1e-3
    assert result.gamma[-1] < 0.01 * params.gamma_tot


def test_cyclic_voltammogram_has_anodic_and_cathodic_peaks():
    params = MarcusParameters()
    sweep = CyclicSweep(E_start=params.V_start, E_vertex=-0.1, scan_rate=1.0)
    result = simulate_transient(params, sweep, n_points=2001)

    mid = len(result.t) // 2
    idx_a = int(np.argmax(result.I_faradaic[:mid]))
    idx_c = int(mid + np.argmin(result.I_faradaic[mid:]))
    assert result.I_faradaic[idx_a] > 0.0
    assert result.I_faradaic[idx_c] < 0.0
    # finite kinetics separate the peaks around E0
    assert result.E[idx_a] > result.E[idx_c]
    assert result.E[idx_c] < params.E0 < result.E[idx_a]
    assert np.isclose(result.gamma[-1], result.gamma_init, rtol=1e-3)


def test_square_wave_run_records_every_pulse_edge():
    params = MarcusParameters(I_nonfaradaic_amplitude=1e-9)
    wave = SquareWaveVoltammetry(E_start=-0.5, E_end=-0.2, step_height=0.02, amplitude=0.025, frequency=8.0)
    result = simulate_transient(params, wave, n_points=4 * wave.n_steps + 1)

    assert result.segment_end_t.shape == (2 * wave.n_steps,)
    np.testing.assert_allclose(result.segment_end_t, 0.5 * wave.period * np.arange(1, 2 * wave.n_steps + 1))
    assert np.all(result.gamma >= 0.0)
    assert np.all(result.gamma <= params.gamma_tot)
    assert set(np.unique(result.I_nonfaradaic)) <= {-1e-9, 1e-9}


def test_simulate_transient_rejects_bad_inputs():
    with pytest.raises(ValueError):
        simulate_transient(t_max=0.0)
    with pytest.raises(ValueError):
        simulate_transient(t_max=1.0, n_points=1)
    with pytest.raises(ValueError):
        simulate_transient()
