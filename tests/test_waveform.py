import jax
jax.config.update("jax_enable_x64", True)
import jax.numpy as jnp
import numpy as np
import pytest

from surfmarcus.sim.waveform import ConstantPotential, CyclicSweep, SquareWaveVoltammetry


def test_constant_potential_broadcasts():
    wave = ConstantPotential(-0.2)
    E = wave(jnp.linspace(0.0, 1.0, 7))
    assert E.shape == (7,)
    assert jnp.allclose(E, -0.2)
    assert wave.breakpoints(10.0).size == 0


def test_cyclic_sweep_is_triangle():
    wave = CyclicSweep(E_start=-0.5, E_vertex=0.0, scan_rate=0.5, n_cycles=2)
    assert np.isclose(wave.half_period, 1.0)
    assert np.isclose(wave.duration, 4.0)

    t = jnp.array([0.0, 0.5, 1.0, 1.5, 2.0, 2.5])
    expected = jnp.array([-0.5, -0.25, 0.0, -0.25, -0.5, -0.25])
    assert jnp.allclose(wave(t), expected)
    np.testing.assert_allclose(wave.breakpoints(wave.duration), [1.0, 2.0, 3.0])


def test_cyclic_sweep_cathodic_direction():
    wave = CyclicSweep(E_start=0.2, E_vertex=-0.2, scan_rate=0.1)
    assert jnp.allclose(wave(jnp.array([2.0, 4.0, 6.0])), jnp.array([0.0, -0.2, 0.0]))


def test_square_wave_staircase_and_pulses():
    # period 1/8 s keeps every breakpoint exactly representable
    wave = SquareWaveVoltammetry(E_start=0.0, E_end=0.1, step_height=0.01, amplitude=0.05, frequency=8.0)
    assert wave.n_steps == 11
    assert np.isclose(wave.duration, 11 / 8.0)
    np.testing.assert_allclose(wave.stair_potentials(), np.linspace(0.0, 0.1, 11), atol=1e-12)

    t = jnp.array([1 / 32, 3 / 32, 5 / 32, 7 / 32])
    expected = jnp.array([0.05, -0.05, 0.06, -0.04])
    assert jnp.allclose(wave(t), expected)

    bps = wave.breakpoints(wave.duration)
    assert len(bps) == 2 * wave.n_steps - 1
    np.testing.assert_allclose(np.diff(bps), 1 / 16)


def test_square_wave_forward_pulse_follows_scan_direction():
    wave = SquareWaveVoltammetry(E_start=0.0, E_end=-0.1, step_height=0.02, amplitude=0.01, frequency=8.0)
    assert wave.direction == -1.0
    assert jnp.allclose(wave(jnp.array([1 / 32, 3 / 32])), jnp.array([-0.01, 0.01]))


def test_square_wave_holds_last_tread_after_duration():
    wave = SquareWaveVoltammetry(E_start=0.0, E_end=0.04, step_height=0.02, amplitude=0.0, frequency=8.0)
    assert jnp.allclose(wave(jnp.array([10.0])), jnp.array([0.04]))


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(E_start=0.0, E_end=0.1, step_height=0.0),
        dict(E_start=0.0, E_end=0.1, amplitude=-0.01),
        dict(E_start=0.0, E_end=0.1, frequency=0.0),
        dict(E_start=0.1, E_end=0.1),
    ],
)
def test_square_wave_rejects_invalid_arguments(kwargs):
    with pytest.raises(ValueError):
        SquareWaveVoltammetry(**kwargs)


def test_cyclic_sweep_rejects_invalid_arguments():
    with pytest.raises(ValueError):
        CyclicSweep(0.0, 0.5, scan_rate=0.0)
    with pytest.raises(ValueError):
        CyclicSweep(0.0, 0.0, scan_rate=0.1)
    with pytest.raises(ValueError):
        CyclicSweep(0.0, 0.5, scan_rate=0.1, n_cycles=0)
    with pytest.raises(ValueError):
        ConstantPotential(float("nan"))
