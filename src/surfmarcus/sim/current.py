import jax.numpy as jnp

from surfmarcus.sim.params import MarcusParameters


def square_wave_sign(t, frequency: float):
    """
    +1 where sin(2*pi*f*t) > 0, otherwise -1.

    The sign is -1 at t = 0 and wherever the evaluated sine is non-positive.
    Later nominal crossings follow the rounding of sin, e.g. sin(pi) is about
    1.2e-16, so t = 0.5 at 1 Hz still reads +1.
    """
    t = jnp.asarray(t)
    return jnp.where(jnp.sin(2.0 * jnp.pi * frequency * t) > 0.0, 1.0, -1.0)


def faradaic_current(dgamma_dt, n_e: float, F: float, area: float, gain: float = 1.0):
    # reduction (dGamma/dt > 0) draws cathodic, i.e. negative, current
    return -n_e * F * area * jnp.asarray(dgamma_dt) * gain


def nonfaradaic_current(t, amplitude: float, frequency: float):
    return amplitude * square_wave_sign(t, frequency)


def current_components(params: MarcusParameters, t, dgamma_dt):
    """Returns (I_faradaic, I_nonfaradaic, I_offset) in amperes."""
    I_f = faradaic_current(dgamma_dt, params.n_e, params.F, params.electrode_area, params.gain)
    I_nf = nonfaradaic_current(t, params.I_nonfaradaic_amplitude, params.f_squarewave)
    I_off = jnp.full_like(I_f, params.I_offset)
    return I_f, I_nf, I_off


def total_current(params: MarcusParameters, t, dgamma_dt):
    I_f, I_nf, I_off = current_components(params, t, dgamma_dt)
    return I_f + I_nf + I_off
