import argparse
import sys

import matplotlib.pyplot as plt
from matplotlib.widgets import Slider

from surfmarcus.analysis.voltammetry import square_wave_voltammogram
from surfmarcus.sim.params import MarcusParameters
from surfmarcus.sim.waveform import SquareWaveVoltammetry


def build_dashboard(args):
    """
    Runs a square-wave voltammetry simulation and builds an interactive dashboard:
    coverage transient on the left, forward/reverse/net voltammogram on the right.
    """
    params = MarcusParameters(
        E0=args.e0,
        V_start=args.e_start,
        k0_red=args.k0_red,
        k0_ox=args.k0_ox,
        lambda_eV_red=args.lambda_red,
        lambda_eV_ox=args.lambda_ox,
        gamma_tot=args.gamma_tot,
    )
    waveform = SquareWaveVoltammetry(
        args.e_start,
        args.e_end,
        step_height=args.step_height,
        amplitude=args.amplitude,
        frequency=args.frequency,
    )
    print(f"Running square-wave simulation at {args.frequency} Hz over {waveform.n_steps} steps...")
    swv = square_wave_voltammogram(params, waveform)
    result = swv["result"]

    bg_color = '#121212'
    text_color = '#e0e0e0'
    line_gamma = '#4b9fff'
    line_fwd = '#ff4b4b'
    line_rev = '#06d6a0'
    line_net = '#ffd166'

    fig = plt.figure(figsize=(12, 6), facecolor=bg_color)
    gs = fig.add_gridspec(1, 2, width_ratios=[1, 1])

    ax1 = fig.add_subplot(gs[0], facecolor=bg_color)
    ax1.set_title("Surface Coverage", color=text_color, fontsize=14, pad=15)
    ax1.set_xlabel("Time [s]", color=text_color)
    ax1.set_ylabel(r"$\Gamma / \Gamma_{tot}$", color=text_color)
    ax1.tick_params(colors=text_color)
    for spine in ax1.spines.values():
        spine.set_color('#333333')
    ax1.set_ylim(-0.05, 1.05)

    fraction = result.gamma / params.gamma_tot
    ax1.plot(result.t, fraction, color='#444444', lw=2, alpha=0.5)
    line_gamma_plot, = ax1.plot(result.t[:1], fraction[:1], color=line_gamma, lw=2)

    ax2 = fig.add_subplot(gs[1], facecolor=bg_color)
    ax2.set_title("Square-Wave Voltammogram", color=text_color, fontsize=14, pad=15)
    ax2.set_xlabel("Staircase Potential / V", color=text_color)
    ax2.set_ylabel("Current / A", color=text_color)
    ax2.tick_params(colors=text_color)
    for spine in ax2.spines.values():
        spine.set_color('#333333')

    E_step = swv["E_step"]
    ax2.plot(E_step, swv["I_forward"], color=line_fwd, lw=1.5, alpha=0.6, label="Forward")
    ax2.plot(E_step, swv["I_reverse"], color=line_rev, lw=1.5, alpha=0.6, label="Reverse")
    ax2.plot(E_step, swv["I_net"], color='#444444', lw=2, alpha=0.5)
    line_net_plot, = ax2.plot(E_step[:1], swv["I_net"][:1], color=line_net, lw=3, label="Net")
    current_point, = ax2.plot(E_step[0], swv["I_net"][0], 'o', color=text_color, markersize=8)
    ax2.axvline(swv["E_peak"], color='#666666', ls='--', lw=1)
    ax2.legend(loc="upper right", facecolor=bg_color, edgecolor='#333333', labelcolor=text_color)

    plt.subplots_adjust(bottom=0.25, wspace=0.3)

    ax_slider = plt.axes([0.15, 0.1, 0.7, 0.03], facecolor='#333333')
    slider = Slider(
        ax=ax_slider,
        label='Step',
        valmin=0,
        valmax=len(E_step) - 1,
        valinit=0,
        valstep=1,
        color=line_net
    )
    slider.label.set_color(text_color)
    slider.valtext.set_color(text_color)

    samples_per_step = (len(result.t) - 1) / max(len(E_step), 1)

    def update(val):
        idx = int(slider.val)
        t_idx = min(int(round((idx + 1) * samples_per_step)), len(result.t) - 1)

        line_gamma_plot.set_data(result.t[:t_idx + 1], fraction[:t_idx + 1])
        line_net_plot.set_data(E_step[:idx + 1], swv["I_net"][:idx + 1])
        current_point.set_data([E_step[idx]], [swv["I_net"][idx]])

        fig.canvas.draw_idle()

    slider.on_changed(update)

    print(f"Net peak at {swv['E_peak']:.4f} V ({swv['I_peak']:.3e} A), FWHM {swv['fwhm'] * 1000:.1f} mV")
    plt.show()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Square-Wave Voltammetry Interactive Dashboard")
    parser.add_argument("--e0", type=float, default=-0.34, help="Formal potential (V)")
    parser.add_argument("--e-start", type=float, default=-0.6, help="Start potential (V)")
    parser.add_argument("--e-end", type=float, default=-0.1, help="End potential (V)")
    parser.add_argument("--k0-red", type=float, default=1000.0, help="Reduction preexponential (1/s)")
    parser.add_argument("--k0-ox", type=float, default=1000.0, help="Oxidation preexponential (1/s)")
    parser.add_argument("--lambda-red", type=float, default=0.2, help="Reduction reorganization energy (eV)")
    parser.add_argument("--lambda-ox", type=float, default=0.2, help="Oxidation reorganization energy (eV)")
    parser.add_argument("--gamma-tot", type=float, default=16e-9, help="Total surface coverage (mol/m^2)")
    parser.add_argument("--step-height", type=float, default=0.004, help="Staircase step (V)")
    parser.add_argument("--amplitude", type=float, default=0.025, help="Pulse amplitude (V)")
    parser.add_argument("--frequency", type=float, default=25.0, help="Square-wave frequency (Hz)")

    args = parser.parse_args()

    try:
        build_dashboard(args)
    except KeyboardInterrupt:
        sys.exit(0)
