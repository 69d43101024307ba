import argparse
import json
import os
from typing import Any

import matplotlib
import numpy as np

from surfmarcus.sim.params import MarcusParameters, dump_parameters, load_parameters
from surfmarcus.sim.transient import TransientResult, simulate_transient
from surfmarcus.sim.waveform import ConstantPotential, CyclicSweep, SquareWaveVoltammetry

matplotlib.use("Agg")
import matplotlib.pyplot as plt

WAVEFORMS = ("constant", "cyclic", "swv")
RESULT_FILENAME = "transient.npz"
PARAMS_FILENAME = "parameters.json"
PLOT_FILENAME = "transient.png"


def _load_config_defaults(config_path: str | None) -> dict[str, Any]:
    if config_path is None:
        return {}
    with open(config_path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must contain a JSON object, got {type(raw)}")
    return raw


def _cfg(defaults: dict[str, Any], key: str, fallback: Any, aliases: tuple[str, ...] = ()) -> Any:
    for candidate in (key, *aliases):
        if candidate in defaults:
            return defaults[candidate]
    return fallback


def _parse_override(text: str) -> tuple[str, float]:
    if "=" not in text:
        raise argparse.ArgumentTypeError(f"Expected KEY=VALUE, got {text!r}")
    key, value = text.split("=", 1)
    try:
        return key.strip(), float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Value for {key!r} must be a number, got {value!r}") from exc


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    base_parser = argparse.ArgumentParser(add_help=False)
    base_parser.add_argument("--config", type=str, default=None, help="Path to JSON config file")
    base_args, _ = base_parser.parse_known_args(argv)

    file_defaults = _load_config_defaults(base_args.config)

    parser = argparse.ArgumentParser(
        description="Simulate a surface-confined redox couple with asymmetric Marcus kinetics",
        parents=[base_parser],
    )
    parser.add_argument(
        "--waveform",
        choices=WAVEFORMS,
        default=_cfg(file_defaults, "waveform", "swv"),
        help="Applied potential program",
    )
    parser.add_argument(
        "--params-file",
        type=str,
        default=_cfg(file_defaults, "params_file", None),
        help="JSON file of device parameters, e.g. a saved parameters.json",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        type=_parse_override,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override a device parameter, e.g. --set k0_red=500",
    )
    parser.add_argument("--e-start", type=float, default=_cfg(file_defaults, "e_start", None), help="Start potential (V); defaults to V_start")
    parser.add_argument(
        "--e-end",
        "--e-vertex",
        dest="e_end",
        type=float,
        default=float(_cfg(file_defaults, "e_end", -0.1, aliases=("e_vertex",))),
        help="End potential (swv) or vertex potential (cyclic) in V",
    )
    parser.add_argument("--scan-rate", type=float, default=float(_cfg(file_defaults, "scan_rate", 0.1)), help="Cyclic scan rate (V/s)")
    parser.add_argument("--n-cycles", type=int, default=int(_cfg(file_defaults, "n_cycles", 1)), help="Cyclic sweep cycles")
    parser.add_argument("--step-height", type=float, default=float(_cfg(file_defaults, "step_height", 0.004)), help="SWV staircase step (V)")
    parser.add_argument("--amplitude", type=float, default=float(_cfg(file_defaults, "amplitude", 0.025)), help="SWV pulse amplitude (V)")
    parser.add_argument("--frequency", type=float, default=float(_cfg(file_defaults, "frequency", 25.0)), help="SWV frequency (Hz)")
    parser.add_argument("--t-max", type=float, default=_cfg(file_defaults, "t_max", None), help="Duration (s); defaults to the waveform duration")
    parser.add_argument("--n-points", type=int, default=int(_cfg(file_defaults, "n_points", 4001)), help="Output samples")
    parser.add_argument(
        "--method",
        choices=("Radau", "BDF", "LSODA"),
        default=_cfg(file_defaults, "method", "Radau"),
        help="Stiff integrator",
    )
    parser.add_argument("--rtol", type=float, default=float(_cfg(file_defaults, "rtol", 1e-8)), help="Integrator relative tolerance")
    parser.add_argument(
        "--artifact-dir",
        type=str,
        default=_cfg(file_defaults, "artifact_dir", "/tmp/surfmarcus"),
        help="Output directory for arrays and plots",
    )
    parser.add_argument(
        "--plot",
        action="store_true",
        default=bool(_cfg(file_defaults, "plot", True)),
        help="Save a plot of the transient",
    )
    parser.add_argument("--no-plot", dest="plot", action="store_false", help="Skip the plot")
    parser.add_argument("--progress", action="store_true", default=bool(_cfg(file_defaults, "progress", False)), help="Show a progress bar")

    args = parser.parse_args(argv)
    args.parameters = dict(_cfg(file_defaults, "parameters", {}))
    args.parameters.update(dict(args.overrides))
    return args


def build_waveform(args: argparse.Namespace, params: MarcusParameters):
    e_start = params.V_start if args.e_start is None else float(args.e_start)
    if args.waveform == "constant":
        return ConstantPotential(e_start)
    if args.waveform == "cyclic":
        return CyclicSweep(e_start, args.e_end, args.scan_rate, n_cycles=args.n_cycles)
    return SquareWaveVoltammetry(
        e_start,
        args.e_end,
        step_height=args.step_height,
        amplitude=args.amplitude,
        frequency=args.frequency,
    )


def plot_transient(result: TransientResult, output_path: str) -> None:
    fig, (ax_e, ax_g, ax_i) = plt.subplots(3, 1, figsize=(8, 9), sharex=True)
    ax_e.plot(result.t, result.E, lw=1.0)
    ax_e.set_ylabel("E / V")
    ax_g.plot(result.t, result.gamma, lw=1.0)
    ax_g.set_ylabel(r"$\Gamma$ / mol m$^{-2}$")
    ax_i.plot(result.t, result.I_total, lw=1.0, label="Total")
    ax_i.plot(result.t, result.I_faradaic, lw=1.0, alpha=0.7, label="Faradaic")
    ax_i.set_ylabel("I / A")
    ax_i.set_xlabel("t / s")
    ax_i.legend()
    fig.tight_layout()
    fig.savefig(output_path)
    plt.close(fig)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    base = load_parameters(args.params_file).model_dump() if args.params_file else {}
    params = MarcusParameters(**{**base, **args.parameters})
    waveform = build_waveform(args, params)

    print(f"Simulating {args.waveform} waveform (E0={params.E0} V, V_start={params.V_start} V)...")
    result = simulate_transient(
        params,
        waveform,
        t_max=args.t_max,
        n_points=args.n_points,
        method=args.method,
        rtol=args.rtol,
        progress=args.progress,
    )
    print(f"Initial coverage: {result.gamma_init:.4e} mol/m^2 ({result.gamma_init / params.gamma_tot:.3f} of gamma_tot)")
    print(f"Peak |I_total|: {np.max(np.abs(result.I_total)):.4e} A")

    os.makedirs(args.artifact_dir, exist_ok=True)
    result_path = os.path.join(args.artifact_dir, RESULT_FILENAME)
    params_path = os.path.join(args.artifact_dir, PARAMS_FILENAME)
    np.savez(result_path, **result.as_dict())
    with open(params_path, "w", encoding="utf-8") as f:
        json.dump(dump_parameters(params), f, indent=2)
    print(f"Saved transient to {result_path}")
    print(f"Saved parameters to {params_path}")

    if args.plot:
        plot_path = os.path.join(args.artifact_dir, PLOT_FILENAME)
        plot_transient(result, plot_path)
        print(f"Saved plot to {plot_path}")


if __name__ == "__main__":
    main()
