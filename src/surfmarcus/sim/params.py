from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MarcusParameters(BaseModel):
    """Configuration of a surface-confined redox couple with asymmetric Marcus kinetics."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    n_e: float = Field(2.0, gt=0.0, description="Electrons transferred per redox event")
    F: float = Field(96485.0, gt=0.0, description="Faraday constant (C/mol)")
    R: float = Field(8.314, gt=0.0, description="Gas constant (J/(mol*K))")
    T: float = Field(298.15, gt=0.0, description="Temperature (K)")
    E0: float = Field(-0.34, allow_inf_nan=False, description="Formal potential (V)")
    V_start: float = Field(-0.6, allow_inf_nan=False, description="Initial baseline potential (V)")
    k0_red: float = Field(1000.0, gt=0.0, description="Reduction preexponential rate constant (1/s)")
    k0_ox: float = Field(1000.0, gt=0.0, description="Oxidation preexponential rate constant (1/s)")
    lambda_eV_red: float = Field(0.2, gt=0.0, description="Reduction reorganization energy (eV)")
    lambda_eV_ox: float = Field(0.2, gt=0.0, description="Oxidation reorganization energy (eV)")
    gamma_tot: float = Field(16e-9, gt=0.0, description="Total surface coverage (mol/m^2)")
    gain: float = Field(1.0, allow_inf_nan=False, description="Faradaic current scale factor")
    I_nonfaradaic_amplitude: float = Field(
        0.0, allow_inf_nan=False, description="Square-wave background current amplitude (A)"
    )
    I_offset: float = Field(0.0, allow_inf_nan=False, description="Constant current offset (A)")
    f_squarewave: float = Field(25.0, ge=0.0, allow_inf_nan=False, description="Square-wave frequency (Hz)")
    electrode_radius: float = Field(1e-3, gt=0.0, description="Disc electrode radius (m)")

    @property
    def lambda_red(self) -> float:
        # eV -> J/mol
        return self.lambda_eV_red * self.F

    @property
    def lambda_ox(self) -> float:
        return self.lambda_eV_ox * self.F

    @property
    def beta_red(self) -> float:
        return 1.0 / (4.0 * self.lambda_red * self.R * self.T)

    @property
    def beta_ox(self) -> float:
        return 1.0 / (4.0 * self.lambda_ox * self.R * self.T)

    @property
    def electrode_area(self) -> float:
        return math.pi * self.electrode_radius**2

    @property
    def eta_start(self) -> float:
        return self.V_start - self.E0


def load_parameters(path: str | Path) -> MarcusParameters:
    """
    Reads a JSON object of parameter overrides; missing fields keep their defaults.

    A parameters.json written by dump_parameters loads back as is; its "derived"
    block is recomputed rather than read.
    """
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise ValueError(f"Parameter file must contain a JSON object, got {type(raw)}")
    raw.pop("derived", None)
    return MarcusParameters(**raw)


def dump_parameters(params: MarcusParameters) -> dict[str, Any]:
    payload = params.model_dump()
    payload["derived"] = {
        "lambda_red": params.lambda_red,
        "lambda_ox": params.lambda_ox,
        "beta_red": params.beta_red,
        "beta_ox": params.beta_ox,
        "electrode_area": params.electrode_area,
    }
    return payload
