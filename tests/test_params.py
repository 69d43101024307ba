import json
import math

import pytest
from pydantic import ValidationError

from surfmarcus.sim.params import MarcusParameters, dump_parameters, load_parameters


def test_default_parameters_match_reference_scenario():
    params = MarcusParameters()
    assert params.n_e == 2.0
    assert params.E0 == -0.34
    assert params.V_start == -0.6
    assert params.gamma_tot == 16e-9
    assert math.isclose(params.eta_start, -0.26)


def test_derived_constants():
    params = MarcusParameters(lambda_eV_red=0.2, lambda_eV_ox=0.5, electrode_radius=2e-3)
    assert math.isclose(params.lambda_red, 0.2 * params.F)
    assert math.isclose(params.lambda_ox, 0.5 * params.F)
    assert math.isclose(params.beta_red, 1.0 / (4.0 * 0.2 * params.F * params.R * params.T))
    assert math.isclose(params.beta_ox, 1.0 / (4.0 * 0.5 * params.F * params.R * params.T))
    assert math.isclose(params.electrode_area, math.pi * 4e-6)


def test_parameters_are_immutable():
    params = MarcusParameters()
    with pytest.raises(ValidationError):
        params.E0 = 0.0


@pytest.mark.parametrize(
    "field, value",
    [("T", 0.0), ("k0_red", -1.0), ("lambda_eV_ox", 0.0), ("gamma_tot", -1e-9), ("f_squarewave", -1.0)],
)
def test_rejects_non_physical_values(field, value):
    with pytest.raises(ValidationError):
        MarcusParameters(**{field: value})


def test_rejects_unknown_fields():
    with pytest.raises(ValidationError):
        MarcusParameters(alpha=0.5)


def test_load_parameters_from_json(tmp_path):
    path = tmp_path / "params.json"
    path.write_text(json.dumps({"k0_red": 250.0, "lambda_eV_ox": 0.35}), encoding="utf-8")

    params = load_parameters(path)

    assert params.k0_red == 250.0
    assert params.lambda_eV_ox == 0.35
    assert params.k0_ox == 1000.0


def test_load_parameters_rejects_non_object(tmp_path):
    path = tmp_path / "params.json"
    path.write_text(json.dumps([1, 2, 3]), encoding="utf-8")
    with pytest.raises(ValueError):
        load_parameters(path)


def test_dump_parameters_includes_derived_constants():
    payload = dump_parameters(MarcusParameters())
    assert payload["E0"] == -0.34
    assert set(payload["derived"]) == {"lambda_red", "lambda_ox", "beta_red", "beta_ox", "electrode_area"}


def test_load_parameters_accepts_dumped_file(tmp_path):
    original = MarcusParameters(k0_red=250.0, E0=-0.3)
    path = tmp_path / "parameters.json"
    path.write_text(json.dumps(dump_parameters(original)), encoding="utf-8")

    assert load_parameters(path) == original
