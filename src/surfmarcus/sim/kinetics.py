import jax
import jax.numpy as jnp
import equinox as eqx

from surfmarcus.sim.params import MarcusParameters

# exp(-1e4) is exactly 0 in float64, so saturating here keeps huge |eta| at a zero rate
EXPONENT_CEILING = 1.0e4

REDUCTION = 1.0
OXIDATION = -1.0


def marcus_rate(eta, lam, beta, k0, sign, n_e, F):
    """
    Marcus rate constant k = k0 * exp(-(lam + sign * n_e * F * eta)^2 * beta).

    sign is +1 for reduction and -1 for oxidation. lam is in J/mol and beta in
    (J/mol)^-2, so the exponent is dimensionless.
    """
    eta = jnp.asarray(eta)
    barrier = jnp.square(lam + sign * n_e * F * eta) * beta
    barrier = jnp.minimum(barrier, EXPONENT_CEILING)
    return k0 * jnp.exp(-barrier)


class AsymmetricMarcus(eqx.Module):
    """
    Heterogeneous electron transfer rates for a surface-bound couple with
    independent reorganization energies and preexponentials per branch.
    """
    k0_red: float
    k0_ox: float
    lambda_red: float  # J/mol
    lambda_ox: float   # J/mol
    beta_red: float
    beta_ox: float
    E0: float
    n_e: float = 1.0
    F: float = 96485.0

    @classmethod
    def from_parameters(cls, params: MarcusParameters) -> "AsymmetricMarcus":
        jax.config.update("jax_enable_x64", True)
        return cls(
            k0_red=params.k0_red,
            k0_ox=params.k0_ox,
            lambda_red=params.lambda_red,
            lambda_ox=params.lambda_ox,
            beta_red=params.beta_red,
            beta_ox=params.beta_ox,
            E0=params.E0,
            n_e=params.n_e,
            F=params.F,
        )

    def reduction_rate(self, eta):
        return marcus_rate(eta, self.lambda_red, self.beta_red, self.k0_red, REDUCTION, self.n_e, self.F)

    def oxidation_rate(self, eta):
        return marcus_rate(eta, self.lambda_ox, self.beta_ox, self.k0_ox, OXIDATION, self.n_e, self.F)

    def rate_constants(self, eta):
        """Returns (k_red, k_ox) at overpotential eta (V)."""
        return self.reduction_rate(eta), self.oxidation_rate(eta)

    def rate_constants_at(self, V_app):
        return self.rate_constants(jnp.asarray(V_app) - self.E0)

    def peak_overpotentials(self) -> tuple[float, float]:
        """Overpotentials at which k_red and k_ox reach their preexponentials."""
        return -self.lambda_red / (self.n_e * self.F), self.lambda_ox / (self.n_e * self.F)
