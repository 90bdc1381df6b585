"""
JAX-accelerated leapfrog-trapezoidal integrator for 1D Ideal MHD.

Implements a two-level explicit scheme with:
    - Second-order centred differences in space
    - Leapfrog predictor / trapezoidal corrector in time
    - Ghost-cell boundary policies applied after every stage
    - Per-step energy bookkeeping and snapshot hand-off

One time step, with F1 the predictor buffer and F2 the corrector buffer:

    1. derived quantities from F2
    2. predictor:  F1 ← ½(F1 + F2) + Δt·L(F2)
    3. swap roles: (F1, F2) ← (F2, F1)
    4. first step only: F2 ← ½(F1 + F2)
    5. boundary on F2
    6. derived quantities from F2
    7. corrector:  F2 ← F1 + Δt·L(F2), swept cell by cell (vy, vx, ρ, By)
    8. boundary on F2

Both buffers start identical, so on the first step the predictor is a
full forward-Euler step; averaging it with the initial state gives the
half-step level the corrector needs.

References:
    Durran, D. R. (2010). Numerical Methods for Fluid Dynamics:
        With Applications to Geophysics (2nd ed.). Springer.
"""

import logging
import jax
import jax.numpy as jnp
from jax import jit
from functools import partial
from typing import Callable, Dict, Any, List, NamedTuple, Optional, Union
from dataclasses import dataclass
import numpy as np
from tqdm import tqdm

from .boundaries import BoundaryPolicy, get_boundary, boundary_name
from .exceptions import ConfigurationError, NumericalInstabilityError
from .metrics import (
    EnergyLog,
    compute_energy_diagnostics,
    compute_conservation_metrics,
    courant_number,
)
from .mhd_system import FieldSet, MHDSystem


logger = logging.getLogger(__name__)


# ============================================================================
# Derived Quantities
# ============================================================================

class DerivedSet(NamedTuple):
    """
    Quantities derived from one FieldSet.

    ``cz`` is only defined on physical cells; its ghost entries are 0
    and never read.
    """
    pressure: jnp.ndarray
    ez: jnp.ndarray
    cz: jnp.ndarray
    mass_flux_x: jnp.ndarray


def _ddx(f: jnp.ndarray, dx: float) -> jnp.ndarray:
    """Centred first derivative on the physical cells 1..ni-2."""
    return (f[2:] - f[:-2]) / (2 * dx)


@jit
def compute_derived(fields: FieldSet, bx0: float, p0: float,
                    gamma: float, dx: float) -> DerivedSet:
    """
    Compute pressure, electric field, current and mass flux.

        p   = p₀ρ^γ
        Ez  = -(vx By - vy Bx0)
        ρvx = ρ·vx
        Jz  = (By[i+1] - By[i-1]) / 2dx   (physical cells only)

    Args:
        fields: FieldSet the quantities are derived from
        bx0: Uniform axial field
        p0: Background pressure
        gamma: Adiabatic index
        dx: Grid spacing

    Returns:
        DerivedSet
    """
    pressure = p0 * fields.density**gamma
    ez = -(fields.vx * fields.by - fields.vy * bx0)
    mass_flux_x = fields.density * fields.vx
    cz = jnp.zeros_like(fields.by).at[1:-1].set(_ddx(fields.by, dx))
    return DerivedSet(pressure, ez, cz, mass_flux_x)


# ============================================================================
# Stage Kernels
# ============================================================================

def _tendencies(fields: FieldSet, derived: DerivedSet, dx: float,
                bx0: float) -> FieldSet:
    """Time derivatives on the physical cells, evaluated from one buffer."""
    i = slice(1, -1)
    rho = fields.density[i]
    vx = fields.vx[i]

    dvy = -vx * _ddx(fields.vy, dx) + derived.cz[i] * bx0 / rho
    dvx = -vx * _ddx(fields.vx, dx) + (
        -_ddx(derived.pressure, dx) - derived.cz[i] * fields.by[i]
    ) / rho
    drho = -_ddx(derived.mass_flux_x, dx)
    dby = _ddx(derived.ez, dx)

    return FieldSet(density=drho, vx=dvx, vy=dvy, by=dby)


@jit
def predictor_stage(predictor: FieldSet, corrector: FieldSet,
                    derived: DerivedSet, dt: float, dx: float,
                    bx0: float) -> FieldSet:
    """
    Leapfrog predictor: F1[i] ← ½(F1[i] + F2[i]) + Δt·L(F2)[i].

    ``derived`` must come from ``corrector``. Ghost cells of the
    predictor are left untouched.
    """
    rates = _tendencies(corrector, derived, dx, bx0)
    return FieldSet(*(
        f1.at[1:-1].set(0.5 * (f1[1:-1] + f2[1:-1]) + dt * rate)
        for f1, f2, rate in zip(predictor, corrector, rates)
    ))


@jit
def corrector_stage(predictor: FieldSet, corrector: FieldSet,
                    derived: DerivedSet, dt: float, dx: float,
                    bx0: float) -> FieldSet:
    """
    Trapezoidal corrector: F2[i] ← F1[i] + Δt·L(F2)[i].

    ``derived`` must come from ``corrector`` after its boundary refresh.

    The velocities are updated in place, sweeping i = 1..ni-2 and
    within each cell vy before vx. The left neighbours vy[i-1] and vx[i-1]
    therefore already hold their new values, while vx[i], density[i] and
    By[i] are still the old ones. Density and By only read the
    precomputed mass flux and electric field, so they are updated in
    one vectorized pass.
    """
    c = slice(1, -1)
    rho = corrector.density[c]
    vx_old = corrector.vx[c]
    vy_source = derived.cz[c] * bx0 / rho
    vx_force = (-_ddx(derived.pressure, dx) - derived.cz[c] * corrector.by[c]) / rho
    dx2 = 2 * dx

    def sweep(carry, cell):
        vy_left, vx_left = carry
        vy_base, vx_base, u, vy_right, vx_right, src, force = cell
        vy_new = vy_base + dt * (-u * (vy_right - vy_left) / dx2 + src)
        vx_new = vx_base + dt * (-u * (vx_right - vx_left) / dx2 + force)
        return (vy_new, vx_new), (vy_new, vx_new)

    cells = (predictor.vy[c], predictor.vx[c], vx_old,
             corrector.vy[2:], corrector.vx[2:], vy_source, vx_force)
    _, (vy_new, vx_new) = jax.lax.scan(
        sweep, (corrector.vy[0], corrector.vx[0]), cells
    )

    density = corrector.density.at[c].set(
        predictor.density[c] - dt * _ddx(derived.mass_flux_x, dx)
    )
    by = corrector.by.at[c].set(predictor.by[c] + dt * _ddx(derived.ez, dx))
    return FieldSet(
        density=density,
        vx=corrector.vx.at[c].set(vx_new),
        vy=corrector.vy.at[c].set(vy_new),
        by=by,
    )


@jit
def average_fields(a: FieldSet, b: FieldSet) -> FieldSet:
    """Element-wise mean of two FieldSets."""
    return FieldSet(*(0.5 * (fa + fb) for fa, fb in zip(a, b)))


@partial(jit, static_argnames=('boundary', 'first_step'))
def leapfrog_step(
    predictor: FieldSet,
    corrector: FieldSet,
    dt: float,
    dx: float,
    bx0: float,
    p0: float,
    gamma: float,
    boundary: BoundaryPolicy,
    first_step: bool,
):
    """
    Advance both buffers by one time step.

    Args:
        predictor: Buffer at the previous time level
        corrector: Buffer at the current time level
        dt: Time step
        dx: Grid spacing
        bx0, p0, gamma: Plasma constants
        boundary: Boundary policy (static)
        first_step: Apply the first-step half-level average (static)

    Returns:
        Tuple of (predictor, corrector, midpoint_positive). The returned
        predictor is the old corrector. ``midpoint_positive`` is False if
        the half-step buffer has a non-positive density at a physical
        cell, in which case the corrector contains division artefacts.
    """
    derived = compute_derived(corrector, bx0, p0, gamma, dx)
    predictor = predictor_stage(predictor, corrector, derived, dt, dx, bx0)

    predictor, corrector = corrector, predictor

    if first_step:
        corrector = average_fields(predictor, corrector)

    corrector = boundary(corrector)
    midpoint_positive = jnp.all(corrector.density[1:-1] > 0)

    derived = compute_derived(corrector, bx0, p0, gamma, dx)
    corrector = corrector_stage(predictor, corrector, derived, dt, dx, bx0)
    corrector = boundary(corrector)

    return predictor, corrector, midpoint_positive


@jit
def _all_finite(fields: FieldSet) -> jnp.ndarray:
    return jnp.all(jnp.stack([jnp.all(jnp.isfinite(f)) for f in fields]))


def _check_density(fields: FieldSet, stage: str, step: int, t: float) -> None:
    if not bool(jnp.all(fields.density[1:-1] > 0)):
        raise NumericalInstabilityError(
            f"Non-positive density {stage} at step {step} (t={t:.4f})",
            step=step, t=t
        )


# ============================================================================
# Snapshots
# ============================================================================

def _readonly(a: np.ndarray) -> np.ndarray:
    view = a.view()
    view.flags.writeable = False
    return view


@dataclass(frozen=True)
class Snapshot:
    """
    State handed to a rendering or persistence callback.

    Field arrays are copies; ``energy`` and the time-position history are
    read-only views covering every step completed before this snapshot.

    Attributes:
        step: 1-based index of the step about to be taken
        t: Simulation time of the fields
        x: Cell positions
        density, vx, vy, by: Field profiles (ghost cells included)
        energy: Dict of t, kinetic, magnetic, pressure, total arrays
        history_t: Times of the recorded vy profiles
        history_vy: vy profiles after each completed step, shape (n, ni)
    """
    step: int
    t: float
    x: np.ndarray
    density: np.ndarray
    vx: np.ndarray
    vy: np.ndarray
    by: np.ndarray
    energy: Dict[str, np.ndarray]
    history_t: np.ndarray
    history_vy: np.ndarray


# ============================================================================
# Main Integrator Class
# ============================================================================

class LeapfrogIntegrator:
    """
    Leapfrog-trapezoidal integrator with fixed time step.

    Features:
        - Two-buffer predictor/corrector with reference swapping
        - Selectable boundary policy ('reflecting' or 'periodic')
        - Density positivity and finiteness checks every step
        - Energy log, snapshots and a time-position history of vy

    Example:
        >>> from leapfrog_mhd.core.mhd_system import MHDSystem
        >>> system = MHDSystem(nid=64)
        >>> system.init_pulse(vpert=0.01, direction='y', traveling_wave=1)
        >>> integrator = LeapfrogIntegrator(dt=0.01)
        >>> result = integrator.run(system, tsim=1.0, tfldout=0.1)

    Attributes:
        dt: Time step
        boundary: Boundary policy function
        boundary_name: Name of the boundary policy
    """

    def __init__(
        self,
        dt: float = 0.01,
        boundary: Union[str, BoundaryPolicy] = 'reflecting'
    ):
        """
        Initialize the integrator.

        Args:
            dt: Time step (0 is accepted for single steps, not for runs)
            boundary: Boundary policy name or callable
        """
        if not np.isfinite(dt) or dt < 0:
            raise ConfigurationError(f"dt must be >= 0, got {dt}")

        self.dt = float(dt)
        self.boundary = get_boundary(boundary)
        self.boundary_name = boundary_name(self.boundary)

    def step(self, system: MHDSystem) -> None:
        """
        Advance the system by one time step.

        The new buffers are committed only when the step is valid.

        Raises:
            NumericalInstabilityError: On non-positive density at a
                physical cell or non-finite results
        """
        if not system._initialized:
            raise ValueError("MHD system not initialized. Call init_* method first.")

        step_index = system.step_count + 1
        _check_density(system.corrector, "before predictor", step_index, system.t)

        predictor, corrector, midpoint_positive = leapfrog_step(
            system.predictor,
            system.corrector,
            self.dt,
            system.dx,
            system.bx0,
            system.p0,
            system.gamma,
            boundary=self.boundary,
            first_step=system.is_first_step,
        )

        if not bool(midpoint_positive):
            raise NumericalInstabilityError(
                f"Non-positive density before corrector at step {step_index} "
                f"(t={system.t:.4f})", step=step_index, t=system.t
            )

        if not bool(_all_finite(corrector)):
            raise NumericalInstabilityError(
                f"Non-finite field values after step {step_index} "
                f"(t={system.t:.4f})", step=step_index, t=system.t
            )
        _check_density(corrector, "after corrector", step_index, system.t)

        system.commit(predictor, corrector, system.t + self.dt)

    def _n_steps(self, tsim: float) -> int:
        if not np.isfinite(tsim) or tsim < 0:
            raise ConfigurationError(f"tsim must be >= 0, got {tsim}")
        if self.dt <= 0:
            raise ConfigurationError("dt must be > 0 to run for a simulated time")
        return int(round(tsim / self.dt))

    def _n_fldout(self, tfldout: float) -> int:
        if not np.isfinite(tfldout) or tfldout < 0:
            raise ConfigurationError(f"tfldout must be >= 0, got {tfldout}")
        if tfldout == 0 or self.dt <= 0:
            return 0
        return max(int(round(tfldout / self.dt)), 1)

    def run(
        self,
        system: MHDSystem,
        tsim: float = 1.0,
        tfldout: float = 0.01,
        callback: Optional[Callable[[Snapshot], Optional[bool]]] = None,
        n_steps: Optional[int] = None,
        verbose: bool = True
    ) -> Dict[str, Any]:
        """
        Run the simulation for nt = round(tsim/dt) steps.

        Each step: record energies of the current state, hand a Snapshot
        to ``callback`` every nfldout = round(tfldout/dt) steps (before
        the energies of that step), advance, then store vy in the
        time-position history under the time the step started from. A callback returning ``False`` stops the
        run; everything recorded so far is kept.

        Args:
            system: MHDSystem instance with initial conditions
            tsim: Total simulation time
            tfldout: Time between snapshots (0 disables snapshots)
            callback: Optional snapshot consumer
            n_steps: Explicit step count, overrides tsim
            verbose: Show progress bar

        Returns:
            Dictionary with simulation results

        Raises:
            NumericalInstabilityError: If the integration blows up. The
                exception carries the EnergyLog in ``energy_log``.
        """
        if not system._initialized:
            raise ValueError("MHD system not initialized. Call init_* method first.")

        nt = self._n_steps(tsim) if n_steps is None else int(n_steps)
        if nt < 0:
            raise ConfigurationError(f"n_steps must be >= 0, got {nt}")
        nfldout = self._n_fldout(tfldout)

        params = system.params
        x = _readonly(np.asarray(system.x))

        energy = EnergyLog(capacity=nt)
        history_t = np.zeros(nt)
        history_vy = np.zeros((nt, system.ni))
        snapshots: List[Snapshot] = []

        courant = courant_number(system.corrector, params, self.dt)
        if courant > 1.0:
            logger.warning(
                f"Courant number {courant:.3f} exceeds 1 (dt={self.dt}, dx={system.dx:.4e}); "
                f"the explicit scheme is expected to be unstable"
            )
        conservation_initial = compute_conservation_metrics(system.corrector, params)

        stopped_early = False
        interrupted = False
        n_done = 0

        pbar = tqdm(total=nt, desc="      Simulating", unit="step") if verbose else None

        try:
            for it in range(1, nt + 1):
                t = system.t

                if nfldout > 0 and (it - 1) % nfldout == 0:
                    fields = system.corrector.to_numpy()
                    snapshot = Snapshot(
                        step=it,
                        t=t,
                        x=x,
                        density=fields['density'],
                        vx=fields['vx'],
                        vy=fields['vy'],
                        by=fields['by'],
                        energy=energy.view(),
                        history_t=_readonly(history_t[:n_done]),
                        history_vy=_readonly(history_vy[:n_done]),
                    )
                    snapshots.append(snapshot)

                    if callback is not None and callback(snapshot) is False:
                        stopped_early = True
                        logger.info(f"Run stopped by callback at step {it} (t={t:.4f})")
                        break

                try:
                    _check_density(system.corrector, "before predictor", it, t)
                    e = compute_energy_diagnostics(system.corrector, params)
                    energy.append(t, e['kinetic'], e['magnetic'], e['pressure'])
                    self.step(system)
                except NumericalInstabilityError as err:
                    logger.error(str(err))
                    err.energy_log = energy
                    raise

                history_t[n_done] = t
                history_vy[n_done] = np.asarray(system.corrector.vy)
                n_done = it

                if pbar is not None:
                    pbar.update(1)

        except KeyboardInterrupt:
            interrupted = True
            logger.warning(f"Run interrupted after {n_done} steps (t={system.t:.4f})")

        finally:
            if pbar is not None:
                pbar.close()

        return {
            'system': system,
            'params': params,
            'x': x,
            'dt': self.dt,
            'boundary': self.boundary_name,
            'snapshots': snapshots,
            'n_snapshots': len(snapshots),
            'energy': energy,
            'history_t': _readonly(history_t[:n_done]),
            'history_vy': _readonly(history_vy[:n_done]),
            'total_steps': n_done,
            'planned_steps': nt,
            't_end': system.t,
            'courant_number': courant,
            'conservation_initial': conservation_initial,
            'final_state': system.get_state(),
            'stopped_early': stopped_early,
            'interrupted': interrupted,
        }

    def __repr__(self) -> str:
        return (
            f"LeapfrogIntegrator(dt={self.dt}, boundary='{self.boundary_name}', "
            f"backend='{jax.default_backend()}')"
        )
