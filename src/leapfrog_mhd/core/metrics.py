"""
Metrics for 1D Ideal MHD Analysis.

Provides:
    - Energy diagnostics (kinetic, magnetic, pressure, total) per step
    - EnergyLog, the append-only time series of energy records
    - Stability metrics (wave speeds, Courant number, positivity)
    - Conservation metrics (mass, momentum, cross helicity)
    - Wave metrics (Elsässer energies, propagation direction)

All sums run over the physical cells 1..ni-2 only; ghost cells hold
boundary copies and are never counted.

References:
    Biskamp, D. (2003). Magnetohydrodynamic Turbulence.
    Elsässer, W. M. (1950). The hydromagnetic equations. Phys. Rev. 79, 183.
"""

import numpy as np
from typing import Dict, Iterator, NamedTuple, Optional, Any

from .mhd_system import FieldSet, MHDParams


def _physical(fields: FieldSet):
    """Physical-cell slices of density, vx, vy, by as numpy arrays."""
    return tuple(np.asarray(f)[1:-1] for f in fields)


# ============================================================================
# ENERGY DIAGNOSTICS
# ============================================================================

class EnergyRecord(NamedTuple):
    """Energy densities (per physical cell) at one simulation time."""
    t: float
    kinetic: float
    magnetic: float
    pressure: float
    total: float


def compute_energy_diagnostics(fields: FieldSet, params: MHDParams) -> Dict[str, float]:
    """
    Compute energy densities averaged over the physical cells.

        kinetic  = Σ ρ(vx² + vy²)/2 / nid
        magnetic = Σ By²/2 / nid
        pressure = Σ (p - p₀)/(γ - 1) / nid,   p = p₀ρ^γ

    Only the perturbed transverse field enters the magnetic energy; the
    uniform Bx0 contributes a constant and is left out.

    Args:
        fields: FieldSet to evaluate
        params: System parameters

    Returns:
        Dictionary with kinetic, magnetic, pressure and total energy
    """
    rho, vx, vy, by = _physical(fields)
    nid = rho.size

    p = params.p0 * rho**params.gamma

    kinetic = 0.5 * np.sum(rho * (vx**2 + vy**2)) / nid
    magnetic = 0.5 * np.sum(by**2) / nid
    pressure = np.sum(p - params.p0) / (params.gamma - 1) / nid

    return {
        'kinetic': float(kinetic),
        'magnetic': float(magnetic),
        'pressure': float(pressure),
        'total': float(kinetic + magnetic + pressure),
    }


class EnergyLog:
    """
    Append-only time series of EnergyRecords.

    Storage is a preallocated [5, capacity] array that doubles when full.
    Accessors return read-only views; because records are never modified
    after they are written, a view taken at any point stays valid.

    Example:
        >>> log = EnergyLog(capacity=100)
        >>> log.append(0.0, kinetic=1e-5, magnetic=1e-5, pressure=0.0)
        >>> log.total
        array([2.e-05])
    """

    _COLUMNS = EnergyRecord._fields

    def __init__(self, capacity: int = 0):
        self._data = np.zeros((len(self._COLUMNS), max(int(capacity), 1)))
        self._n = 0

    def append(self, t: float, kinetic: float, magnetic: float,
               pressure: float) -> EnergyRecord:
        """Append one record; the total is the sum of the three parts."""
        if self._n == self._data.shape[1]:
            grown = np.zeros((self._data.shape[0], 2 * self._data.shape[1]))
            grown[:, :self._n] = self._data[:, :self._n]
            self._data = grown

        record = EnergyRecord(
            float(t), float(kinetic), float(magnetic), float(pressure),
            float(kinetic + magnetic + pressure)
        )
        self._data[:, self._n] = record
        self._n += 1
        return record

    def _column(self, name: str, n: Optional[int] = None) -> np.ndarray:
        n = self._n if n is None else min(n, self._n)
        view = self._data[self._COLUMNS.index(name), :n].view()
        view.flags.writeable = False
        return view

    @property
    def t(self) -> np.ndarray:
        return self._column('t')

    @property
    def kinetic(self) -> np.ndarray:
        return self._column('kinetic')

    @property
    def magnetic(self) -> np.ndarray:
        return self._column('magnetic')

    @property
    def pressure(self) -> np.ndarray:
        return self._column('pressure')

    @property
    def total(self) -> np.ndarray:
        return self._column('total')

    def view(self, n: Optional[int] = None) -> Dict[str, np.ndarray]:
        """Read-only views of the first n records (all by default)."""
        return {name: self._column(name, n) for name in self._COLUMNS}

    def to_dict(self) -> Dict[str, np.ndarray]:
        """Writable copies of all columns."""
        return {name: np.array(self._column(name)) for name in self._COLUMNS}

    def records(self):
        return list(self)

    def relative_drift(self) -> float:
        """Maximum |E(t) - E(0)| / |E(0)| of the total energy."""
        total = self.total
        if total.size == 0 or total[0] == 0:
            return 0.0
        return float(np.max(np.abs(total - total[0])) / abs(total[0]))

    def __len__(self) -> int:
        return self._n

    def __getitem__(self, index: int) -> EnergyRecord:
        if index < 0:
            index += self._n
        if not 0 <= index < self._n:
            raise IndexError("energy record index out of range")
        return EnergyRecord(*(float(v) for v in self._data[:, index]))

    def __iter__(self) -> Iterator[EnergyRecord]:
        for i in range(self._n):
            yield self[i]

    def __repr__(self) -> str:
        return f"EnergyLog(records={self._n})"


# ============================================================================
# STABILITY METRICS
# ============================================================================

def compute_stability_metrics(
    fields: FieldSet,
    params: MHDParams,
    dt: float
) -> Dict[str, float]:
    """
    Compute stability metrics for the explicit scheme.

    The Courant number uses the fast magnetosonic speed
        c_f = sqrt(c_s² + v_A²),  c_s² = γp/ρ,  v_A² = (Bx0² + By²)/ρ
    and is max(|vx| + c_f)·dt/dx. The scheme is expected to be stable
    for values below 1.

    Args:
        fields: FieldSet to evaluate
        params: System parameters
        dt: Time step

    Returns:
        Dictionary with stability metrics
    """
    rho, vx, vy, by = _physical(fields)

    min_density = float(np.min(rho))
    positive = rho > 0
    safe_rho = np.where(positive, rho, np.nan)

    p = params.p0 * safe_rho**params.gamma

    cs = np.sqrt(params.gamma * p / safe_rho)
    v_A = np.sqrt((params.bx0**2 + by**2) / safe_rho)
    cf = np.sqrt(cs**2 + v_A**2)

    v_mag = np.sqrt(vx**2 + vy**2)

    if np.any(positive):
        max_signal = float(np.nanmax(np.abs(vx) + cf))
        max_sound = float(np.nanmax(cs))
        max_alfven = float(np.nanmax(v_A))
        max_fast = float(np.nanmax(cf))
        max_fast_mach = float(np.nanmax(v_mag / (cf + 1e-30)))
    else:
        max_signal = max_sound = max_alfven = max_fast = max_fast_mach = float('nan')

    courant = max_signal * dt / params.dx
    finite = bool(np.all(np.isfinite([rho, vx, vy, by])))

    return {
        'max_velocity': float(np.max(v_mag)),
        'max_sound_speed': max_sound,
        'max_alfven_speed': max_alfven,
        'max_fast_speed': max_fast,
        'max_fast_mach': max_fast_mach,
        'max_signal_speed': max_signal,
        'courant_number': float(courant),
        'dt': float(dt),
        'min_density': min_density,
        'min_pressure': float(np.nanmin(p)) if np.any(positive) else float('nan'),
        'is_stable': bool(finite and min_density > 0 and courant <= 1.0),
    }


def courant_number(fields: FieldSet, params: MHDParams, dt: float) -> float:
    """Courant number max(|vx| + c_f)·dt/dx of a FieldSet."""
    return compute_stability_metrics(fields, params, dt)['courant_number']


# ============================================================================
# CONSERVATION METRICS
# ============================================================================

def compute_conservation_metrics(fields: FieldSet, params: MHDParams) -> Dict[str, float]:
    """
    Compute domain-integrated conserved quantities.

    With reflecting walls the total mass is conserved by the centred
    flux differences; momentum is not (the walls exert pressure).

    Args:
        fields: FieldSet to evaluate
        params: System parameters

    Returns:
        Dictionary with conservation metrics
    """
    rho, vx, vy, by = _physical(fields)
    dx = params.dx

    energy = compute_energy_diagnostics(fields, params)

    return {
        'total_mass': float(np.sum(rho) * dx),
        'total_momentum_x': float(np.sum(rho * vx) * dx),
        'total_momentum_y': float(np.sum(rho * vy) * dx),
        'cross_helicity': float(np.sum(vx * params.bx0 + vy * by) * dx),
        'transverse_flux': float(np.sum(by) * dx),
        'kinetic_energy': energy['kinetic'],
        'magnetic_energy': energy['magnetic'],
        'pressure_energy': energy['pressure'],
        'total_energy': energy['total'],
    }


# ============================================================================
# WAVE METRICS
# ============================================================================

def compute_wave_metrics(fields: FieldSet, params: MHDParams) -> Dict[str, float]:
    """
    Decompose the transverse perturbation into Elsässer variables.

        z± = vy ± By/√ρ

    In the linear regime z⁻ travels along +Bx0 and z⁺ against it, so a
    right-traveling pulse (By = -vy, Bx0 > 0) has z⁺ = 0. The
    propagation index is (E_forward - E_backward)/(E_forward + E_backward)
    with "forward" meaning +x: +1 for a pure right-mover, -1 for a pure
    left-mover, near 0 for a standing wave.

    Args:
        fields: FieldSet to evaluate
        params: System parameters

    Returns:
        Dictionary with wave metrics
    """
    rho, vx, vy, by = _physical(fields)
    nid = rho.size

    b = by / np.sqrt(np.where(rho > 0, rho, np.nan))
    z_plus = vy + b
    z_minus = vy - b

    e_plus = float(np.nansum(0.25 * rho * z_plus**2) / nid)
    e_minus = float(np.nansum(0.25 * rho * z_minus**2) / nid)

    if params.bx0 >= 0:
        forward, backward = e_minus, e_plus
    else:
        forward, backward = e_plus, e_minus

    total = forward + backward
    index = (forward - backward) / total if total > 0 else 0.0

    return {
        'elsasser_plus_energy': e_plus,
        'elsasser_minus_energy': e_minus,
        'forward_energy': forward,
        'backward_energy': backward,
        'propagation_index': float(index),
        'max_abs_vy': float(np.max(np.abs(vy))),
        'max_abs_by': float(np.max(np.abs(by))),
    }


# ============================================================================
# ALL METRICS
# ============================================================================

def compute_all_metrics(
    fields: FieldSet,
    params: MHDParams,
    dt: float,
    energy_log: Optional[EnergyLog] = None,
    conservation_initial: Optional[Dict[str, float]] = None,
) -> Dict[str, Any]:
    """
    Compute every metric family, prefixed by category.

    Prefixes: ``cons_``, ``stab_``, ``wave_``. When an EnergyLog is
    given, ``energy_drift`` holds its relative total-energy drift; when
    initial conservation metrics are given, ``mass_conservation_error``
    holds the relative mass change.

    Args:
        fields: FieldSet to evaluate
        params: System parameters
        dt: Time step
        energy_log: Optional energy time series of the run
        conservation_initial: Optional conservation metrics at t=0

    Returns:
        Flat dictionary of metrics
    """
    metrics: Dict[str, Any] = {}

    cons = compute_conservation_metrics(fields, params)
    metrics.update({f'cons_{k}': v for k, v in cons.items()})

    stab = compute_stability_metrics(fields, params, dt)
    metrics.update({f'stab_{k}': v for k, v in stab.items()})

    wave = compute_wave_metrics(fields, params)
    metrics.update({f'wave_{k}': v for k, v in wave.items()})

    if energy_log is not None:
        metrics['energy_drift'] = energy_log.relative_drift()

    if conservation_initial is not None:
        m0 = conservation_initial['total_mass']
        metrics['mass_conservation_error'] = (
            abs(cons['total_mass'] - m0) / abs(m0) if m0 != 0 else 0.0
        )

    return metrics
