"""
1D Ideal MHD System Definition.

The system evolves a plasma along x threaded by a uniform axial field
Bx0, with a transverse field component By and two velocity components.
Pressure follows an adiabatic closure instead of an energy equation.

Governing equations (normalized, ρ₀ = 1, Bx0 = 1 gives v_A = 1):
    ∂ρ/∂t  = -∂(ρvx)/∂x                               (mass)
    ∂vx/∂t = -vx ∂vx/∂x + (-∂p/∂x - Jz By) / ρ          (x-momentum)
    ∂vy/∂t = -vx ∂vy/∂x + Jz Bx0 / ρ                    (y-momentum)
    ∂By/∂t = ∂Ez/∂x                                     (induction)

with:
    p  = p₀ ρ^γ,  p₀ = β/2           (adiabatic closure)
    Ez = -(vx By - vy Bx0)            (ideal Ohm's law)
    Jz = ∂By/∂x                       (Ampère's law)

The grid carries one ghost cell at each end; the physical cells are
indices 1..ni-2.
"""

import numpy as np
import jax.numpy as jnp
from typing import Dict, Any, NamedTuple, Optional, Union
from dataclasses import dataclass, field

from .exceptions import ConfigurationError


DIRECTIONS = ('x', 'y', 'both')
PROFILES = ('gaussian', 'sine')


class FieldSet(NamedTuple):
    """
    Primary field variables at one time level.

    All arrays have length ni (ghost cells included). As a NamedTuple this
    is a JAX pytree and can be passed straight into jitted kernels.
    """
    density: jnp.ndarray
    vx: jnp.ndarray
    vy: jnp.ndarray
    by: jnp.ndarray

    def to_numpy(self) -> Dict[str, np.ndarray]:
        return {name: np.asarray(value) for name, value in self._asdict().items()}


@dataclass
class MHDParams:
    """
    Container for 1D MHD system parameters.

    Attributes:
        nid: Number of physical grid cells
        length: Domain length (the physical cells cover [0, length])
        gamma: Adiabatic index (default: 5/3)
        beta: Plasma beta, sets the background pressure p₀ = β/2
        bx0: Uniform axial magnetic field
    """
    nid: int = 64
    length: float = 1.0
    gamma: float = 5.0 / 3.0
    beta: float = 1.0
    bx0: float = 1.0

    # Derived quantities (computed in __post_init__)
    ni: int = field(init=False)
    dx: float = field(init=False)
    p0: float = field(init=False)

    def __post_init__(self):
        """Validate and compute derived quantities."""
        if int(self.nid) != self.nid or self.nid < 1:
            raise ConfigurationError(f"nid must be a positive integer, got {self.nid}")
        if not np.isfinite(self.length) or self.length <= 0:
            raise ConfigurationError(f"length must be positive, got {self.length}")
        if not np.isfinite(self.gamma) or self.gamma <= 1:
            raise ConfigurationError(
                f"gamma must be > 1 (pressure energy divides by gamma - 1), got {self.gamma}"
            )
        if not np.isfinite(self.beta) or self.beta < 0:
            raise ConfigurationError(f"beta must be >= 0, got {self.beta}")
        if not np.isfinite(self.bx0):
            raise ConfigurationError(f"bx0 must be finite, got {self.bx0}")

        self.nid = int(self.nid)
        self.ni = self.nid + 2
        self.dx = self.length / self.nid
        self.p0 = 0.5 * self.beta

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return {
            'nid': self.nid,
            'ni': self.ni,
            'length': self.length,
            'dx': self.dx,
            'gamma': self.gamma,
            'beta': self.beta,
            'p0': self.p0,
            'bx0': self.bx0,
        }


def normalize_direction(direction: Union[str, int]) -> str:
    """
    Map a perturbation direction selector to 'x', 'y' or 'both'.

    Integers follow the classic convention: 1 is x, 2 is y and any other
    value perturbs both components.
    """
    if isinstance(direction, (int, np.integer)) and not isinstance(direction, bool):
        return {1: 'x', 2: 'y'}.get(int(direction), 'both')

    key = str(direction).strip().lower()
    if key in ('xy', 'yx'):
        key = 'both'
    if key not in DIRECTIONS:
        raise ConfigurationError(
            f"Unknown perturbation direction: {direction!r}. Available: {list(DIRECTIONS)}"
        )
    return key


class MHDSystem:
    """
    1D ideal MHD system held at two time levels.

    The leapfrog-trapezoidal scheme needs two field buffers. ``corrector``
    always holds the authoritative state at the current time; ``predictor``
    holds the previous time level between steps. The integrator exchanges
    the two references every step instead of copying data.

    Attributes:
        params: MHDParams containing system parameters
        x: Cell-centre positions, ghost cells included
        dx: Grid spacing
        predictor, corrector: FieldSet buffers
        t: Simulation time of the corrector buffer
        step_count: Number of completed time steps

    Example:
        >>> system = MHDSystem(nid=64, beta=1.0)
        >>> system.init_pulse(vpert=0.01, direction='y', traveling_wave=1)
        >>> print(system)
    """

    def __init__(
        self,
        nid: int = 64,
        length: float = 1.0,
        gamma: float = 5.0 / 3.0,
        beta: float = 1.0,
        bx0: float = 1.0,
    ):
        """
        Initialize MHD system.

        Args:
            nid: Number of physical grid cells
            length: Domain length
            gamma: Adiabatic index
            beta: Plasma beta
            bx0: Uniform axial magnetic field
        """
        self.params = MHDParams(nid=nid, length=length, gamma=gamma, beta=beta, bx0=bx0)

        # x[i] = (i - 0.5) dx, so the walls sit at x = 0 and x = length
        self.dx = self.params.dx
        self.x = (np.arange(self.params.ni) - 0.5) * self.dx
        self.x.setflags(write=False)

        zeros = jnp.zeros(self.params.ni)
        self.predictor = FieldSet(zeros, zeros, zeros, zeros)
        self.corrector = FieldSet(zeros, zeros, zeros, zeros)

        self.t = 0.0
        self.step_count = 0

        self._initialized = False
        self._init_type = None
        self._init_kwargs: Dict[str, Any] = {}

    @property
    def gamma(self) -> float:
        return self.params.gamma

    @property
    def nid(self) -> int:
        return self.params.nid

    @property
    def ni(self) -> int:
        return self.params.ni

    @property
    def p0(self) -> float:
        return self.params.p0

    @property
    def bx0(self) -> float:
        return self.params.bx0

    @property
    def is_first_step(self) -> bool:
        """True until the first time step has been committed."""
        return self.step_count == 0

    def init_pulse(
        self,
        vpert: float = 0.01,
        direction: Union[str, int] = 'y',
        traveling_wave: int = 1,
        width: float = 0.15,
        center: float = 0.5,
        profile: Optional[str] = None,
    ):
        """
        Initialize a velocity-perturbed uniform equilibrium.

        Density is 1 and pressure p₀ everywhere. The velocity perturbation
        is a Gaussian pulse vpert·exp(-(x - center)²/width²) in the selected
        component, or vpert·sin(2πx/L) in both components for
        direction='both'. For traveling_wave = ±1 the transverse field is
        set to By = -traveling_wave·vy, which selects an Alfvén wave moving
        right (+1) or left (-1); any other value gives a standing wave
        with By = 0.

        Both buffers receive identical copies.

        Args:
            vpert: Velocity perturbation amplitude
            direction: 'x', 'y' or 'both' (or 1, 2, other)
            traveling_wave: +1 right, -1 left, anything else standing
            width: Gaussian width
            center: Gaussian centre
            profile: 'gaussian' or 'sine'; default depends on direction
        """
        direction = normalize_direction(direction)
        if profile is None:
            profile = 'sine' if direction == 'both' else 'gaussian'
        if profile not in PROFILES:
            raise ConfigurationError(
                f"Unknown perturbation profile: {profile!r}. Available: {list(PROFILES)}"
            )
        if not np.isfinite(vpert):
            raise ConfigurationError(f"vpert must be finite, got {vpert}")
        if profile == 'gaussian' and (not np.isfinite(width) or width <= 0):
            raise ConfigurationError(f"width must be positive, got {width}")

        x = self.x
        if profile == 'gaussian':
            shape = np.exp(-(x - center)**2 / width**2)
        else:
            shape = np.sin(2 * np.pi * x / self.params.length)

        density = np.ones(self.ni)
        vx = np.zeros(self.ni)
        vy = np.zeros(self.ni)

        if direction in ('x', 'both'):
            vx = vpert * shape
        if direction in ('y', 'both'):
            vy = vpert * shape

        if abs(traveling_wave) == 1:
            by = -traveling_wave * vy
        else:
            by = np.zeros(self.ni)

        self.set_fields(density, vx, vy, by)

        self._init_type = 'pulse'
        self._init_kwargs = {
            'vpert': vpert,
            'direction': direction,
            'traveling_wave': traveling_wave,
            'width': width,
            'center': center,
            'profile': profile,
        }

    def init_equilibrium(self):
        """Initialize the unperturbed uniform state (a fixed point of the scheme)."""
        self.init_pulse(vpert=0.0, direction='y', traveling_wave=0)
        self._init_type = 'equilibrium'

    def set_fields(self, density, vx, vy, by):
        """
        Write the same field profiles into both buffers and reset the clock.

        Args:
            density, vx, vy, by: Arrays of length ni
        """
        arrays = [np.asarray(a, dtype=np.float64) for a in (density, vx, vy, by)]
        for name, a in zip(FieldSet._fields, arrays):
            if a.shape != (self.ni,):
                raise ConfigurationError(
                    f"{name} must have shape ({self.ni},), got {a.shape}"
                )

        fields = FieldSet(*(jnp.asarray(a) for a in arrays))
        self.predictor = fields
        self.corrector = fields
        self.t = 0.0
        self.step_count = 0

        self._initialized = True
        self._init_type = 'custom'
        self._init_kwargs = {}

    def commit(self, predictor: FieldSet, corrector: FieldSet, t: float):
        """Accept the buffers produced by one completed time step."""
        self.predictor = predictor
        self.corrector = corrector
        self.t = t
        self.step_count += 1

    def pressure(self, fields: Optional[FieldSet] = None) -> np.ndarray:
        """Adiabatic pressure p = p₀ρ^γ of a buffer (corrector by default)."""
        if fields is None:
            fields = self.corrector
        return self.p0 * np.asarray(fields.density)**self.gamma

    def get_state(self) -> Dict[str, np.ndarray]:
        """Return the current (corrector) fields as numpy arrays."""
        state = self.corrector.to_numpy()
        state['pressure'] = self.pressure()
        state['x'] = np.asarray(self.x)
        return state

    def describe(self) -> str:
        """Return detailed description of the system."""
        params = self.params
        init = self._init_type if self._initialized else 'Not initialized'
        details = ", ".join(f"{k}={v}" for k, v in self._init_kwargs.items())
        return f"""
1D Ideal MHD System (leapfrog-trapezoidal)
==========================================
Physical Cells: {params.nid} (+2 ghost cells)
Domain Length: {params.length:.4f}
Grid Spacing: dx={params.dx:.6f}

Physical Parameters:
  γ (adiabatic index) = {params.gamma:.4f}
  β (plasma beta)     = {params.beta:.4f}
  p₀ = β/2            = {params.p0:.4f}
  Bx0                 = {params.bx0:.4f}

Initialization: {init}{f' ({details})' if details else ''}
Time: t={self.t:.4f} after {self.step_count} steps

Governing Equations:
  ∂ρ/∂t  = -∂(ρvx)/∂x
  ∂vx/∂t = -vx ∂vx/∂x + (-∂p/∂x - Jz By)/ρ
  ∂vy/∂t = -vx ∂vy/∂x + Jz Bx0/ρ
  ∂By/∂t = ∂Ez/∂x,  Ez = -(vx By - vy Bx0),  Jz = ∂By/∂x
"""

    def __repr__(self) -> str:
        return (
            f"MHDSystem(nid={self.nid}, gamma={self.gamma:.2f}, "
            f"beta={self.params.beta:.2f}, init={self._init_type})"
        )

    def __str__(self) -> str:
        return self.__repr__()
