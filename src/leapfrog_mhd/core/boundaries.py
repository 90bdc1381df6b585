"""
Ghost-cell boundary policies for the 1D MHD grid.

Each policy is a pure function FieldSet -> FieldSet that rewrites the two
ghost cells (indices 0 and ni-1) from the physical cells next to them.
Policies are passed to the integrator as static arguments of the jitted
step, so they must be module-level functions.

Available policies:
    - reflecting: hard conducting wall. Density and By are mirrored
      evenly, both velocity components oddly (they vanish at the wall).
    - periodic: each ghost cell copies the physical cell at the opposite
      end of the domain.
"""

import jax.numpy as jnp
from typing import Callable, Dict, Union

from .exceptions import ConfigurationError
from .mhd_system import FieldSet


BoundaryPolicy = Callable[[FieldSet], FieldSet]


def _mirror(f: jnp.ndarray, sign: float) -> jnp.ndarray:
    f = f.at[0].set(sign * f[1])
    return f.at[-1].set(sign * f[-2])


def _wrap(f: jnp.ndarray) -> jnp.ndarray:
    f = f.at[0].set(f[-2])
    return f.at[-1].set(f[1])


def reflecting_boundary(fields: FieldSet) -> FieldSet:
    """Hard-wall boundary: even scalars, odd velocities."""
    return FieldSet(
        density=_mirror(fields.density, 1.0),
        vx=_mirror(fields.vx, -1.0),
        vy=_mirror(fields.vy, -1.0),
        by=_mirror(fields.by, 1.0),
    )


def periodic_boundary(fields: FieldSet) -> FieldSet:
    """Periodic boundary: ghost cells wrap around to the opposite end."""
    return FieldSet(*(_wrap(f) for f in fields))


BOUNDARY_POLICIES: Dict[str, BoundaryPolicy] = {
    'reflecting': reflecting_boundary,
    'periodic': periodic_boundary,
}


def get_boundary(policy: Union[str, BoundaryPolicy]) -> BoundaryPolicy:
    """
    Resolve a boundary policy by name, or pass a callable through.

    Raises:
        ConfigurationError: If the name is not registered
    """
    if callable(policy):
        return policy
    try:
        return BOUNDARY_POLICIES[str(policy).lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown boundary policy: {policy!r}. "
            f"Available: {list(BOUNDARY_POLICIES.keys())}"
        ) from None


def boundary_name(policy: BoundaryPolicy) -> str:
    """Registered name of a policy (or its function name)."""
    for name, func in BOUNDARY_POLICIES.items():
        if func is policy:
            return name
    return getattr(policy, '__name__', repr(policy))
