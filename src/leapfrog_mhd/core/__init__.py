"""
Leapfrog-MHD Core Module.

1D Ideal MHD Solver with JAX acceleration.

Components:
    - MHDSystem: Grid, plasma constants, the two field buffers and
      initial conditions
    - boundaries: Ghost-cell boundary policies
    - LeapfrogIntegrator: Predictor/corrector time stepping and run loop
    - metrics: Energy log and diagnostic metrics

Example:
    >>> from leapfrog_mhd.core import MHDSystem, LeapfrogIntegrator
    >>> system = MHDSystem(nid=64)
    >>> system.init_pulse(vpert=0.01, direction='y', traveling_wave=1)
    >>> integrator = LeapfrogIntegrator(dt=0.01)
    >>> result = integrator.run(system, tsim=1.0)
"""

import jax

# The scheme's exactness checks (equilibrium fixed point, mirrored ghost
# cells, dt = 0 identity) rely on float64.
jax.config.update("jax_enable_x64", True)

from .exceptions import ConfigurationError, NumericalInstabilityError
from .mhd_system import MHDSystem, MHDParams, FieldSet
from .boundaries import BOUNDARY_POLICIES, reflecting_boundary, periodic_boundary, get_boundary
from .integrator import LeapfrogIntegrator, DerivedSet, Snapshot, compute_derived
from .metrics import EnergyLog, EnergyRecord
from . import metrics

__all__ = [
    'MHDSystem',
    'MHDParams',
    'FieldSet',
    'DerivedSet',
    'Snapshot',
    'LeapfrogIntegrator',
    'compute_derived',
    'EnergyLog',
    'EnergyRecord',
    'BOUNDARY_POLICIES',
    'reflecting_boundary',
    'periodic_boundary',
    'get_boundary',
    'ConfigurationError',
    'NumericalInstabilityError',
    'metrics',
]
