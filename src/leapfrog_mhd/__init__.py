"""
leapfrog-mhd: JAX-Accelerated 1D Ideal MHD Solver

A Python library for simulating Alfvén and magnetosonic pulses in a
one-dimensional ideal MHD plasma with a leapfrog-trapezoidal finite
difference scheme, with running energy diagnostics.

The 1D ideal MHD equations with adiabatic closure:
    ∂ρ/∂t  = -∂(ρvx)/∂x
    ∂vx/∂t = -vx ∂vx/∂x + (-∂p/∂x - Jz By)/ρ
    ∂vy/∂t = -vx ∂vy/∂x + Jz Bx0/ρ
    ∂By/∂t = ∂Ez/∂x

where p = p₀ρ^γ, Ez = -(vx By - vy Bx0) and Jz = ∂By/∂x.

Features:
    - JAX-compiled predictor/corrector kernels
    - Reflecting (conducting wall) or periodic boundaries
    - Kinetic, magnetic and pressure energy time series
    - Stability, conservation and Elsässer wave metrics
    - Dark-themed profile, energy and time-position plots
    - Multiple output formats (CSV, NetCDF, PNG, GIF)

License: MIT
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .core.exceptions import ConfigurationError, NumericalInstabilityError
from .core.mhd_system import MHDSystem, MHDParams, FieldSet
from .core.integrator import LeapfrogIntegrator, Snapshot
from .core.metrics import (
    EnergyLog,
    EnergyRecord,
    compute_energy_diagnostics,
    compute_stability_metrics,
    compute_conservation_metrics,
    compute_wave_metrics,
    compute_all_metrics,
)
from .io.config_manager import ConfigManager
from .io.data_handler import DataHandler

__all__ = [
    # Core classes
    "MHDSystem",
    "MHDParams",
    "FieldSet",
    "LeapfrogIntegrator",
    "Snapshot",
    "EnergyLog",
    "EnergyRecord",
    # Errors
    "ConfigurationError",
    "NumericalInstabilityError",
    # Config and data
    "ConfigManager",
    "DataHandler",
    # Metrics functions
    "compute_energy_diagnostics",
    "compute_stability_metrics",
    "compute_conservation_metrics",
    "compute_wave_metrics",
    "compute_all_metrics",
]
