"""Pytest configuration and fixtures for leapfrog-mhd tests."""

import pytest
import numpy as np


@pytest.fixture
def default_params():
    """Default 1D MHD parameters."""
    return {
        'nid': 64,
        'length': 1.0,
        'gamma': 5.0 / 3.0,
        'beta': 1.0,
        'bx0': 1.0,
    }


@pytest.fixture
def default_simulation_params():
    """Default simulation parameters."""
    return {
        'dt': 0.01,
        'tsim': 1.0,
        'tfldout': 0.1,
    }


@pytest.fixture
def pulse_system():
    """Right-traveling Alfvén pulse on 64 cells."""
    from leapfrog_mhd import MHDSystem

    system = MHDSystem(nid=64)
    system.init_pulse(vpert=0.01, direction='y', traveling_wave=1)
    return system


@pytest.fixture
def left_pulse_system():
    """Left-traveling Alfvén pulse on 64 cells."""
    from leapfrog_mhd import MHDSystem

    system = MHDSystem(nid=64)
    system.init_pulse(vpert=0.01, direction='y', traveling_wave=-1)
    return system


@pytest.fixture
def equilibrium_system():
    """Unperturbed uniform plasma."""
    from leapfrog_mhd import MHDSystem

    system = MHDSystem(nid=64)
    system.init_equilibrium()
    return system


@pytest.fixture
def integrator():
    """Integrator with the default time step and reflecting walls."""
    from leapfrog_mhd import LeapfrogIntegrator

    return LeapfrogIntegrator(dt=0.01, boundary='reflecting')