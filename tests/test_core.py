"""
Tests for the leapfrog-mhd 1D ideal MHD solver.

Run with: pytest tests/ -v
"""

import dataclasses
import logging

import jax.numpy as jnp
import numpy as np
import pytest
import tempfile
from pathlib import Path

from leapfrog_mhd import (
    MHDSystem,
    MHDParams,
    FieldSet,
    LeapfrogIntegrator,
    Snapshot,
    EnergyLog,
    ConfigurationError,
    NumericalInstabilityError,
    compute_energy_diagnostics,
    compute_stability_metrics,
)
from leapfrog_mhd.core.boundaries import (
    BOUNDARY_POLICIES,
    get_boundary,
    periodic_boundary,
    reflecting_boundary,
)
from leapfrog_mhd.core.integrator import (
    average_fields,
    compute_derived,
    corrector_stage,
    leapfrog_step,
    predictor_stage,
)
from leapfrog_mhd.core.mhd_system import normalize_direction
from leapfrog_mhd.io.config_manager import ConfigManager
from leapfrog_mhd.io.data_handler import DataHandler


def physical(a):
    return np.asarray(a)[1:-1]


def _wall(d, vx, vy, by):
    d[0], d[-1] = d[1], d[-2]
    by[0], by[-1] = by[1], by[-2]
    vx[0], vx[-1] = -vx[1], -vx[-2]
    vy[0], vy[-1] = -vy[1], -vy[-2]


def reference_step(f1, f2, dt, dx, bx0, p0, gamma, first_step):
    """One leapfrog-trapezoidal step written as plain per-cell loops."""
    d1, vx1, vy1, by1 = (np.array(f, dtype=float) for f in f1)
    d2, vx2, vy2, by2 = (np.array(f, dtype=float) for f in f2)
    ni = d2.size
    dx2 = 2 * dx

    def derived(d, vx, vy, by):
        cz = np.zeros(ni)
        for i in range(1, ni - 1):
            cz[i] = (by[i + 1] - by[i - 1]) / dx2
        return p0 * d**gamma, -(vx * by - vy * bx0), d * vx, cz

    p, ez, dfx, cz = derived(d2, vx2, vy2, by2)
    for i in range(1, ni - 1):
        by1[i] = 0.5 * (by1[i] + by2[i]) + dt * (ez[i + 1] - ez[i - 1]) / dx2
        vx1[i] = 0.5 * (vx1[i] + vx2[i]) + dt * (
            -vx2[i] * (vx2[i + 1] - vx2[i - 1]) / dx2
            + (-(p[i + 1] - p[i - 1]) / dx2 - cz[i] * by2[i]) / d2[i])
        vy1[i] = 0.5 * (vy1[i] + vy2[i]) + dt * (
            -vx2[i] * (vy2[i + 1] - vy2[i - 1]) / dx2 + cz[i] * bx0 / d2[i])
        d1[i] = 0.5 * (d1[i] + d2[i]) - dt * (dfx[i + 1] - dfx[i - 1]) / dx2

    (d1, d2), (vx1, vx2), (vy1, vy2), (by1, by2) = (
        (d2, d1), (vx2, vx1), (vy2, vy1), (by2, by1))
    if first_step:
        d2, vx2, vy2, by2 = (0.5 * (a + b) for a, b in
                             zip((d1, vx1, vy1, by1), (d2, vx2, vy2, by2)))
    _wall(d2, vx2, vy2, by2)

    p, ez, dfx, cz = derived(d2, vx2, vy2, by2)
    for i in range(1, ni - 1):
        vy2[i] = vy1[i] + dt * (
            -vx2[i] * (vy2[i + 1] - vy2[i - 1]) / dx2 + cz[i] * bx0 / d2[i])
        vx2[i] = vx1[i] + dt * (
            -vx2[i] * (vx2[i + 1] - vx2[i - 1]) / dx2
            + (-(p[i + 1] - p[i - 1]) / dx2 - cz[i] * by2[i]) / d2[i])
        d2[i] = d1[i] - dt * (dfx[i + 1] - dfx[i - 1]) / dx2
        by2[i] = by1[i] + dt * (ez[i + 1] - ez[i - 1]) / dx2
    _wall(d2, vx2, vy2, by2)

    return (d1, vx1, vy1, by1), (d2, vx2, vy2, by2)


class TestMHDSystem:
    """Test MHD system definition and initialization."""

    def test_default_parameters(self):
        """Test default parameter values."""
        system = MHDSystem()
        assert system.nid == 64
        assert system.ni == 66
        assert system.gamma == pytest.approx(5.0 / 3.0)
        assert system.params.beta == pytest.approx(1.0)
        assert system.p0 == pytest.approx(0.5)
        assert system.bx0 == pytest.approx(1.0)

    def test_custom_parameters(self):
        """Test custom parameter values."""
        system = MHDSystem(nid=32, length=2.0, gamma=1.4, beta=0.2, bx0=-1.0)
        assert system.ni == 34
        assert system.dx == pytest.approx(2.0 / 32)
        assert system.gamma == pytest.approx(1.4)
        assert system.p0 == pytest.approx(0.1)
        assert system.bx0 == pytest.approx(-1.0)

    def test_grid_setup(self):
        """Cell centres sit at (i - 0.5) dx with the walls at 0 and length."""
        system = MHDSystem(nid=64, length=1.0)
        dx = 1.0 / 64

        assert system.x.shape == (66,)
        assert system.x[0] == pytest.approx(-0.5 * dx)
        assert system.x[1] == pytest.approx(0.5 * dx)
        assert system.x[-2] == pytest.approx(1.0 - 0.5 * dx)
        assert system.x[-1] == pytest.approx(1.0 + 0.5 * dx)
        np.testing.assert_allclose(np.diff(system.x), dx)

    def test_grid_read_only(self):
        """The grid cannot be modified in place."""
        system = MHDSystem()
        with pytest.raises(ValueError):
            system.x[0] = 1.0

    def test_invalid_parameters(self):
        """Invalid parameters raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            MHDParams(nid=0)
        with pytest.raises(ConfigurationError):
            MHDParams(length=0.0)
        with pytest.raises(ConfigurationError):
            MHDParams(gamma=1.0)
        with pytest.raises(ConfigurationError):
            MHDParams(beta=-1.0)
        with pytest.raises(ConfigurationError):
            MHDParams(bx0=float('inf'))

    def test_configuration_error_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)

    def test_params_to_dict(self):
        params = MHDParams(nid=16)
        d = params.to_dict()
        assert d['nid'] == 16
        assert d['ni'] == 18
        assert d['dx'] == pytest.approx(1.0 / 16)
        assert d['p0'] == pytest.approx(0.5)

    def test_not_initialized(self):
        system = MHDSystem()
        assert system._initialized is False
        assert system.is_first_step

    def test_init_pulse_right(self, pulse_system):
        """Right-traveling pulse: Gaussian vy and By = -vy."""
        system = pulse_system
        x = system.x
        expected = 0.01 * np.exp(-(x - 0.5)**2 / 0.15**2)

        fields = system.corrector.to_numpy()
        np.testing.assert_allclose(fields['vy'], expected)
        np.testing.assert_allclose(fields['by'], -expected)
        np.testing.assert_array_equal(fields['density'], 1.0)
        np.testing.assert_array_equal(fields['vx'], 0.0)

        assert system._initialized
        assert system._init_type == 'pulse'
        assert system.t == 0.0
        assert system.step_count == 0

    def test_init_pulse_left(self, left_pulse_system):
        fields = left_pulse_system.corrector.to_numpy()
        np.testing.assert_allclose(fields['by'], fields['vy'])

    def test_init_pulse_standing(self):
        system = MHDSystem()
        system.init_pulse(traveling_wave=0)
        np.testing.assert_array_equal(np.asarray(system.corrector.by), 0.0)
        assert np.max(np.asarray(system.corrector.vy)) > 0

    def test_init_pulse_x_direction(self):
        """A compressional pulse perturbs vx only."""
        system = MHDSystem()
        system.init_pulse(direction='x', traveling_wave=1)
        fields = system.corrector.to_numpy()
        assert np.max(fields['vx']) == pytest.approx(0.01, rel=1e-2)
        np.testing.assert_array_equal(fields['vy'], 0.0)
        np.testing.assert_array_equal(fields['by'], 0.0)

    def test_init_pulse_both_uses_sine(self):
        system = MHDSystem()
        system.init_pulse(direction='both', traveling_wave=0)
        fields = system.corrector.to_numpy()
        expected = 0.01 * np.sin(2 * np.pi * system.x)
        np.testing.assert_allclose(fields['vx'], expected)
        np.testing.assert_allclose(fields['vy'], expected)
        assert system._init_kwargs['profile'] == 'sine'

    def test_buffers_identical_after_init(self, pulse_system):
        for f1, f2 in zip(pulse_system.predictor, pulse_system.corrector):
            np.testing.assert_array_equal(np.asarray(f1), np.asarray(f2))

    def test_init_pulse_invalid(self):
        system = MHDSystem()
        with pytest.raises(ConfigurationError):
            system.init_pulse(profile='square')
        with pytest.raises(ConfigurationError):
            system.init_pulse(direction='z')
        with pytest.raises(ConfigurationError):
            system.init_pulse(width=0.0)

    def test_normalize_direction(self):
        assert normalize_direction(1) == 'x'
        assert normalize_direction(2) == 'y'
        assert normalize_direction(3) == 'both'
        assert normalize_direction('XY') == 'both'
        assert normalize_direction(' y ') == 'y'
        with pytest.raises(ConfigurationError):
            normalize_direction('z')

    def test_init_equilibrium(self, equilibrium_system):
        fields = equilibrium_system.corrector.to_numpy()
        np.testing.assert_array_equal(fields['density'], 1.0)
        for name in ('vx', 'vy', 'by'):
            np.testing.assert_array_equal(fields[name], 0.0)
        assert equilibrium_system._init_type == 'equilibrium'

    def test_set_fields_shape_check(self):
        system = MHDSystem(nid=8)
        with pytest.raises(ConfigurationError):
            system.set_fields(np.ones(8), np.zeros(10), np.zeros(10), np.zeros(10))

    def test_pressure(self, pulse_system):
        np.testing.assert_allclose(pulse_system.pressure(), 0.5)

    def test_get_state(self, pulse_system):
        state = pulse_system.get_state()
        for key in ('density', 'vx', 'vy', 'by', 'pressure', 'x'):
            assert key in state
            assert state[key].shape == (66,)

    def test_repr(self, pulse_system):
        text = repr(pulse_system)
        assert 'MHDSystem' in text
        assert 'nid=64' in text

    def test_describe(self, pulse_system):
        desc = pulse_system.describe()
        assert '1D Ideal MHD' in desc
        assert 'pulse' in desc


class TestDerivedQuantities:
    """Test pressure, electric field, current and mass flux."""

    def test_derived_values(self, pulse_system):
        system = pulse_system
        fields = system.corrector
        derived = compute_derived(fields, system.bx0, system.p0, system.gamma, system.dx)

        vy = np.asarray(fields.vy)
        by = np.asarray(fields.by)

        np.testing.assert_allclose(np.asarray(derived.pressure), 0.5)
        # vx = 0, so Ez = vy Bx0
        np.testing.assert_allclose(np.asarray(derived.ez), vy)
        np.testing.assert_array_equal(np.asarray(derived.mass_flux_x), 0.0)

        cz = np.asarray(derived.cz)
        expected = (by[2:] - by[:-2]) / (2 * system.dx)
        np.testing.assert_allclose(cz[1:-1], expected)
        assert cz[0] == 0.0
        assert cz[-1] == 0.0

    def test_pressure_adiabatic(self):
        system = MHDSystem(nid=8, beta=2.0, gamma=1.4)
        density = np.full(10, 2.0)
        zeros = np.zeros(10)
        system.set_fields(density, zeros, zeros, zeros)
        derived = compute_derived(system.corrector, system.bx0, system.p0,
                                  system.gamma, system.dx)
        np.testing.assert_allclose(np.asarray(derived.pressure), 1.0 * 2.0**1.4)


class TestBoundaries:
    """Test ghost-cell boundary policies."""

    def _fields(self, ni=10):
        rng = np.random.default_rng(0)
        return FieldSet(*(jnp.asarray(rng.normal(size=ni)) for _ in range(4)))

    def test_reflecting(self):
        out = reflecting_boundary(self._fields())
        d, vx, vy, by = (np.asarray(f) for f in out)

        assert d[0] == d[1] and d[-1] == d[-2]
        assert by[0] == by[1] and by[-1] == by[-2]
        assert vx[0] == -vx[1] and vx[-1] == -vx[-2]
        assert vy[0] == -vy[1] and vy[-1] == -vy[-2]

    def test_reflecting_keeps_physical_cells(self):
        fields = self._fields()
        out = reflecting_boundary(fields)
        for before, after in zip(fields, out):
            np.testing.assert_array_equal(np.asarray(after)[1:-1], np.asarray(before)[1:-1])

    def test_periodic(self):
        out = periodic_boundary(self._fields())
        for f in out:
            f = np.asarray(f)
            assert f[0] == f[-2]
            assert f[-1] == f[1]

    def test_get_boundary(self):
        assert get_boundary('reflecting') is reflecting_boundary
        assert get_boundary('PERIODIC') is periodic_boundary
        assert get_boundary(reflecting_boundary) is reflecting_boundary
        assert set(BOUNDARY_POLICIES) == {'reflecting', 'periodic'}

    def test_unknown_boundary(self):
        with pytest.raises(ConfigurationError, match="boundary"):
            get_boundary('outflow')


class TestLeapfrogStep:
    """Test single time steps."""

    def test_integrator_initialization(self):
        integrator = LeapfrogIntegrator(dt=0.02, boundary='periodic')
        assert integrator.dt == pytest.approx(0.02)
        assert integrator.boundary_name == 'periodic'
        assert 'LeapfrogIntegrator' in repr(integrator)

    def test_invalid_integrator(self):
        with pytest.raises(ConfigurationError):
            LeapfrogIntegrator(dt=-0.01)
        with pytest.raises(ConfigurationError):
            LeapfrogIntegrator(boundary='open')

    def test_uninitialized_system_error(self, integrator):
        system = MHDSystem()
        with pytest.raises(ValueError, match="not initialized"):
            integrator.step(system)
        with pytest.raises(ValueError, match="not initialized"):
            integrator.run(system, tsim=0.1, verbose=False)

    def test_step_advances_clock(self, pulse_system, integrator):
        integrator.step(pulse_system)
        assert pulse_system.step_count == 1
        assert pulse_system.t == pytest.approx(0.01)
        assert not pulse_system.is_first_step

    def test_predictor_holds_previous_level(self, pulse_system, integrator):
        """After a step the predictor buffer is the previous corrector."""
        before = pulse_system.corrector.to_numpy()
        integrator.step(pulse_system)
        after = pulse_system.predictor.to_numpy()
        for name in FieldSet._fields:
            np.testing.assert_array_equal(after[name], before[name])

    def test_zero_dt_first_step_is_identity(self, pulse_system):
        """With dt = 0 the first step leaves the physical cells unchanged."""
        before = pulse_system.corrector.to_numpy()
        LeapfrogIntegrator(dt=0.0).step(pulse_system)
        after = pulse_system.corrector.to_numpy()
        for name in FieldSet._fields:
            np.testing.assert_allclose(physical(after[name]), physical(before[name]),
                                       rtol=0, atol=1e-15)

    def test_equilibrium_is_fixed_point(self, equilibrium_system, integrator):
        for _ in range(20):
            integrator.step(equilibrium_system)
        fields = equilibrium_system.corrector.to_numpy()
        np.testing.assert_array_equal(fields['density'], 1.0)
        for name in ('vx', 'vy', 'by'):
            np.testing.assert_array_equal(fields[name], 0.0)

    def test_reflecting_ghost_cells_after_step(self, pulse_system, integrator):
        for _ in range(5):
            integrator.step(pulse_system)
        f = pulse_system.corrector.to_numpy()
        assert f['density'][0] == f['density'][1]
        assert f['by'][-1] == f['by'][-2]
        assert f['vx'][0] == -f['vx'][1]
        assert f['vy'][-1] == -f['vy'][-2]

    def test_periodic_ghost_cells_after_step(self):
        system = MHDSystem()
        system.init_pulse(direction='both', traveling_wave=1)
        integrator = LeapfrogIntegrator(dt=0.01, boundary='periodic')
        for _ in range(5):
            integrator.step(system)
        for f in system.corrector:
            f = np.asarray(f)
            assert f[0] == f[-2]
            assert f[-1] == f[1]

    def test_non_positive_density_raises(self, integrator):
        system = MHDSystem(nid=16)
        density = np.ones(18)
        density[5] = 0.0
        zeros = np.zeros(18)
        system.set_fields(density, zeros, zeros, zeros)

        with pytest.raises(NumericalInstabilityError) as excinfo:
            integrator.step(system)

        assert excinfo.value.step == 1
        assert system.step_count == 0

    def test_failed_step_is_not_committed(self, integrator):
        system = MHDSystem(nid=16)
        density = np.ones(18)
        density[3] = -1.0
        zeros = np.zeros(18)
        system.set_fields(density, zeros, zeros, zeros)
        before = system.corrector.to_numpy()

        with pytest.raises(NumericalInstabilityError):
            integrator.step(system)

        after = system.corrector.to_numpy()
        for name in FieldSet._fields:
            np.testing.assert_array_equal(after[name], before[name])
        assert system.t == 0.0

    def test_failed_step_keeps_valid_state(self, pulse_system):
        """Every committed corrector has positive, finite density."""
        integrator = LeapfrogIntegrator(dt=0.05)
        with pytest.raises(NumericalInstabilityError):
            for _ in range(500):
                integrator.step(pulse_system)

        density = physical(pulse_system.corrector.density)
        assert np.all(np.isfinite(density))
        assert np.all(density > 0)

    def test_first_step_uses_half_level(self, pulse_system, integrator):
        """Step 1 averages the forward-Euler predictor with the initial state."""
        system = pulse_system
        f0 = system.corrector
        args = (system.bx0, system.p0, system.gamma, system.dx)

        euler = predictor_stage(f0, f0, compute_derived(f0, *args),
                                integrator.dt, system.dx, system.bx0)
        half = reflecting_boundary(average_fields(f0, euler))
        expected = reflecting_boundary(corrector_stage(
            f0, half, compute_derived(half, *args), integrator.dt, system.dx, system.bx0
        ))

        integrator.step(system)

        for name in FieldSet._fields:
            np.testing.assert_allclose(np.asarray(getattr(system.corrector, name)),
                                       np.asarray(getattr(expected, name)),
                                       rtol=1e-12, atol=1e-14)

    def test_first_step_differs_from_later_step(self, pulse_system, integrator):
        system = pulse_system
        common = dict(dt=integrator.dt, dx=system.dx, bx0=system.bx0, p0=system.p0,
                      gamma=system.gamma, boundary=reflecting_boundary)

        _, first, _ = leapfrog_step(system.predictor, system.corrector,
                                    first_step=True, **common)
        _, later, _ = leapfrog_step(system.predictor, system.corrector,
                                    first_step=False, **common)

        assert np.max(np.abs(np.asarray(first.vy) - np.asarray(later.vy))) > 1e-8

    def test_only_first_step_is_averaged(self, pulse_system, integrator):
        system = pulse_system
        integrator.step(system)
        predictor, corrector = system.predictor, system.corrector

        _, expected, _ = leapfrog_step(predictor, corrector, integrator.dt, system.dx,
                                       system.bx0, system.p0, system.gamma,
                                       boundary=reflecting_boundary, first_step=False)
        integrator.step(system)

        for name in FieldSet._fields:
            np.testing.assert_allclose(np.asarray(getattr(system.corrector, name)),
                                       np.asarray(getattr(expected, name)),
                                       rtol=1e-13, atol=1e-15)

    def test_corrector_sweeps_cells_in_place(self):
        """The corrector reads the already-updated left neighbour of vy and vx."""
        system = MHDSystem(nid=32)
        system.init_pulse(vpert=0.2, direction='both', traveling_wave=1)
        integrator = LeapfrogIntegrator(dt=0.01)
        integrator.step(system)
        f1, f2 = system.predictor, system.corrector

        derived = compute_derived(f2, system.bx0, system.p0, system.gamma, system.dx)
        result = corrector_stage(f1, f2, derived, integrator.dt, system.dx, system.bx0)

        d, vx, vy, by = (np.array(f, dtype=float) for f in f2)
        p, ez, cz, dfx = (np.asarray(q) for q in derived)
        d1, vx1, vy1, by1 = (np.asarray(q) for q in f1)
        dx2 = 2 * system.dx
        dt = integrator.dt
        for i in range(1, d.size - 1):
            vy[i] = vy1[i] + dt * (-vx[i] * (vy[i + 1] - vy[i - 1]) / dx2
                                     + cz[i] * system.bx0 / d[i])
            vx[i] = vx1[i] + dt * (-vx[i] * (vx[i + 1] - vx[i - 1]) / dx2
                                     + (-(p[i + 1] - p[i - 1]) / dx2 - cz[i] * by[i]) / d[i])
            d[i] = d1[i] - dt * (dfx[i + 1] - dfx[i - 1]) / dx2
            by[i] = by1[i] + dt * (ez[i + 1] - ez[i - 1]) / dx2

        for got, want in zip(result, (d, vx, vy, by)):
            np.testing.assert_allclose(np.asarray(got), want, rtol=0, atol=1e-13)

    @pytest.mark.parametrize("direction,vpert", [('y', 0.01), ('x', 0.2), ('both', 0.05)])
    def test_matches_cell_loop_reference(self, direction, vpert):
        system = MHDSystem(nid=64)
        system.init_pulse(vpert=vpert, direction=direction, traveling_wave=1)
        integrator = LeapfrogIntegrator(dt=0.01)
        f1 = tuple(np.asarray(f) for f in system.predictor)
        f2 = tuple(np.asarray(f) for f in system.corrector)

        for it in range(30):
            f1, f2 = reference_step(f1, f2, integrator.dt, system.dx, system.bx0,
                                    system.p0, system.gamma, first_step=(it == 0))
            integrator.step(system)

        for got, want in zip(system.corrector, f2):
            np.testing.assert_allclose(np.asarray(got), want, rtol=0, atol=1e-11)


class TestAlfvenPulse:
    """Physical behaviour of the transverse pulse."""

    def test_right_mover_relation_short_time(self, pulse_system, integrator):
        """Before reaching a wall a right mover keeps By = -vy."""
        for _ in range(10):
            integrator.step(pulse_system)
        f = pulse_system.corrector.to_numpy()
        np.testing.assert_allclose(physical(f['by']), -physical(f['vy']), atol=1e-4)

    def test_right_mover_moves_right(self, pulse_system, integrator):
        for _ in range(10):
            integrator.step(pulse_system)
        vy = physical(pulse_system.corrector.vy)
        x = physical(pulse_system.x)
        assert x[np.argmax(vy)] == pytest.approx(0.6, abs=0.05)

    def test_left_mover_relation_short_time(self, left_pulse_system, integrator):
        for _ in range(10):
            integrator.step(left_pulse_system)
        f = left_pulse_system.corrector.to_numpy()
        np.testing.assert_allclose(physical(f['by']), physical(f['vy']), atol=1e-4)
        x = physical(left_pulse_system.x)
        assert x[np.argmax(physical(f['vy']))] == pytest.approx(0.4, abs=0.05)

    def test_reflected_pulse_after_one_crossing(self, pulse_system, integrator):
        """
        After t = 1 the pulse has bounced off the right wall: vy is
        inverted and the pulse now travels left with By = +vy.
        """
        integrator.run(pulse_system, tsim=1.0, tfldout=0.0, verbose=False)
        f = pulse_system.corrector.to_numpy()
        vy, by = physical(f['vy']), physical(f['by'])

        assert np.min(vy) < -0.5 * 0.01
        assert np.max(np.abs(by - vy)) < 0.1 * 0.01

    def test_density_stays_positive(self, pulse_system, integrator):
        integrator.run(pulse_system, tsim=1.0, tfldout=0.0, verbose=False)
        rho = physical(pulse_system.corrector.density)
        assert np.all(rho > 0)
        assert np.max(np.abs(rho - 1.0)) < 1e-2

    def test_energy_nearly_conserved(self, pulse_system, integrator):
        result = integrator.run(pulse_system, tsim=1.0, tfldout=0.0, verbose=False)
        assert result['energy'].relative_drift() < 0.05

    def test_courant_number_below_one(self, pulse_system):
        metrics = compute_stability_metrics(pulse_system.corrector, pulse_system.params, 0.01)
        assert 0.8 < metrics['courant_number'] < 0.9
        assert metrics['is_stable']


class TestRun:
    """Test the driver loop."""

    def test_run_result_structure(self, pulse_system, integrator):
        result = integrator.run(pulse_system, tsim=0.2, tfldout=0.05, verbose=False)

        required_keys = [
            'system', 'params', 'x', 'dt', 'boundary', 'snapshots',
            'n_snapshots', 'energy', 'history_t', 'history_vy',
            'total_steps', 'planned_steps', 't_end', 'courant_number',
            'conservation_initial', 'final_state', 'stopped_early',
            'interrupted',
        ]
        for key in required_keys:
            assert key in result, f"Missing key: {key}"

        assert result['total_steps'] == 20
        assert result['planned_steps'] == 20
        assert result['t_end'] == pytest.approx(0.2)
        assert result['boundary'] == 'reflecting'
        assert not result['stopped_early']
        assert not result['interrupted']

    def test_energy_recorded_every_step(self, pulse_system, integrator):
        initial = compute_energy_diagnostics(pulse_system.corrector, pulse_system.params)
        result = integrator.run(pulse_system, tsim=0.3, tfldout=0.0, verbose=False)

        energy = result['energy']
        assert isinstance(energy, EnergyLog)
        assert len(energy) == 30
        assert energy.t[0] == 0.0
        assert energy.t[-1] == pytest.approx(0.29)
        assert energy[0].total == pytest.approx(initial['total'])

    def test_history(self, pulse_system, integrator):
        result = integrator.run(pulse_system, tsim=0.3, tfldout=0.0, verbose=False)
        assert result['history_vy'].shape == (30, 66)
        assert result['history_t'][0] == 0.0
        assert result['history_t'][-1] == pytest.approx(0.29)
        np.testing.assert_array_equal(result['history_t'], result['energy'].t)
        np.testing.assert_array_equal(result['history_vy'][-1],
                                      np.asarray(pulse_system.corrector.vy))

    def test_snapshot_cadence(self, pulse_system, integrator):
        result = integrator.run(pulse_system, tsim=1.0, tfldout=0.1, verbose=False)
        snapshots = result['snapshots']

        assert result['n_snapshots'] == 10
        assert [s.step for s in snapshots] == list(range(1, 101, 10))
        np.testing.assert_allclose([s.t for s in snapshots], np.arange(10) * 0.1, atol=1e-12)

        snap = snapshots[1]
        assert isinstance(snap, Snapshot)
        assert len(snap.energy['t']) == 10
        assert snap.history_vy.shape == (10, 66)

    def test_first_snapshot_is_initial_state(self, pulse_system, integrator):
        vy0 = np.asarray(pulse_system.corrector.vy)
        result = integrator.run(pulse_system, tsim=0.1, tfldout=0.05, verbose=False)
        np.testing.assert_array_equal(result['snapshots'][0].vy, vy0)
        assert len(result['snapshots'][0].energy['t']) == 0

    def test_snapshot_read_only(self, pulse_system, integrator):
        result = integrator.run(pulse_system, tsim=0.1, tfldout=0.05, verbose=False)
        snap = result['snapshots'][-1]

        with pytest.raises(dataclasses.FrozenInstanceError):
            snap.t = 5.0
        with pytest.raises(ValueError):
            snap.energy['total'][0] = 1.0
        with pytest.raises(ValueError):
            snap.history_vy[0, 0] = 1.0

    def test_callback_receives_snapshots(self, pulse_system, integrator):
        seen = []
        integrator.run(pulse_system, tsim=0.5, tfldout=0.1,
                       callback=seen.append, verbose=False)
        assert len(seen) == 5
        assert all(isinstance(s, Snapshot) for s in seen)

    def test_callback_can_stop_run(self, pulse_system, integrator):
        def stop_at_second(snapshot):
            return snapshot.step == 1

        result = integrator.run(pulse_system, tsim=1.0, tfldout=0.1,
                                callback=stop_at_second, verbose=False)

        assert result['stopped_early']
        assert result['total_steps'] == 10
        assert len(result['energy']) == 10
        assert result['history_vy'].shape == (10, 66)
        assert pulse_system.step_count == 10

    def test_explicit_step_count(self, pulse_system, integrator):
        result = integrator.run(pulse_system, n_steps=7, tfldout=0.0, verbose=False)
        assert result['total_steps'] == 7
        assert result['n_snapshots'] == 0

    def test_zero_time_run(self, pulse_system, integrator):
        result = integrator.run(pulse_system, tsim=0.0, verbose=False)
        assert result['total_steps'] == 0
        assert len(result['energy']) == 0
        assert result['history_vy'].shape == (0, 66)

    def test_run_requires_positive_dt(self, pulse_system):
        with pytest.raises(ConfigurationError):
            LeapfrogIntegrator(dt=0.0).run(pulse_system, tsim=1.0, verbose=False)

    def test_run_rejects_negative_times(self, pulse_system, integrator):
        with pytest.raises(ConfigurationError):
            integrator.run(pulse_system, tsim=-1.0, verbose=False)
        with pytest.raises(ConfigurationError):
            integrator.run(pulse_system, tsim=1.0, tfldout=-0.1, verbose=False)

    def test_unstable_time_step(self, pulse_system, caplog):
        """A time step far above the Courant limit blows up."""
        integrator = LeapfrogIntegrator(dt=0.05)

        with caplog.at_level(logging.WARNING):
            with pytest.raises(NumericalInstabilityError) as excinfo:
                integrator.run(pulse_system, n_steps=500, tfldout=0.0, verbose=False)

        err = excinfo.value
        assert err.step >= 1
        assert isinstance(err.energy_log, EnergyLog)
        assert len(err.energy_log) == err.step
        assert "Courant" in caplog.text
        assert np.all(np.isfinite(err.energy_log.total))
        assert np.all(physical(pulse_system.corrector.density) > 0)

    def test_bad_initial_density_leaves_no_record(self, integrator):
        system = MHDSystem(nid=16)
        density = np.ones(18)
        density[3] = -1.0
        zeros = np.zeros(18)
        system.set_fields(density, zeros, zeros, zeros)

        with pytest.raises(NumericalInstabilityError) as excinfo:
            integrator.run(system, n_steps=5, tfldout=0.0, verbose=False)

        assert excinfo.value.step == 1
        assert len(excinfo.value.energy_log) == 0


class TestConfigManager:
    """Test configuration file handling."""

    def test_load_config(self):
        """Test loading configuration from file."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.txt', delete=False) as f:
            f.write("# Test config\n")
            f.write("nid = 128\n")
            f.write("gamma = 1.4\n")
            f.write("tsim = 2.0  # inline comment\n")
            f.write("save_gif = false\n")
            f.write("profile = none\n")
            f.write("boundary = periodic\n")
            f.write("scenario_name = Test Scenario\n")
            config_path = f.name

        config = ConfigManager.load(config_path)

        assert config['nid'] == 128
        assert config['gamma'] == pytest.approx(1.4)
        assert config['tsim'] == pytest.approx(2.0)
        assert config['save_gif'] is False
        assert config['profile'] is None
        assert config['boundary'] == 'periodic'
        assert config['scenario_name'] == 'Test Scenario'

        Path(config_path).unlink()

    def test_load_missing_file(self):
        with pytest.raises(FileNotFoundError):
            ConfigManager.load('/nonexistent/config.txt')

    def test_default_config(self):
        config = ConfigManager.get_default_config()

        assert config['nid'] == 64
        assert config['length'] == pytest.approx(1.0)
        assert config['vpert'] == pytest.approx(0.01)
        assert config['direction'] == 'y'
        assert config['width'] == pytest.approx(0.15)
        assert config['center'] == pytest.approx(0.5)
        assert config['gamma'] == pytest.approx(5.0 / 3.0)
        assert config['dt'] == pytest.approx(0.01)
        assert config['tsim'] == pytest.approx(1.0)
        assert config['traveling_wave'] == 1
        assert config['boundary'] == 'reflecting'

    def test_save_config_round_trip(self):
        config = ConfigManager.get_default_config()

        with tempfile.NamedTemporaryFile(mode='w', suffix='.txt', delete=False) as f:
            config_path = f.name

        ConfigManager.save(config, config_path)
        loaded = ConfigManager.load(config_path)

        assert loaded['nid'] == 64
        assert loaded['gamma'] == pytest.approx(5.0 / 3.0)
        assert loaded['profile'] is None
        assert loaded['save_png'] is True
        assert loaded['scenario_name'] == config['scenario_name']

        Path(config_path).unlink()

    def test_validate_config(self):
        assert ConfigManager.validate_config(ConfigManager.get_default_config()) is True

    def test_validate_config_missing_key(self):
        config = ConfigManager.get_default_config()
        del config['dt']
        with pytest.raises(ConfigurationError, match="dt"):
            ConfigManager.validate_config(config)

    @pytest.mark.parametrize("key,value", [
        ('dt', 0.0),
        ('tsim', -1.0),
        ('gamma', 1.0),
        ('nid', 0),
        ('width', 0.0),
        ('boundary', 'outflow'),
        ('direction', 'z'),
        ('profile', 'square'),
    ])
    def test_validate_config_invalid(self, key, value):
        config = ConfigManager.get_default_config()
        config[key] = value
        with pytest.raises(ConfigurationError):
            ConfigManager.validate_config(config)

    def test_build(self):
        system, integrator = ConfigManager.build({'nid': 32, 'traveling_wave': -1,
                                                  'boundary': 'periodic'})
        assert system.nid == 32
        assert system._initialized
        assert integrator.boundary_name == 'periodic'
        np.testing.assert_allclose(np.asarray(system.corrector.by),
                                   np.asarray(system.corrector.vy))


class TestDataHandler:
    """Test data saving functionality."""

    def test_save_energy_csv(self, pulse_system, integrator):
        result = integrator.run(pulse_system, tsim=0.1, tfldout=0.0, verbose=False)

        with tempfile.NamedTemporaryFile(suffix='.csv', delete=False) as f:
            filepath = f.name

        DataHandler.save_energy_csv(filepath, result)
        df = DataHandler.load_energy_csv(filepath)

        assert list(df.columns) == ['time', 'kinetic', 'magnetic', 'pressure', 'total']
        assert len(df) == 10
        np.testing.assert_allclose(df['total'].values, result['energy'].total, rtol=1e-7)

        Path(filepath).unlink()

    def test_save_final_metrics_csv(self):
        metrics = {
            'cons_total_mass': 1.0,
            'stab_courant_number': 0.87,
            'stab_is_stable': True,
        }

        with tempfile.NamedTemporaryFile(suffix='.csv', delete=False) as f:
            filepath = f.name

        DataHandler.save_final_metrics_csv(filepath, metrics)

        import pandas as pd
        df = pd.read_csv(filepath)
        assert list(df['Metric']) == sorted(metrics)

        Path(filepath).unlink()

    def test_save_and_load_netcdf(self, pulse_system, integrator, tmp_path):
        result = integrator.run(pulse_system, tsim=0.2, tfldout=0.05, verbose=False)
        config = ConfigManager.get_default_config()
        filepath = tmp_path / "run.nc"

        DataHandler.save_netcdf(filepath, result, config,
                                final_metrics={'energy_drift': 1e-3, 'stab_is_stable': True})

        data = DataHandler.load_netcdf(filepath)

        assert data['x'].shape == (66,)
        assert data['density'].shape == (4, 66)
        assert data['vy'].shape == (4, 66)
        np.testing.assert_allclose(data['times'], [0.0, 0.05, 0.1, 0.15], atol=1e-12)
        assert data['energy']['total'].shape == (20,)
        assert data['history_vy'].shape == (20, 66)
        np.testing.assert_allclose(data['history_vy'], result['history_vy'])
        assert data['gamma'] == pytest.approx(5.0 / 3.0)
        assert data['boundary'] == 'reflecting'
        assert data['total_steps'] == 20
        assert data['final_energy_drift'] == pytest.approx(1e-3)
        assert data['final_stab_is_stable'] == 1
