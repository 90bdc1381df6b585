"""Data handler for saving 1D MHD simulation results to CSV and NetCDF."""

import numpy as np
import pandas as pd
from netCDF4 import Dataset
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional

from .. import __version__


class DataHandler:
    """Handle saving 1D MHD simulation data to various formats."""

    @staticmethod
    def save_energy_csv(filepath: str, result: Dict[str, Any]):
        """
        Save the energy time series of a run to CSV.

        Columns: time, kinetic, magnetic, pressure, total.

        Args:
            filepath: Output file path
            result: Simulation result dictionary (needs 'energy')
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        energy = result['energy'].to_dict()
        df = pd.DataFrame({
            'time': energy['t'],
            'kinetic': energy['kinetic'],
            'magnetic': energy['magnetic'],
            'pressure': energy['pressure'],
            'total': energy['total'],
        })
        df.to_csv(filepath, index=False, float_format='%.8e')

    @staticmethod
    def load_energy_csv(filepath: str) -> pd.DataFrame:
        """Load an energy time series written by save_energy_csv."""
        return pd.read_csv(filepath)

    @staticmethod
    def save_final_metrics_csv(filepath: str, metrics: Dict[str, Any]):
        """
        Save final state metrics to CSV.

        Args:
            filepath: Output file path
            metrics: Metrics dictionary
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        rows = []
        for key, value in sorted(metrics.items()):
            if isinstance(value, (int, float, bool, str)):
                rows.append({
                    'Metric': key,
                    'Value': value,
                    'Type': type(value).__name__
                })

        df = pd.DataFrame(rows)
        df.to_csv(filepath, index=False)

    @staticmethod
    def save_netcdf(
        filepath: str,
        result: Dict[str, Any],
        config: Dict[str, Any],
        final_metrics: Optional[Dict[str, Any]] = None
    ):
        """
        Save a complete run to CF-style NetCDF.

        Creates a NetCDF file with:
            - Field profiles (ghost cells included) at every snapshot
            - The energy time series, one record per completed step
            - The time-position history of vy
            - Final metrics and run parameters as global attributes

        Args:
            filepath: Output file path
            result: Simulation result dictionary from LeapfrogIntegrator.run
            config: Configuration dictionary
            final_metrics: Metrics for the final state
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        params = result['params']
        snapshots = result['snapshots']
        x = np.asarray(result['x'])
        energy = result['energy'].to_dict()
        history_t = np.asarray(result['history_t'])
        history_vy = np.asarray(result['history_vy'])

        n_snap = len(snapshots)
        ni = x.size

        with Dataset(str(filepath), 'w', format='NETCDF4') as nc:
            # ============ Dimensions ============
            nc.createDimension('x', ni)
            nc.createDimension('time', n_snap)
            nc.createDimension('step', energy['t'].size)
            nc.createDimension('history', history_t.size)

            # ============ Coordinates ============
            nc_x = nc.createVariable('x', 'f8', ('x',), zlib=True)
            nc_x[:] = x
            nc_x.long_name = "cell_centre_position"
            nc_x.description = "x[i] = (i - 0.5) dx; x[0] and x[-1] are ghost cells"
            nc_x.axis = "X"

            nc_time = nc.createVariable('time', 'f8', ('time',), zlib=True)
            if n_snap:
                nc_time[:] = np.array([s.t for s in snapshots], dtype=np.float64)
            nc_time.long_name = "snapshot_time"
            nc_time.axis = "T"

            nc_it = nc.createVariable('snapshot_step', 'i4', ('time',))
            if n_snap:
                nc_it[:] = np.array([s.step for s in snapshots], dtype=np.int32)
            nc_it.long_name = "step_index_of_snapshot"

            # ============ Field Snapshots ============
            long_names = {
                'density': "mass_density",
                'vx': "x_velocity",
                'vy': "y_velocity",
                'by': "y_magnetic_field",
            }
            for name, long_name in long_names.items():
                data = np.zeros((n_snap, ni), dtype=np.float64)
                for i, snap in enumerate(snapshots):
                    data[i] = getattr(snap, name)
                var = nc.createVariable(name, 'f8', ('time', 'x'), zlib=True)
                if n_snap:
                    var[:] = data
                var.long_name = long_name

            # ============ Energy Series ============
            nc_et = nc.createVariable('energy_time', 'f8', ('step',), zlib=True)
            if energy['t'].size:
                nc_et[:] = energy['t']
            nc_et.long_name = "time_of_energy_record"

            for name in ('kinetic', 'magnetic', 'pressure', 'total'):
                var = nc.createVariable(f'energy_{name}', 'f8', ('step',), zlib=True)
                if energy[name].size:
                    var[:] = energy[name]
                var.long_name = f"{name}_energy_density"

            # ============ Time-Position History ============
            nc_ht = nc.createVariable('history_time', 'f8', ('history',), zlib=True)
            if history_t.size:
                nc_ht[:] = history_t
            nc_ht.long_name = "time_after_step"

            nc_hv = nc.createVariable('history_vy', 'f8', ('history', 'x'), zlib=True)
            if history_t.size:
                nc_hv[:] = history_vy
            nc_hv.long_name = "y_velocity_after_each_step"

            # ============ Final Metrics ============
            if final_metrics is not None:
                for key, value in final_metrics.items():
                    if isinstance(value, bool):
                        nc.setncattr(f'final_{key}', int(value))
                    elif isinstance(value, (int, float)):
                        nc.setncattr(f'final_{key}', float(value))

            # ============ Global Attributes ============
            nc.nid = int(params.nid)
            nc.ni = int(params.ni)
            nc.length = float(params.length)
            nc.dx = float(params.dx)
            nc.gamma = float(params.gamma)
            nc.beta = float(params.beta)
            nc.p0 = float(params.p0)
            nc.bx0 = float(params.bx0)

            nc.dt = float(result['dt'])
            nc.boundary = str(result['boundary'])
            nc.t_end = float(result['t_end'])
            nc.total_steps = int(result['total_steps'])
            nc.n_snapshots = int(n_snap)
            nc.courant_number = float(result['courant_number'])

            nc.scenario_name = str(config.get('scenario_name', 'MHD Simulation'))
            for key in ('vpert', 'width', 'center', 'traveling_wave', 'tsim', 'tfldout'):
                if config.get(key) is not None:
                    nc.setncattr(key, config[key])
            nc.direction = str(config.get('direction', 'y'))
            nc.profile = str(config.get('profile') or 'auto')

            nc.title = "1D Ideal MHD Simulation - leapfrog-mhd"
            nc.institution = f"leapfrog-mhd v{__version__}"
            nc.source = "JAX-accelerated leapfrog-trapezoidal finite difference solver"
            nc.history = f"Created {datetime.now().isoformat()}"
            nc.Conventions = "CF-1.8"
            nc.license = "MIT"

    @staticmethod
    def load_netcdf(filepath: str) -> Dict[str, Any]:
        """
        Load simulation data from NetCDF file.

        Args:
            filepath: Path to NetCDF file

        Returns:
            Dictionary with simulation data and global attributes
        """
        with Dataset(str(filepath), 'r') as nc:
            result = {
                'x': np.array(nc.variables['x'][:]),
                'times': np.array(nc.variables['time'][:]),
                'snapshot_step': np.array(nc.variables['snapshot_step'][:]),
                'density': np.array(nc.variables['density'][:]),
                'vx': np.array(nc.variables['vx'][:]),
                'vy': np.array(nc.variables['vy'][:]),
                'by': np.array(nc.variables['by'][:]),
                'energy': {
                    't': np.array(nc.variables['energy_time'][:]),
                    'kinetic': np.array(nc.variables['energy_kinetic'][:]),
                    'magnetic': np.array(nc.variables['energy_magnetic'][:]),
                    'pressure': np.array(nc.variables['energy_pressure'][:]),
                    'total': np.array(nc.variables['energy_total'][:]),
                },
                'history_t': np.array(nc.variables['history_time'][:]),
                'history_vy': np.array(nc.variables['history_vy'][:]),
            }

            for attr in nc.ncattrs():
                result[attr] = nc.getncattr(attr)

        return result
