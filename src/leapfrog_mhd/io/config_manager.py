"""Configuration file parser for 1D MHD simulations."""

from pathlib import Path
from typing import Dict, Any, Tuple
import numpy as np

from ..core.boundaries import BOUNDARY_POLICIES
from ..core.exceptions import ConfigurationError
from ..core.integrator import LeapfrogIntegrator
from ..core.mhd_system import MHDParams, MHDSystem, PROFILES, normalize_direction


class ConfigManager:
    """Parse and manage configuration files for 1D MHD simulations."""

    @staticmethod
    def load(config_path: str) -> Dict[str, Any]:
        """
        Load configuration from file.

        File format:
            # Comments
            key = value

        Args:
            config_path: Path to configuration file

        Returns:
            Dictionary of configuration parameters
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config not found: {config_path}")

        config = {}

        with open(path, 'r') as f:
            for line in f:
                line = line.strip()

                # Skip empty/comment lines
                if not line or line.startswith('#'):
                    continue

                if '=' not in line:
                    continue

                key, value = line.split('=', 1)
                key = key.strip()
                value = value.strip()

                # Remove inline comments
                if '#' in value:
                    value = value.split('#')[0].strip()

                config[key] = ConfigManager._parse_value(value)

        return config

    @staticmethod
    def _parse_value(value: str) -> Any:
        """Parse string to appropriate Python type."""
        if value.lower() in ['true', 'false']:
            return value.lower() == 'true'

        if value.lower() == 'none':
            return None

        try:
            if '.' in value or 'e' in value.lower():
                return float(value)
            else:
                return int(value)
        except ValueError:
            return value

    @staticmethod
    def save(config: Dict[str, Any], config_path: str):
        """
        Save configuration to file.

        Args:
            config: Configuration dictionary
            config_path: Output path
        """
        path = Path(config_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            f.write("# Leapfrog-MHD 1D Configuration\n")
            f.write("# Generated automatically\n\n")

            for key, value in sorted(config.items()):
                if isinstance(value, bool):
                    value_str = 'true' if value else 'false'
                elif value is None:
                    value_str = 'none'
                elif isinstance(value, float):
                    if value != 0 and (abs(value) < 1e-4 or abs(value) > 1e4):
                        value_str = f"{value:.6e}"
                    else:
                        value_str = repr(value)
                else:
                    value_str = str(value)

                f.write(f"{key} = {value_str}\n")

    @staticmethod
    def get_default_config() -> Dict[str, Any]:
        """Get default configuration (right-traveling Alfvén pulse)."""
        return {
            'scenario_name': 'Right-Traveling Alfven Pulse',
            # Grid
            'nid': 64,
            'length': 1.0,
            # Plasma
            'gamma': 5.0 / 3.0,
            'beta': 1.0,
            'bx0': 1.0,
            # Perturbation
            'vpert': 0.01,
            'direction': 'y',
            'profile': None,
            'width': 0.15,
            'center': 0.5,
            'traveling_wave': 1,
            # Time stepping
            'dt': 0.01,
            'tsim': 1.0,
            'tfldout': 0.01,
            'boundary': 'reflecting',
            # Output
            'output_dir': 'outputs',
            'save_csv': True,
            'save_netcdf': True,
            'save_png': True,
            'save_gif': True,
            'animation_fps': 20,
            'png_dpi': 150,
        }

    @staticmethod
    def validate_config(config: Dict[str, Any]) -> bool:
        """
        Validate configuration parameters.

        Args:
            config: Configuration dictionary

        Returns:
            True if valid

        Raises:
            ConfigurationError: If configuration is invalid
        """
        required = ['nid', 'gamma', 'dt', 'tsim']

        for key in required:
            if key not in config:
                raise ConfigurationError(f"Missing required parameter: {key}")

        MHDParams(
            nid=config['nid'],
            length=config.get('length', 1.0),
            gamma=config['gamma'],
            beta=config.get('beta', 1.0),
            bx0=config.get('bx0', 1.0),
        )

        dt = config['dt']
        if not isinstance(dt, (int, float)) or not np.isfinite(dt) or dt <= 0:
            raise ConfigurationError(f"dt must be > 0, got {dt}")

        if config['tsim'] < 0:
            raise ConfigurationError("tsim must be >= 0")

        if config.get('tfldout', 0) < 0:
            raise ConfigurationError("tfldout must be >= 0")

        normalize_direction(config.get('direction', 'y'))

        profile = config.get('profile')
        if profile is not None and profile not in PROFILES:
            raise ConfigurationError(
                f"Unknown perturbation profile: {profile!r}. Available: {list(PROFILES)}"
            )

        if config.get('width', 0.15) <= 0:
            raise ConfigurationError("width must be > 0")

        boundary = str(config.get('boundary', 'reflecting')).lower()
        if boundary not in BOUNDARY_POLICIES:
            raise ConfigurationError(
                f"Unknown boundary policy: {boundary!r}. "
                f"Available: {list(BOUNDARY_POLICIES.keys())}"
            )

        return True

    @staticmethod
    def build(config: Dict[str, Any]) -> Tuple[MHDSystem, LeapfrogIntegrator]:
        """
        Create an initialized system and its integrator from a configuration.

        Missing keys fall back to the defaults.

        Args:
            config: Configuration dictionary

        Returns:
            Tuple of (MHDSystem, LeapfrogIntegrator)
        """
        full = ConfigManager.get_default_config()
        full.update(config)
        ConfigManager.validate_config(full)

        system = MHDSystem(
            nid=full['nid'],
            length=full['length'],
            gamma=full['gamma'],
            beta=full['beta'],
            bx0=full['bx0'],
        )
        system.init_pulse(
            vpert=full['vpert'],
            direction=full['direction'],
            traveling_wave=full['traveling_wave'],
            width=full['width'],
            center=full['center'],
            profile=full['profile'],
        )

        integrator = LeapfrogIntegrator(dt=full['dt'], boundary=full['boundary'])

        return system, integrator
