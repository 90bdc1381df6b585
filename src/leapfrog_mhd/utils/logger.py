"""Simulation logger for 1D MHD runs."""

import logging
import numpy as np
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, List


class _CollectingHandler(logging.Handler):
    """Collects warning and error messages for the final summary."""

    def __init__(self, owner: "SimulationLogger"):
        super().__init__(level=logging.WARNING)
        self.owner = owner

    def emit(self, record: logging.LogRecord):
        target = self.owner.errors if record.levelno >= logging.ERROR else self.owner.warnings
        target.append(record.getMessage())


class SimulationLogger:
    """Logger for 1D MHD simulations with detailed diagnostics."""

    def __init__(
        self,
        scenario_name: str,
        log_dir: str = "logs",
        verbose: bool = True
    ):
        """
        Initialize simulation logger.

        Args:
            scenario_name: Scenario name (for log filename)
            log_dir: Directory for log files
            verbose: Echo messages to the console
        """
        self.scenario_name = scenario_name
        self.log_dir = Path(log_dir)
        self.verbose = verbose

        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = self.log_dir / f"{scenario_name}.log"

        self.warnings: List[str] = []
        self.errors: List[str] = []
        self.logger = self._setup_logger()

    def _setup_logger(self) -> logging.Logger:
        """
        Configure Python logging.

        Attaches to the ``leapfrog_mhd`` package logger so that library
        messages (Courant warnings, instabilities, early stops) land in
        the same file.
        """
        logger = logging.getLogger("leapfrog_mhd")
        logger.setLevel(logging.DEBUG)
        logger.handlers = []

        handler = logging.FileHandler(self.log_file, mode='w')
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(handler)
        logger.addHandler(_CollectingHandler(self))

        if self.verbose:
            console = logging.StreamHandler()
            console.setLevel(logging.WARNING)
            console.setFormatter(logging.Formatter('  %(levelname)s: %(message)s'))
            logger.addHandler(console)

        return logger

    def info(self, msg: str):
        """Log informational message."""
        self.logger.info(msg)

    def warning(self, msg: str):
        """Log warning message."""
        self.logger.warning(msg)

    def error(self, msg: str):
        """Log error message."""
        self.logger.error(msg)

    def log_parameters(self, config: Dict[str, Any]):
        """Log all simulation parameters."""
        self.info("=" * 70)
        self.info("1D IDEAL MHD SIMULATION - LEAPFROG-MHD")
        self.info(f"Scenario: {config.get('scenario_name', 'Unknown')}")
        self.info("=" * 70)
        self.info("")

        self.info("GRID PARAMETERS:")
        self.info(f"  nid = {config.get('nid', 64)}")
        self.info(f"  length = {config.get('length', 1.0):.4f}")
        self.info(f"  boundary = {config.get('boundary', 'reflecting')}")

        self.info("")
        self.info("PHYSICAL PARAMETERS:")
        self.info(f"  gamma = {config.get('gamma', 5/3):.4f}")
        self.info(f"  beta = {config.get('beta', 1.0):.4f}")
        self.info(f"  bx0 = {config.get('bx0', 1.0):.4f}")

        self.info("")
        self.info("PERTURBATION:")
        self.info(f"  vpert = {config.get('vpert', 0.01)}")
        self.info(f"  direction = {config.get('direction', 'y')}")
        self.info(f"  profile = {config.get('profile') or 'auto'}")
        self.info(f"  width = {config.get('width', 0.15)}")
        self.info(f"  center = {config.get('center', 0.5)}")
        self.info(f"  traveling_wave = {config.get('traveling_wave', 1)}")

        self.info("")
        self.info("SIMULATION PARAMETERS:")
        self.info(f"  dt = {config.get('dt', 0.01)}")
        self.info(f"  tsim = {config.get('tsim', 1.0)}")
        self.info(f"  tfldout = {config.get('tfldout', 0.01)}")

        self.info("=" * 70)
        self.info("")

    def log_energy(self, record: Dict[str, float], t: float):
        """Log energy densities at a time."""
        self.info(f"Energy at t={t:.4f}:")
        self.info(f"  Kinetic: {record.get('kinetic', 0):.8e}")
        self.info(f"  Magnetic: {record.get('magnetic', 0):.8e}")
        self.info(f"  Pressure: {record.get('pressure', 0):.8e}")
        self.info(f"  Total: {record.get('total', 0):.8e}")

    def log_stability(self, metrics: Dict[str, float], t: float):
        """Log stability metrics."""
        self.info(f"Stability at t={t:.4f}:")
        self.info(f"  Courant number: {metrics.get('courant_number', np.nan):.4f}")
        self.info(f"  Max fast speed: {metrics.get('max_fast_speed', np.nan):.4f}")
        self.info(f"  Min density: {metrics.get('min_density', np.nan):.6f}")
        self.info(f"  Is stable: {metrics.get('is_stable', False)}")

    def log_timing(self, timing: Dict[str, float]):
        """Log timing breakdown."""
        self.info("=" * 70)
        self.info("TIMING BREAKDOWN:")
        self.info("=" * 70)

        for key, value in sorted(timing.items()):
            if key != 'total':
                self.info(f"  {key}: {value:.3f} s")

        self.info(f"  {'-' * 40}")
        total_time = timing.get('total', sum(timing.values()))
        self.info(f"  TOTAL: {total_time:.3f} s")

        self.info("=" * 70)
        self.info("")

    def log_final_metrics(self, metrics: Dict[str, Any]):
        """Log final simulation metrics grouped by prefix."""
        self.info("=" * 70)
        self.info("FINAL METRICS:")
        self.info("=" * 70)

        groups = [
            ('CONSERVATION', 'cons_'),
            ('STABILITY', 'stab_'),
            ('WAVES', 'wave_'),
        ]
        for title, prefix in groups:
            self.info(f"\n{title}:")
            for key in sorted(metrics.keys()):
                if key.startswith(prefix):
                    value = metrics[key]
                    if isinstance(value, bool):
                        self.info(f"  {key[len(prefix):]}: {value}")
                    elif isinstance(value, (int, float)):
                        self.info(f"  {key[len(prefix):]}: {value:.8e}")

        for key in ('energy_drift', 'mass_conservation_error'):
            if key in metrics:
                self.info(f"\n{key}: {metrics[key]:.6e}")

        self.info("=" * 70)

    def finalize(self):
        """Write final summary and detach the file handler."""
        self.info("=" * 70)
        self.info("SIMULATION SUMMARY:")
        self.info("=" * 70)
        self.info("")

        if self.errors:
            self.info(f"ERRORS: {len(self.errors)}")
            for i, err in enumerate(self.errors, 1):
                self.info(f"  {i}. {err}")
        else:
            self.info("ERRORS: None")

        self.info("")

        if self.warnings:
            self.info(f"WARNINGS: {len(self.warnings)}")
            for i, warn in enumerate(self.warnings, 1):
                self.info(f"  {i}. {warn}")
        else:
            self.info("WARNINGS: None")

        self.info("")
        self.info(f"Log file: {self.log_file}")
        self.info("=" * 70)
        self.info(f"Simulation completed: {self.scenario_name}")
        self.info(f"Timestamp: {datetime.now().isoformat()}")
        self.info("=" * 70)

        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)
