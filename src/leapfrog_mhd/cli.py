#!/usr/bin/env python3
"""
Command-line interface for the Leapfrog-MHD 1D Simulator.

Usage:
    leapfrog-mhd case1              # Right-traveling Alfvén pulse
    leapfrog-mhd case2              # Left-traveling Alfvén pulse
    leapfrog-mhd case3              # Standing transverse pulse
    leapfrog-mhd case4              # Compressional (vx) pulse
    leapfrog-mhd case5              # Periodic sine perturbation
    leapfrog-mhd -a                 # Run all cases sequentially
    leapfrog-mhd -c config.txt      # Run from config file
    leapfrog-mhd --help             # Show help
"""

import argparse
import os
import sys
import time
from pathlib import Path
from typing import Dict, Any, Optional

from tqdm import tqdm

from leapfrog_mhd.core.exceptions import ConfigurationError, NumericalInstabilityError
from leapfrog_mhd.core.metrics import compute_all_metrics, compute_stability_metrics
from leapfrog_mhd.io.config_manager import ConfigManager
from leapfrog_mhd.io.data_handler import DataHandler
from leapfrog_mhd.utils.logger import SimulationLogger
from leapfrog_mhd.visualization.animator import Animator


# =============================================================================
# Scenario Configurations
# =============================================================================

SCENARIOS = {
    'case1': {
        'scenario_name': 'Case 1 - Right-Traveling Alfven Pulse',
        'direction': 'y',
        'traveling_wave': 1,
    },
    'case2': {
        'scenario_name': 'Case 2 - Left-Traveling Alfven Pulse',
        'direction': 'y',
        'traveling_wave': -1,
    },
    'case3': {
        'scenario_name': 'Case 3 - Standing Transverse Pulse',
        'direction': 'y',
        'traveling_wave': 0,
    },
    'case4': {
        'scenario_name': 'Case 4 - Compressional Pulse',
        'direction': 'x',
        'traveling_wave': 0,
    },
    'case5': {
        'scenario_name': 'Case 5 - Periodic Sine Perturbation',
        'direction': 'both',
        'profile': 'sine',
        'traveling_wave': 1,
        'boundary': 'periodic',
    },
}


def _scenario_config(scenario_key: str) -> Dict[str, Any]:
    if scenario_key not in SCENARIOS:
        raise ValueError(f"Unknown scenario: {scenario_key}. "
                         f"Available: {list(SCENARIOS.keys())}")
    config = ConfigManager.get_default_config()
    config.update(SCENARIOS[scenario_key])
    return config


# =============================================================================
# Main Simulation Runner
# =============================================================================

def run_simulation(
    config: Dict[str, Any],
    run_name: str,
    output_dir: Optional[str] = None,
    verbose: bool = False,
) -> Dict[str, Any]:
    """
    Run a complete 1D MHD simulation and write its outputs.

    Args:
        config: Configuration dictionary (missing keys use defaults)
        run_name: Base name for output and log files
        output_dir: Directory for output files (default: config 'output_dir')
        verbose: Echo warnings to the console

    Returns:
        Dictionary with the run result, final metrics and timing

    Raises:
        NumericalInstabilityError: If the integration blows up. The
            energy series up to the failure is still saved to CSV.
    """
    full = ConfigManager.get_default_config()
    full.update(config)
    if output_dir is None:
        output_dir = full['output_dir']

    os.makedirs(output_dir, exist_ok=True)
    log = SimulationLogger(run_name, log_dir='logs', verbose=verbose)
    log.log_parameters(full)

    timing: Dict[str, float] = {}
    out = Path(output_dir)

    try:
        t_start = time.perf_counter()
        system, integrator = ConfigManager.build(full)
        timing['system_init'] = time.perf_counter() - t_start

        log.info(system.describe())
        log.info(repr(integrator))

        initial_stability = compute_stability_metrics(system.corrector, system.params, integrator.dt)
        log.log_stability(initial_stability, system.t)

        print(f"\n{'='*60}")
        print(f"  Running: {full['scenario_name']}")
        print(f"  Grid: {system.nid} cells, dt: {integrator.dt}, tsim: {full['tsim']}")
        print(f"{'='*60}\n")

        t_start = time.perf_counter()
        try:
            result = integrator.run(
                system,
                tsim=full['tsim'],
                tfldout=full['tfldout'],
                verbose=True,
            )
        except NumericalInstabilityError as err:
            timing['simulation'] = time.perf_counter() - t_start
            if err.energy_log is not None and full.get('save_csv', True):
                DataHandler.save_energy_csv(
                    out / f"{run_name}_energy.csv", {'energy': err.energy_log}
                )
            raise
        timing['simulation'] = time.perf_counter() - t_start
        print()

        if result['interrupted']:
            raise KeyboardInterrupt

        t_start = time.perf_counter()
        final_metrics = compute_all_metrics(
            system.corrector,
            system.params,
            integrator.dt,
            energy_log=result['energy'],
            conservation_initial=result['conservation_initial'],
        )
        timing['metrics'] = time.perf_counter() - t_start

        if len(result['energy']) > 0:
            last = result['energy'][-1]
            log.log_energy(last._asdict(), last.t)
        log.log_final_metrics(final_metrics)

        post_steps = []
        if full.get('save_png', True):
            post_steps += [('Creating profile plot', 'png'),
                           ('Creating energy plot', 'energy_png'),
                           ('Creating time-position plot', 'keogram')]
        if full.get('save_gif', True):
            post_steps.append(('Creating animation', 'gif'))
        if full.get('save_netcdf', True):
            post_steps.append(('Saving NetCDF', 'netcdf'))
        if full.get('save_csv', True):
            post_steps.append(('Saving CSV', 'csv'))

        animator = Animator(fps=full.get('animation_fps', 20), dpi=full.get('png_dpi', 150))
        title = full['scenario_name']
        outputs = []

        pbar = tqdm(post_steps, desc="Post-processing", unit="step", leave=True)

        for step_name, step_key in pbar:
            pbar.set_description(f"  {step_name}")
            t_start = time.perf_counter()

            if step_key == 'png':
                if result['snapshots']:
                    for snap in result['snapshots']:
                        animator.update_limits({'vx': snap.vx, 'vy': snap.vy, 'by': snap.by})
                    png_file = out / f"{run_name}_profiles.png"
                    animator.create_profile_plot(result['snapshots'][-1], png_file, title)
                    outputs.append(png_file)
                timing['png_save'] = time.perf_counter() - t_start

            elif step_key == 'energy_png':
                png_file = out / f"{run_name}_energy.png"
                animator.create_energy_plot(result['energy'].view(), png_file,
                                            f"{title} - Energy")
                outputs.append(png_file)
                timing['energy_png_save'] = time.perf_counter() - t_start

            elif step_key == 'keogram':
                png_file = out / f"{run_name}_vy_xt.png"
                animator.create_keogram(result['x'], result['history_t'],
                                        result['history_vy'], png_file)
                outputs.append(png_file)
                timing['keogram_save'] = time.perf_counter() - t_start

            elif step_key == 'gif':
                gif_file = out / f"{run_name}.gif"
                animator.create_animation(result['snapshots'], gif_file, title)
                outputs.append(gif_file)
                timing['gif_save'] = time.perf_counter() - t_start

            elif step_key == 'netcdf':
                nc_file = out / f"{run_name}.nc"
                DataHandler.save_netcdf(nc_file, result, full, final_metrics)
                outputs.append(nc_file)
                timing['netcdf_save'] = time.perf_counter() - t_start

            elif step_key == 'csv':
                energy_file = out / f"{run_name}_energy.csv"
                metrics_file = out / f"{run_name}_metrics.csv"
                DataHandler.save_energy_csv(energy_file, result)
                DataHandler.save_final_metrics_csv(metrics_file, final_metrics)
                outputs += [energy_file, metrics_file]
                timing['csv_save'] = time.perf_counter() - t_start

        print()

        timing['total'] = sum(timing.values())
        log.log_timing(timing)

    except Exception as e:
        log.error(f"{type(e).__name__}: {e}")
        raise

    finally:
        log.finalize()

    print(f"\n{'='*60}")
    print(f"  SIMULATION COMPLETE")
    print(f"{'='*60}")
    print(f"  Total time: {timing['total']:.1f}s")
    print(f"  Steps: {result['total_steps']}, t_end: {result['t_end']:.4f}")
    print(f"  Courant number: {result['courant_number']:.3f}")
    print(f"  Energy drift: {final_metrics.get('energy_drift', 0)*100:.4f}%")
    print(f"  Mass conservation error: {final_metrics.get('mass_conservation_error', 0)*100:.4e}%")
    print(f"{'='*60}")
    print(f"  Output files:")
    for path in outputs:
        print(f"    • {path}")
    print(f"    • {log.log_file}")
    print(f"{'='*60}\n")

    return {
        'result': result,
        'final_metrics': final_metrics,
        'timing': timing,
        'config': full,
    }


def run_scenario(
    scenario_key: str,
    output_dir: str = 'outputs',
    verbose: bool = False,
) -> Dict[str, Any]:
    """Run one of the predefined scenarios."""
    config = _scenario_config(scenario_key)
    config['output_dir'] = output_dir
    return run_simulation(config, scenario_key, output_dir=output_dir, verbose=verbose)


# =============================================================================
# CLI Entry Point
# =============================================================================

def main():
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description='Leapfrog-MHD: 1D Ideal MHD Simulator',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  leapfrog-mhd case1              Run right-traveling Alfven pulse
  leapfrog-mhd case2              Run left-traveling Alfven pulse
  leapfrog-mhd case3              Run standing transverse pulse
  leapfrog-mhd case4              Run compressional pulse
  leapfrog-mhd case5              Run periodic sine perturbation
  leapfrog-mhd -a                 Run all test cases sequentially
  leapfrog-mhd -c config.txt      Run from config file
  leapfrog-mhd case1 -v           Run with warnings echoed to the console

Available scenarios:
  case1  Right-traveling Alfven pulse (By = -vy), reflecting walls
  case2  Left-traveling Alfven pulse (By = +vy), reflecting walls
  case3  Standing transverse pulse (By = 0), splits in two
  case4  Compressional vx pulse (fast/sound wave)
  case5  Sine perturbation in vx and vy, periodic boundaries
        """
    )

    parser.add_argument(
        'scenario',
        nargs='?',
        choices=list(SCENARIOS.keys()),
        default=None,
        help='Scenario to run (optional if using -a or -c)'
    )

    parser.add_argument(
        '-a', '--all',
        action='store_true',
        help='Run all test cases sequentially'
    )

    parser.add_argument(
        '-c', '--config',
        type=str,
        default=None,
        help='Path to configuration file (.txt)'
    )

    parser.add_argument(
        '-o', '--output',
        default='outputs',
        help='Output directory (default: outputs)'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose output'
    )

    args = parser.parse_args()

    if not args.all and not args.config and not args.scenario:
        parser.error("Please specify a scenario, use -a/--all, or provide -c/--config")

    try:
        if args.all:
            print(f"\n{'='*60}")
            print(f"  LEAPFROG-MHD: Running All Test Cases")
            print(f"{'='*60}\n")

            results = {}
            failed = []

            for i, scenario in enumerate(SCENARIOS.keys(), 1):
                print(f"\n[{i}/{len(SCENARIOS)}] Running {scenario}...")
                try:
                    results[scenario] = run_scenario(
                        scenario,
                        output_dir=args.output,
                        verbose=args.verbose,
                    )
                except (ConfigurationError, NumericalInstabilityError) as e:
                    print(f"  ERROR: {e}")
                    failed.append((scenario, str(e)))

            print(f"\n{'='*60}")
            print(f"  ALL SIMULATIONS COMPLETE")
            print(f"{'='*60}")
            print(f"  Successful: {len(results)}/{len(SCENARIOS)}")
            if failed:
                print(f"  Failed: {len(failed)}")
                for scenario, error in failed:
                    print(f"    • {scenario}: {error}")
            print(f"{'='*60}\n")

            return 0 if not failed else 1

        elif args.config:
            if not os.path.exists(args.config):
                print(f"Error: Config file not found: {args.config}", file=sys.stderr)
                return 1

            print(f"\n  Loading config: {args.config}")
            config = ConfigManager.load(args.config)
            run_name = Path(args.config).stem
            run_simulation(config, run_name, output_dir=args.output, verbose=args.verbose)
            return 0

        else:
            run_scenario(args.scenario, output_dir=args.output, verbose=args.verbose)
            return 0

    except KeyboardInterrupt:
        print("\n\nSimulation interrupted by user.")
        return 1
    except NumericalInstabilityError as e:
        print(f"\nNumerical instability at step {e.step} (t={e.t:.4f}): {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
