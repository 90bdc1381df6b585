#!/usr/bin/env python
"""
Example: Basic usage of the leapfrog-mhd library.

This script follows a right-traveling Alfvén pulse across a box with
conducting walls, rendering the field profiles live through the
snapshot callback.

Run with:
    python examples/basic_usage.py
"""

from pathlib import Path

from leapfrog_mhd import MHDSystem, LeapfrogIntegrator
from leapfrog_mhd import compute_all_metrics
from leapfrog_mhd.io.data_handler import DataHandler
from leapfrog_mhd.visualization.animator import Animator


def main():
    print("=" * 60)
    print("leapfrog-mhd: 1D Ideal MHD Simulation")
    print("=" * 60)

    output_dir = Path("example_outputs")
    output_dir.mkdir(exist_ok=True)

    # 1. Define the MHD system
    print("\n[1] Creating MHD system (right-traveling Alfvén pulse)...")
    system = MHDSystem(nid=64, length=1.0, gamma=5.0/3.0, beta=1.0, bx0=1.0)
    system.init_pulse(vpert=0.01, direction='y', traveling_wave=1)
    print(f"    {system}")

    # 2. Initialize the integrator
    print("\n[2] Initializing integrator...")
    integrator = LeapfrogIntegrator(dt=0.01, boundary='reflecting')
    print(f"    {integrator}")

    # 3. Run, saving a profile plot every 0.25 time units
    print("\n[3] Running simulation...")
    animator = Animator(fps=20, dpi=150)

    def render(snapshot):
        png_file = output_dir / f"alfven_profiles_{snapshot.step:04d}.png"
        animator.create_profile_plot(snapshot, png_file, "Alfvén Pulse")

    result = integrator.run(system, tsim=1.0, tfldout=0.25, callback=render)

    print(f"\n    Simulation complete!")
    print(f"    Snapshots: {result['n_snapshots']}")
    print(f"    Total steps: {result['total_steps']}")
    print(f"    Courant number: {result['courant_number']:.3f}")

    # 4. Compute metrics
    print("\n[4] Computing metrics...")
    metrics = compute_all_metrics(
        system.corrector,
        system.params,
        integrator.dt,
        energy_log=result['energy'],
        conservation_initial=result['conservation_initial'],
    )

    print("\n    === KEY METRICS ===")
    print(f"    Energy drift: {metrics['energy_drift']*100:.4f}%")
    print(f"    Mass conservation error: {metrics['mass_conservation_error']:.2e}")
    print(f"    Propagation index: {metrics['wave_propagation_index']:+.3f}")

    # 5. Save results
    print("\n[5] Saving results...")

    energy_file = output_dir / "alfven_energy.csv"
    DataHandler.save_energy_csv(energy_file, result)
    print(f"    Saved: {energy_file}")

    nc_file = output_dir / "alfven.nc"
    config = {'scenario_name': 'Alfven Pulse Example', 'vpert': 0.01,
              'direction': 'y', 'traveling_wave': 1}
    DataHandler.save_netcdf(nc_file, result, config, metrics)
    print(f"    Saved: {nc_file}")

    # 6. Create visualization
    print("\n[6] Creating visualizations...")

    png_file = output_dir / "alfven_energy.png"
    animator.create_energy_plot(result['energy'].view(), png_file)
    print(f"    Saved: {png_file}")

    png_file = output_dir / "alfven_vy_xt.png"
    animator.create_keogram(result['x'], result['history_t'], result['history_vy'], png_file)
    print(f"    Saved: {png_file}")

    print("\n" + "=" * 60)
    print("Done! Check 'example_outputs' directory for results.")
    print("=" * 60)


if __name__ == "__main__":
    main()
