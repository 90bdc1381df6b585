"""
Visualization module for 1D Ideal MHD Simulations.

Provides the Animator class for creating:
    - Stacked field profiles (vx, vy, By) with running symmetric limits
    - Energy time series (kinetic, pressure, magnetic, total)
    - Time-position plot of vy
    - GIF animations of the snapshot sequence

Uses dark theme with publication-quality output.
"""

import numpy as np
import matplotlib.pyplot as plt
import matplotlib.animation as animation
from typing import Dict, Any, Sequence


# Set dark style globally
plt.style.use('dark_background')


class Animator:
    """
    Animation and visualization class for 1D MHD simulations.

    Profile limits grow with the largest |value| seen so far in each
    field and never shrink, so a decaying or reflected pulse stays on a
    fixed scale between frames.

    Attributes:
        fps: Frames per second for animations
        dpi: Resolution for saved figures
        limits: Running symmetric limits for vx, vy and by
    """

    PROFILE_FIELDS = ('vx', 'vy', 'by')

    def __init__(self, fps: int = 10, dpi: int = 150):
        """
        Initialize the Animator.

        Args:
            fps: Frames per second for GIF animations
            dpi: Dots per inch for saved figures
        """
        self.fps = fps
        self.dpi = dpi
        self.limits: Dict[str, float] = {name: -1.0 for name in self.PROFILE_FIELDS}

        # Color scheme
        self.colors = {
            'vx': '#FFD93D',           # Yellow
            'vy': '#00D4AA',           # Cyan-green
            'by': '#FF6B9D',           # Pink
            'kinetic': '#FF4D4D',      # Red
            'pressure': '#6BCB77',     # Green
            'magnetic': '#4D96FF',     # Blue
            'total': '#ffffff',        # White
            'grid': '#2a2a3e',         # Dark grid
            'text': '#ffffff',         # White text
        }

        self.labels = {
            'vx': r'$v_x$',
            'vy': r'$v_y$',
            'by': r'$B_y$',
        }

        # Figure background
        self.fig_facecolor = '#1a1a2e'
        self.ax_facecolor = '#16213e'

    def reset_limits(self):
        """Forget the running profile limits."""
        self.limits = {name: -1.0 for name in self.PROFILE_FIELDS}

    def update_limits(self, profiles: Dict[str, np.ndarray]) -> Dict[str, float]:
        """
        Grow the running limits with one set of profiles.

        Args:
            profiles: Mapping with 'vx', 'vy' and 'by' arrays

        Returns:
            Current limits
        """
        for name in self.PROFILE_FIELDS:
            peak = float(np.max(np.abs(profiles[name])))
            self.limits[name] = max(self.limits[name], peak)
        return dict(self.limits)

    def _style_axis(self, ax):
        ax.set_facecolor(self.ax_facecolor)
        ax.grid(True, alpha=0.3, color=self.colors['grid'])
        ax.tick_params(colors=self.colors['text'])

    def _draw_profiles(self, axes, x, profiles):
        lines = []
        for ax, name in zip(axes, self.PROFILE_FIELDS):
            self._style_axis(ax)
            line, = ax.plot(x, profiles[name], color=self.colors[name], linewidth=2)
            ax.set_ylabel(self.labels[name], color=self.colors['text'])
            ax.set_xlim(x[0], x[-1])
            if self.limits[name] > 0:
                ax.set_ylim(-self.limits[name], self.limits[name])
            lines.append(line)
        axes[-1].set_xlabel('x', color=self.colors['text'])
        return lines

    def create_profile_plot(
        self,
        snapshot: Any,
        filename: str,
        title: str = "MHD Simulation"
    ) -> None:
        """
        Create a stacked 3x1 plot of vx, vy and By at one snapshot.

        Args:
            snapshot: Snapshot with x, t, vx, vy and by
            filename: Output file path
            title: Plot title
        """
        profiles = {name: np.asarray(getattr(snapshot, name)) for name in self.PROFILE_FIELDS}
        self.update_limits(profiles)

        fig, axes = plt.subplots(3, 1, figsize=(10, 9), sharex=True,
                                 facecolor=self.fig_facecolor)
        fig.suptitle(f"{title}\nt = {snapshot.t:.3f}", fontsize=14, color=self.colors['text'])

        self._draw_profiles(axes, np.asarray(snapshot.x), profiles)

        plt.tight_layout()
        plt.savefig(filename, dpi=self.dpi, facecolor=self.fig_facecolor,
                    bbox_inches='tight', pad_inches=0.1)
        plt.close(fig)

    def create_energy_plot(
        self,
        energy: Dict[str, np.ndarray],
        filename: str,
        title: str = "Energy Evolution"
    ) -> None:
        """
        Plot kinetic, pressure, magnetic and total energy against time.

        The y-range is padded by 5% of the data range.

        Args:
            energy: Mapping with t, kinetic, pressure, magnetic, total arrays
                (EnergyLog.to_dict() or EnergyLog.view())
            filename: Output file path
            title: Plot title
        """
        t = np.asarray(energy['t'])

        fig, ax = plt.subplots(figsize=(10, 6), facecolor=self.fig_facecolor)
        fig.suptitle(title, fontsize=14, color=self.colors['text'])
        self._style_axis(ax)

        for name in ('kinetic', 'pressure', 'magnetic', 'total'):
            ax.plot(t, np.asarray(energy[name]), color=self.colors[name],
                    label=name.capitalize(), linewidth=2)

        if t.size > 0:
            stacked = np.concatenate([np.asarray(energy[k]) for k in
                                      ('kinetic', 'pressure', 'magnetic', 'total')])
            lo, hi = float(np.min(stacked)), float(np.max(stacked))
            pad = 0.05 * (hi - lo)
            if pad > 0:
                ax.set_ylim(lo - pad, hi + pad)

        ax.set_xlabel('Time', color=self.colors['text'])
        ax.set_ylabel('Energy density', color=self.colors['text'])
        ax.legend(facecolor=self.ax_facecolor, edgecolor='gray')

        plt.tight_layout()
        plt.savefig(filename, dpi=self.dpi, facecolor=self.fig_facecolor,
                    bbox_inches='tight', pad_inches=0.1)
        plt.close(fig)

    def create_keogram(
        self,
        x: np.ndarray,
        history_t: np.ndarray,
        history_vy: np.ndarray,
        filename: str,
        title: str = r"$v_y(x, t)$"
    ) -> None:
        """
        Create a time-position color plot of vy.

        Time runs along the horizontal axis and position along the
        vertical one, so Alfvén pulses show up as diagonal bands.

        Args:
            x: Cell positions
            history_t: Times of the stored profiles
            history_vy: vy profiles, shape (n_times, ni)
            filename: Output file path
            title: Plot title
        """
        history_t = np.asarray(history_t)
        history_vy = np.asarray(history_vy)
        if history_t.size == 0:
            return

        fig, ax = plt.subplots(figsize=(10, 6), facecolor=self.fig_facecolor)
        ax.set_facecolor(self.ax_facecolor)

        vmax = float(np.max(np.abs(history_vy)))
        if vmax == 0:
            vmax = 1.0

        im = ax.pcolormesh(history_t, np.asarray(x), history_vy.T, cmap='RdBu_r',
                           vmin=-vmax, vmax=vmax, shading='auto')
        ax.set_xlabel('Time', color=self.colors['text'])
        ax.set_ylabel('x', color=self.colors['text'])
        ax.set_title(title, color=self.colors['text'])
        ax.tick_params(colors=self.colors['text'])

        cbar = fig.colorbar(im, ax=ax)
        cbar.ax.yaxis.set_tick_params(color=self.colors['text'])
        plt.setp(cbar.ax.get_yticklabels(), color=self.colors['text'])

        plt.tight_layout()
        plt.savefig(filename, dpi=self.dpi, facecolor=self.fig_facecolor,
                    bbox_inches='tight', pad_inches=0.1)
        plt.close(fig)

    def create_animation(
        self,
        snapshots: Sequence[Any],
        filename: str,
        title: str = "MHD Simulation",
        verbose: bool = False
    ) -> None:
        """
        Create GIF animation of the vx, vy and By profiles.

        Limits grow frame by frame in the same way as for single plots.

        Args:
            snapshots: Snapshots in time order
            filename: Output GIF file path
            title: Animation title
            verbose: Print progress
        """
        if not snapshots:
            if verbose:
                print("No snapshots available for animation")
            return

        self.reset_limits()
        first = snapshots[0]
        x = np.asarray(first.x)
        profiles = {name: np.asarray(getattr(first, name)) for name in self.PROFILE_FIELDS}
        self.update_limits(profiles)

        fig, axes = plt.subplots(3, 1, figsize=(10, 9), sharex=True,
                                 facecolor=self.fig_facecolor)
        lines = self._draw_profiles(axes, x, profiles)
        time_text = fig.suptitle(f"{title}\nt = {first.t:.3f}", fontsize=14,
                                 color=self.colors['text'])

        def update(frame):
            snap = snapshots[frame]
            current = {name: np.asarray(getattr(snap, name)) for name in self.PROFILE_FIELDS}
            self.update_limits(current)
            for ax, line, name in zip(axes, lines, self.PROFILE_FIELDS):
                line.set_ydata(current[name])
                if self.limits[name] > 0:
                    ax.set_ylim(-self.limits[name], self.limits[name])
            time_text.set_text(f"{title}\nt = {snap.t:.3f}")
            return lines + [time_text]

        if verbose:
            print(f"Creating animation with {len(snapshots)} frames...")

        anim = animation.FuncAnimation(
            fig, update, frames=len(snapshots),
            interval=1000 // self.fps, blit=False
        )

        anim.save(filename, writer='pillow', fps=self.fps,
                  savefig_kwargs={'facecolor': self.fig_facecolor})
        plt.close(fig)

        if verbose:
            print(f"Animation saved to {filename}")

