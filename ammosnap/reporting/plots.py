"""Headless-safe plotting of the training curve."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple


class PlotAdapter:
    """Collect evaluations and draw cost/accuracy curves on :meth:`close`."""

    def __init__(self, run_dir: str | Path, enable_plots: bool = False):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self._history: List[Tuple[int, float, float]] = []
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    def on_step(self, step: int, metrics):
        if not self.enable_plots:
            return
        self._history.append(
            (step, float(metrics.get("cost", 0.0)), float(metrics.get("accuracy", 0.0)))
        )

    def close(self) -> Optional[Path]:
        if not self.enable_plots or not self._history:
            return None
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # imported lazily for headless safety

        steps, costs, accuracies = zip(*self._history)
        fig, (cost_ax, acc_ax) = plt.subplots(2, 1, sharex=True)
        cost_ax.plot(steps, costs)
        cost_ax.set_ylabel("Cost")
        cost_ax.set_title("Test evaluation")
        acc_ax.plot(steps, accuracies, color="tab:green")
        acc_ax.set_ylim(0.0, 1.05)
        acc_ax.set_xlabel("Batch")
        acc_ax.set_ylabel("Accuracy")
        plot_path = self.run_dir / "training_curve.png"
        fig.savefig(plot_path)
        plt.close(fig)
        return plot_path


__all__ = ["PlotAdapter"]
