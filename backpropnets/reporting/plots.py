"""Headless-safe cost curve plotting."""

from __future__ import annotations

from pathlib import Path
from typing import List, Mapping, Tuple


class PlotAdapter:
    """Collect per-epoch costs and optionally render them with matplotlib."""

    def __init__(self, run_dir: str | Path, enable_plots: bool = False, metric: str = "cost"):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self.metric = metric
        self._history: List[Tuple[int, float]] = []
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self.run_dir / f"{self.metric}.png"

    def on_epoch(self, epoch: int, metrics: Mapping[str, object]) -> None:
        if not self.enable_plots or self.metric not in metrics:
            return
        self._history.append((int(epoch), float(metrics[self.metric])))

    def close(self) -> Path | None:
        if not self.enable_plots or not self._history:
            return None
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # imported lazily for headless safety

        epochs, values = zip(*self._history)
        fig, ax = plt.subplots()
        ax.plot(epochs, values, marker="o")
        ax.set_xlabel("Epoch")
        ax.set_ylabel(self.metric.capitalize())
        ax.set_title("Training Curve")
        fig.savefig(self.path)
        plt.close(fig)
        return self.path

    __call__ = on_epoch


__all__ = ["PlotAdapter"]
