from __future__ import annotations

import logging
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

LOGGER = logging.getLogger("mongobench.charts")

sns.set_style("whitegrid")
plt.rcParams["figure.dpi"] = 100
plt.rcParams["savefig.dpi"] = 300
plt.rcParams["font.size"] = 10
plt.rcParams["axes.titlesize"] = 13
plt.rcParams["legend.fontsize"] = 9

THROUGHPUT_CHART = "throughput.png"
DURATION_CHART = "duration.png"


def render_charts(df: pd.DataFrame, output_dir: Path) -> list[Path]:
    """Render every chart for a summary frame, returning the files written."""
    written = []
    for renderer, filename in (
        (render_throughput_chart, THROUGHPUT_CHART),
        (render_duration_chart, DURATION_CHART),
    ):
        path = output_dir / filename
        if renderer(df, path):
            written.append(path)
    return written


def render_throughput_chart(df: pd.DataFrame, chart_path: Path) -> bool:
    """Line chart of requests per second against collection size, one line per workload."""
    if df.empty:
        LOGGER.warning("No results available for throughput chart")
        return False

    fig, ax = plt.subplots(figsize=(10, 6))
    for workload, group in df.groupby("workload", sort=False):
        group = group.sort_values("total")
        ax.plot(
            group["total"],
            group["req_per_sec"],
            marker="o",
            linewidth=2,
            markersize=6,
            label=workload,
        )

    ax.set_xlabel("Documents in collection", fontweight="semibold")
    ax.set_ylabel("Throughput (requests/s)", fontweight="semibold")
    ax.set_title("Workload Throughput vs Collection Size", fontweight="bold", pad=15)
    ax.grid(True, alpha=0.3, linestyle="--")
    ax.legend(loc="center left", bbox_to_anchor=(1.0, 0.5), frameon=True)

    plt.tight_layout()
    fig.savefig(chart_path, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    LOGGER.info("Rendering chart %s", chart_path)
    return True


def render_duration_chart(df: pd.DataFrame, chart_path: Path) -> bool:
    """Grouped bars of workload duration per collection size."""
    if df.empty:
        LOGGER.warning("No results available for duration chart")
        return False

    pivot = df.pivot_table(index="workload", columns="total", values="duration_s", aggfunc="mean")
    workloads = list(pivot.index)
    totals = list(pivot.columns)
    positions = np.arange(len(workloads))
    width = 0.8 / max(len(totals), 1)
    palette = sns.color_palette("viridis", n_colors=len(totals))

    fig, ax = plt.subplots(figsize=(12, 6))
    for offset, (total, color) in enumerate(zip(totals, palette)):
        ax.bar(
            positions + offset * width,
            pivot[total].fillna(0).values,
            width=width,
            color=color,
            edgecolor="white",
            label=f"{total} docs",
        )

    ax.set_xticks(positions + width * (len(totals) - 1) / 2)
    ax.set_xticklabels(workloads, rotation=30, ha="right")
    ax.set_ylabel("Duration (seconds)", fontweight="semibold")
    ax.set_title("Workload Duration by Collection Size", fontweight="bold", pad=15)
    ax.grid(True, alpha=0.3, axis="y", linestyle="--")
    ax.legend(frameon=True)

    plt.tight_layout()
    fig.savefig(chart_path, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    LOGGER.info("Rendering chart %s", chart_path)
    return True


__all__ = [
    "DURATION_CHART",
    "THROUGHPUT_CHART",
    "render_charts",
    "render_duration_chart",
    "render_throughput_chart",
]
