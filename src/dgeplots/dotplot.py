"""
Pathway dot chart builder.

Two horizontal dot charts stacked back to back: up-regulated pathways on top,
down-regulated pathways below with the axis mirrored. Both panels share one
colour scale (mean adjusted p-value) and one size scale (number of genes),
computed over the union of the two panels so they can be compared directly.
"""

import logging
import pathlib

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.colors import LinearSegmentedColormap, Normalize
from matplotlib.lines import Line2D

from .aggregate import ScaleLimits, shared_scale_limits

logger = logging.getLogger(__name__)

FIGSIZE = (6, 10)

# pathways whose mean is missing are drawn grey
P_MEAN_CMAP = LinearSegmentedColormap.from_list("p_mean", ["blue", "red"]).with_extremes(bad="grey")

COLOR_LABEL = "Mean\nadjusted\np-value"
SIZE_LABEL = "Number\nof genes"

# Marker area range (points^2) for the smallest / largest gene count
_SIZE_RANGE = (20.0, 200.0)

# Figure-fraction rectangles [left, bottom, width, height]
_UP_RECT = [0.44, 0.54, 0.37, 0.42]
_DOWN_RECT = [0.04, 0.05, 0.37, 0.42]
_COLORBAR_RECT = [0.86, 0.64, 0.03, 0.24]


def pathway_order(pathways: pd.DataFrame) -> list[str]:
    """Pathway names ascending by NumGenes; the first is drawn at the bottom."""
    return pathways.sort_values("NumGenes", kind="mergesort")["Pathway"].tolist()


def marker_sizes(num_genes: pd.Series, limits: tuple[float, float]) -> np.ndarray:
    """Map gene counts linearly onto marker area within the shared limits."""
    low, high = limits
    smallest, largest = _SIZE_RANGE
    values = num_genes.astype(float).to_numpy()
    if not np.isfinite(high - low) or high == low:
        return np.full(values.shape, (smallest + largest) / 2)
    scaled = (np.clip(values, low, high) - low) / (high - low)
    return smallest + scaled * (largest - smallest)


def _draw_panel(ax, pathways: pd.DataFrame, limits: ScaleLimits, mirrored: bool):
    order = pathway_order(pathways)
    ordered = pathways.set_index("Pathway").loc[order].reset_index()
    positions = np.arange(len(order))

    points = ax.scatter(
        ordered["NumGenes"],
        positions,
        c=ordered["pMean"],
        s=marker_sizes(ordered["NumGenes"], limits.num_genes),
        cmap=P_MEAN_CMAP,
        norm=Normalize(*limits.p_mean),
        plotnonfinite=True,
        zorder=2,
    )

    ax.set_yticks(positions)
    ax.set_yticklabels(order, fontsize=8)
    ax.set_ylim(-0.6, len(order) - 0.4)
    ax.set_xlabel("")
    ax.set_ylabel("")
    ax.grid(True, color="#e5e5e5", linewidth=0.6, zorder=0)
    for spine in ax.spines.values():
        spine.set_color("#b3b3b3")

    if mirrored:
        ax.yaxis.tick_right()
        ax.yaxis.set_label_position("right")
        ax.invert_xaxis()
    return points


def _add_size_legend(fig, limits: ScaleLimits, anchor: tuple[float, float]) -> None:
    low, high = limits.num_genes
    if not np.isfinite(high - low):
        return
    steps = sorted({int(round(v)) for v in np.linspace(low, high, 4)})
    areas = marker_sizes(pd.Series(steps), limits.num_genes)
    handles = [
        Line2D([], [], linestyle="none", marker="o", color="black", markersize=np.sqrt(area))
        for area in areas
    ]
    fig.legend(
        handles,
        [str(v) for v in steps],
        title=SIZE_LABEL,
        loc="upper left",
        bbox_to_anchor=anchor,
        frameon=False,
        fontsize=8,
        title_fontsize=8,
    )


def build_dot_figure(
    up_pathways: pd.DataFrame,
    down_pathways: pd.DataFrame,
    limits: ScaleLimits | None = None,
) -> plt.Figure:
    """
    Stack the up and down panels into one figure with a single legend.
    `limits` defaults to the union of both panels.
    """
    if limits is None:
        limits = shared_scale_limits(up_pathways, down_pathways)

    fig = plt.figure(figsize=FIGSIZE, facecolor="white")
    # back to back: up labels on the left, down labels on the right
    up_ax = fig.add_axes(_UP_RECT)
    down_ax = fig.add_axes(_DOWN_RECT)

    points = _draw_panel(up_ax, up_pathways, limits, mirrored=False)
    _draw_panel(down_ax, down_pathways, limits, mirrored=True)

    colorbar = fig.colorbar(points, cax=fig.add_axes(_COLORBAR_RECT))
    colorbar.set_label(COLOR_LABEL, fontsize=8)
    colorbar.ax.tick_params(labelsize=7)
    _add_size_legend(fig, limits, anchor=(0.83, 0.58))

    logger.info(
        "Dot plot: %d up / %d down pathways, pMean %s, NumGenes %s",
        len(up_pathways),
        len(down_pathways),
        limits.p_mean,
        limits.num_genes,
    )
    return fig


def save_dot_figure(fig: plt.Figure, path: str | pathlib.Path) -> pathlib.Path:
    """Export as a 6 x 10 inch PDF and close the figure."""
    out = pathlib.Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    fig.set_size_inches(*FIGSIZE)
    fig.savefig(out, format="pdf", facecolor="white")
    plt.close(fig)
    logger.info("Saved dot plot to %s", out)
    return out
