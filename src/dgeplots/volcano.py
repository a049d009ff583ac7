"""
Volcano chart builder.

Scatter of -log10(pvalue) against log2FoldChange, coloured by expression
direction, with the genes cited in the article ringed and labelled.
"""

import logging
import pathlib
import typing

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.transforms import Bbox

from .dge import UNCHANGED, add_expression

logger = logging.getLogger(__name__)

# Genes cited in the article
UP_GENES = ["CXCL5", "CXCL12", "CCL2", "CCL4", "CXCL10", "IFIH1", "IFI44", "IFIT1", "IL6", "IL10"]
DOWN_GENES = ["RPL41", "RPL17", "SLC25A6", "CALM1", "TUBA1A"]
LABEL_GENES = UP_GENES + DOWN_GENES

# Zero fold change has no direction and is drawn as a neutral third category
EXPRESSION_COLORS = {"down": "blue", "up": "red", UNCHANGED: "grey"}

TITLE = "Volcano plot representing upregulated and downregulated genes"
FIGSIZE = (6, 8)

# Candidate label offsets in points, tried in order at growing distance
_LABEL_DIRECTIONS = [(1, 1), (-1, 1), (1, -1), (-1, -1), (0, 1), (0, -1), (1, 0), (-1, 0)]
_LABEL_STEP = 8


def select_labels(dge: pd.DataFrame, genes: typing.Iterable[str] = LABEL_GENES) -> pd.DataFrame:
    """Rows whose Gene is in `genes`; used only for text labels and rings."""
    wanted = set(genes)
    return dge.loc[dge["Gene"].isin(wanted)].reset_index(drop=True)


def neg_log10(pvalues: pd.Series) -> pd.Series:
    with np.errstate(divide="ignore"):
        return -np.log10(pvalues.astype(float))


def build_volcano_figure(
    dge: pd.DataFrame, title: str = TITLE, subtitle: str | None = None
) -> plt.Figure:
    """
    Build the volcano figure:
      - every gene coloured by Expression (down blue, up red, unchanged grey)
      - labelled genes ringed in black with non-overlapping text
      - dashed reference lines at x = -1, x = 1 and y = 0
      - classic style: no grid, grey border, no legend
    """
    df = add_expression(dge)
    df["Expression"] = df["Expression"].fillna(UNCHANGED)
    df["y"] = neg_log10(df["pvalue"])

    fig, ax = plt.subplots(figsize=FIGSIZE)

    for expression, color in EXPRESSION_COLORS.items():
        points = df.loc[df["Expression"] == expression]
        if points.empty:
            continue
        ax.scatter(
            points["log2FoldChange"],
            points["y"],
            c=color,
            s=12,
            linewidths=0,
            label=expression,
            zorder=2,
        )

    labels = select_labels(df)
    ax.scatter(
        labels["log2FoldChange"],
        labels["y"],
        facecolors="none",
        edgecolors="black",
        s=40,
        linewidths=0.8,
        zorder=3,
    )

    ax.axvline(-1, color="black", linestyle="--", linewidth=0.8, zorder=1)
    ax.axvline(1, color="black", linestyle="--", linewidth=0.8, zorder=1)
    ax.axhline(0, color="black", linestyle="--", linewidth=0.8, zorder=1)

    ax.set_xlabel("log2FoldChange")
    ax.set_ylabel("-log10(pvalue)")
    ax.grid(False)
    for spine in ax.spines.values():
        spine.set_color("grey")

    if subtitle:
        fig.suptitle(title, fontsize=11, x=0.02, ha="left")
        ax.set_title(subtitle, fontsize=9, loc="left")
    else:
        ax.set_title(title, fontsize=11, loc="left")

    place_labels(ax, labels["log2FoldChange"], labels["y"], labels["Gene"])
    logger.info("Volcano: %d genes, %d labelled", len(df), len(labels))
    return fig


def _point_positions(ax) -> np.ndarray:
    # display coordinates of every plotted marker
    positions = [
        collection.get_offset_transform().transform(np.asarray(collection.get_offsets(), dtype=float))
        for collection in ax.collections
    ]
    return np.concatenate(positions) if positions else np.empty((0, 2))


def place_labels(ax, xs: typing.Iterable, ys: typing.Iterable, texts: typing.Iterable[str]) -> list:
    """
    Annotate each point with its text, nudging labels outward until their
    bounding boxes cover no plotted point and no label placed before them.

    When every candidate position collides, the one with the fewest
    collisions is kept.
    """
    fig = ax.figure
    fig.canvas.draw()
    renderer = fig.canvas.get_renderer()
    points = _point_positions(ax)

    placed: list[Bbox] = []
    annotations = []
    for x, y, text in zip(xs, ys, texts):
        best = None
        for distance in range(1, 5):
            for dx, dy in _LABEL_DIRECTIONS:
                annotation = ax.annotate(
                    str(text),
                    xy=(x, y),
                    xytext=(dx * distance * _LABEL_STEP, dy * distance * _LABEL_STEP),
                    textcoords="offset points",
                    ha="center",
                    va="center",
                    fontsize=7,
                    color="black",
                    arrowprops={"arrowstyle": "-", "color": "black", "linewidth": 0.5},
                    zorder=4,
                )
                extent = annotation.get_window_extent(renderer)
                collisions = _collisions(extent, placed, points)
                if best is None or collisions < best[0]:
                    if best is not None:
                        best[1].remove()
                    best = (collisions, annotation, extent)
                else:
                    annotation.remove()
                if collisions == 0:
                    break
            if best[0] == 0:
                break
        placed.append(best[2])
        annotations.append(best[1])
    return annotations


def _collisions(extent: Bbox, placed: list[Bbox], points: np.ndarray) -> int:
    return sum(extent.overlaps(other) for other in placed) + int(extent.count_contains(points))


def save_volcano(fig: plt.Figure, path: str | pathlib.Path) -> pathlib.Path:
    """Export as a 6 x 8 inch PDF and close the figure."""
    out = pathlib.Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    fig.set_size_inches(*FIGSIZE)
    fig.savefig(out, format="pdf")
    plt.close(fig)
    logger.info("Saved volcano plot to %s", out)
    return out
