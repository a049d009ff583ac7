"""
Pathway aggregation.

Joins the gene <-> pathway bridge with the DGE statistics, keeps the
allow-listed pathways, and summarizes each pathway by gene count and mean
adjusted p-value.
"""

import typing
from dataclasses import dataclass

import pandas as pd

# Pathways shown in the dot plot
UP_PATHWAYS = [
    "Cytokine-cytokine receptor interaction",
    "JAK-STAT signaling pathway",
    "Complement and coagulation cascades",
    "Hematopoietic cell lineage",
    "Chemokine signaling pathway",
    "Inflammatory bowel disease",
    "Toll-like receptor signaling pathway",
    "IL-17 signaling pathway",
    "TGF-beta signaling pathway",
    "Th1 and Th2 cell differentiation",
]

DOWN_PATHWAYS = [
    "Ribosome",
    "Oxidative phosphorylation",
    "Viral myocarditis",
    "Protein processing in endoplasmic reticulum",
    "Oxytocin signaling pathway",
    "Type I diabetes mellitus",
    "Phagosome",
    "Amyotrophic lateral sclerosis",
    "Ferroptosis",
    "Allograft rejection",
]

SUMMARY_COLUMNS = ["Pathway", "NumGenes", "pMean"]


def _mean_keep_missing(values: pd.Series) -> float:
    return values.mean(skipna=False)


@dataclass(frozen=True)
class ScaleLimits:
    """
    Colour and size limits shared by both dot-plot panels.

    Attributes:
        p_mean: (low, high) of mean adjusted p-value.
        num_genes: (low, high) of gene count.
    """

    p_mean: tuple[float, float]
    num_genes: tuple[float, float]


def summarize_pathways(
    pathways: pd.DataFrame,
    dge: pd.DataFrame,
    allow_list: typing.Iterable[str] = tuple(UP_PATHWAYS + DOWN_PATHWAYS),
) -> pd.DataFrame:
    """
    One row per allow-listed pathway that has at least one DGE gene:
      - NumGenes: number of joined DGE rows
      - pMean: mean padj over those rows; NaN when any of them lacks padj
    """
    wanted = set(allow_list)
    selected = pathways.loc[pathways["Pathway"].isin(wanted), ["Gene", "Pathway"]]
    joined = selected.merge(dge[["Gene", "padj"]], on="Gene", how="inner")

    summary = (
        joined.groupby("Pathway", sort=True)
        .agg(NumGenes=("Gene", "size"), pMean=("padj", _mean_keep_missing))
        .reset_index()
    )
    summary["NumGenes"] = summary["NumGenes"].astype(int)
    return summary[SUMMARY_COLUMNS]


def split_pathways(
    summary: pd.DataFrame,
    up: typing.Iterable[str] = UP_PATHWAYS,
    down: typing.Iterable[str] = DOWN_PATHWAYS,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Partition a pathway summary into its up- and down-regulated panels."""
    up_pathways = summary.loc[summary["Pathway"].isin(set(up))].reset_index(drop=True)
    down_pathways = summary.loc[summary["Pathway"].isin(set(down))].reset_index(drop=True)
    return up_pathways, down_pathways


def shared_scale_limits(up_pathways: pd.DataFrame, down_pathways: pd.DataFrame) -> ScaleLimits:
    """Min/max of pMean and NumGenes over the union of both panels, ignoring missing pMean."""
    union = pd.concat([up_pathways, down_pathways], ignore_index=True)
    return ScaleLimits(
        p_mean=(float(union["pMean"].min()), float(union["pMean"].max())),
        num_genes=(float(union["NumGenes"].min()), float(union["NumGenes"].max())),
    )
