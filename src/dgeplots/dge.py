"""
DGE domain model.

Defines the DgeRecord class for one gene's precomputed differential expression
statistics, and the rules that classify a gene as up- or down-regulated.
"""

import math
import typing
from dataclasses import dataclass

import pandas as pd

# (predicate, label) pairs evaluated in order; the last match wins.
# A fold change of exactly 0 (or a missing one) matches nothing.
EXPRESSION_RULES: list[tuple[typing.Callable[[float], bool], str]] = [
    (lambda lfc: lfc > 0, "up"),
    (lambda lfc: lfc < 0, "down"),
]

UNCHANGED = "unchanged"


@dataclass
class DgeRecord:
    """
    Represents the statistics of one gene from the DGE sheet.

    Attributes:
        Gene: Gene symbol, unique key for downstream joins.
        log2FoldChange: Signed log2 expression ratio.
        pvalue: Raw p-value.
        padj: Multiple-testing adjusted p-value.
    """

    Gene: str
    log2FoldChange: float
    pvalue: float
    padj: float

    def __post_init__(self):
        if not isinstance(self.Gene, str) or not self.Gene.strip():
            raise ValueError(f"Invalid gene symbol: {self.Gene!r}")

    @property
    def expression(self) -> str | None:
        return classify_expression(self.log2FoldChange)


def classify_expression(log2_fold_change: typing.Any) -> str | None:
    """
    'up' for a positive fold change, 'down' for a negative one, None otherwise.
    """
    if log2_fold_change is None or pd.isna(log2_fold_change):
        return None
    value = float(log2_fold_change)
    if math.isnan(value):
        return None
    result = None
    for predicate, label in EXPRESSION_RULES:
        if predicate(value):
            result = label
    return result


def add_expression(dge: pd.DataFrame) -> pd.DataFrame:
    """Return a copy of `dge` with an object-dtype Expression column (None when unclassified)."""
    classified = dge.copy()
    # built directly so None is not inferred into a string column holding NaN
    classified["Expression"] = pd.Series(
        [classify_expression(value) for value in dge["log2FoldChange"]],
        index=dge.index,
        dtype=object,
    )
    return classified


def to_records(dge: pd.DataFrame) -> list[DgeRecord]:
    return [
        DgeRecord(
            Gene=row["Gene"],
            log2FoldChange=row["log2FoldChange"],
            pvalue=row["pvalue"],
            padj=row["padj"],
        )
        for _, row in dge.iterrows()
    ]


def unclassified_genes(dge: pd.DataFrame) -> list[str]:
    # genes with no Expression; expects the output of add_expression
    return dge.loc[dge["Expression"].isna(), "Gene"].astype(str).tolist()
