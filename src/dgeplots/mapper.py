import abc
import logging

import pandas as pd
from stairval.notepad import Notepad

from .kegg import KeggTables

logger = logging.getLogger(__name__)

# Output columns of the gene <-> pathway bridge table, in order
GENE_PATHWAY_COLUMNS = ["hsaID", "geneID", "Gene", "Pathway"]


class PathwayMapper(metaclass=abc.ABCMeta):
    @abc.abstractmethod
    def map_genes(self, dge: pd.DataFrame, notepad: Notepad) -> pd.DataFrame:
        # return the hsaID / geneID / Gene / Pathway bridge for genes in `dge`
        raise NotImplementedError


class KeggPathwayMapper(PathwayMapper):
    def __init__(self, tables: KeggTables):
        """
        `tables` holds the organism's gene universe, pathway links and pathway
        names, either freshly fetched or loaded from a saved copy.
        """
        self._tables = tables

    def map_genes(self, dge: pd.DataFrame, notepad: Notepad) -> pd.DataFrame:
        """
        Process:
        1) restrict the gene universe to symbols present in the DGE table
        2) join pathway links to those genes on geneID
        3) join pathway names on hsaID

        DGE genes that are not in the gene universe silently fall out of the
        mapping; how many is logged and noted on `notepad` for review.
        """
        genes = restrict_to_dge(self._tables.genes, dge)
        self._note_unmapped(dge, genes, notepad)

        pathways = self._tables.links.merge(genes, on="geneID", how="inner")
        pathways = pathways.merge(self._tables.names, on="hsaID", how="inner")
        pathways = pathways[GENE_PATHWAY_COLUMNS].sort_values(
            ["hsaID", "geneID"], kind="mergesort"
        )
        logger.info(
            "Mapped %d genes onto %d pathways (%d gene-pathway rows)",
            pathways["Gene"].nunique(),
            pathways["hsaID"].nunique(),
            len(pathways),
        )
        return pathways.reset_index(drop=True)

    @staticmethod
    def _note_unmapped(dge: pd.DataFrame, genes: pd.DataFrame, notepad: Notepad) -> None:
        missing = sorted(set(dge["Gene"].astype(str)) - set(genes["Gene"].astype(str)))
        if not missing:
            return
        logger.info("%d DGE genes are not in the gene universe and were dropped", len(missing))
        logger.debug("Dropped genes: %s", ", ".join(missing))
        notepad.add_warning(
            f"{len(missing)} DGE genes have no gene id in the annotation universe "
            f"and are excluded from the pathway mapping"
        )


def restrict_to_dge(genes: pd.DataFrame, dge: pd.DataFrame) -> pd.DataFrame:
    """Keep gene-universe rows whose symbol appears in the DGE table."""
    symbols = set(dge["Gene"].astype(str))
    return genes.loc[genes["Gene"].astype(str).isin(symbols), ["Gene", "geneID"]].reset_index(
        drop=True
    )


def build_gene_pathway_table(
    dge: pd.DataFrame, tables: KeggTables, notepad: Notepad
) -> pd.DataFrame:
    # convenience wrapper around the default mapper
    return KeggPathwayMapper(tables).map_genes(dge, notepad)
