"""
KEGG reference tables.

High level
----------
The pathway mapping needs three organism-wide tables from KEGG:

- the gene universe: gene symbol <-> KEGG/Entrez gene id (`list/<org>`)
- pathway membership: pathway id <-> gene id (`link/<org>/pathway`)
- pathway names: pathway id <-> human-readable name (`list/pathway/<org>`)

Key behaviors
-------------
- REST access goes through `bioservices.KEGG`; every call is retried with a
  small exponential backoff and raises `KeggLookupError` when all attempts fail
  or KEGG answers with a bare HTTP status code.
- Raw KEGG text is turned into DataFrames by pure parser functions, so the
  parsing is testable without network access.
- Database prefixes (`path:`, `hsa:`) are stripped from ids and the organism
  suffix (" - Homo sapiens (human)") is stripped from pathway names.
- `KeggTables.save` / `KeggTables.load` keep a downloaded copy on disk so later
  runs can work offline.
"""

from __future__ import annotations

import logging
import pathlib
import re
import time
from dataclasses import dataclass
from typing import Any, Callable

import pandas as pd
import requests
from bioservices import KEGG

from .loader import read_table, write_table

logger = logging.getLogger(__name__)

DEFAULT_ORGANISM = "hsa"

GENES_FILE = "kegg_genes.csv"
LINKS_FILE = "kegg_links.csv"
NAMES_FILE = "kegg_pathways.csv"

_ATTEMPTS = 4

# "Glycolysis / Gluconeogenesis - Homo sapiens (human)" -> organism suffix
_ORGANISM_SUFFIX = re.compile(r"\s+-\s+[^-]+\([^()]*\)\s*$")
_DB_PREFIX = re.compile(r"^[A-Za-z0-9_]+:")


class KeggLookupError(RuntimeError):
    """Raised when a KEGG REST request fails after all retries."""


# ------------------------------------------------------------------------------
# Small utilities
# ------------------------------------------------------------------------------


def _sleep_backoff(i: int) -> None:
    """
    Sleep using a small exponential backoff (polite to the KEGG API).
    Sequence ~ 0.25s, 0.5s, 1s, 2s.
    """
    time.sleep(0.25 * (2**i))


def _request_text(call: Callable[..., Any], *args: str) -> str:
    """
    Run a bioservices KEGG call with retry/backoff.

    bioservices reports HTTP failures by returning the status code as an int
    instead of raising; both that and network errors count as a failed attempt.
    """
    name = getattr(call, "__name__", "request")
    last_problem: str = ""
    for i in range(_ATTEMPTS):
        try:
            result = call(*args)
        except requests.RequestException as e:
            last_problem = str(e)
            logger.debug("KEGG %s%r failed (attempt %d): %s", name, args, i + 1, e)
        else:
            if isinstance(result, str):
                return result
            last_problem = f"HTTP status {result!r}"
            logger.debug("KEGG %s%r returned %r (attempt %d)", name, args, result, i + 1)
        _sleep_backoff(i)
    logger.warning("Giving up on KEGG %s%r after %d attempts", name, args, _ATTEMPTS)
    raise KeggLookupError(f"KEGG {name}{args!r} failed: {last_problem}")


def _strip_prefix(identifier: str) -> str:
    return _DB_PREFIX.sub("", identifier.strip())


def _lines(raw: str) -> list[list[str]]:
    return [line.split("\t") for line in raw.splitlines() if line.strip()]


# ------------------------------------------------------------------------------
# Parsers (raw KEGG flat text -> DataFrame)
# ------------------------------------------------------------------------------


def parse_gene_list(raw: str) -> pd.DataFrame:
    """
    Parse `list/<org>` output into a Gene / geneID table.

    Both the current four-column layout
    ("hsa:7157  CDS  17:complement(...)  TP53, BCC7, ...; tumor protein p53")
    and the older two-column one ("hsa:7157  TP53, ...; tumor protein p53") are
    accepted. The official symbol is the first name before the ';'. Entries with
    no symbol (e.g. "uncharacterized LOC...") are skipped.
    """
    rows = []
    for fields in _lines(raw):
        if len(fields) < 2:
            continue
        description = fields[-1]
        if ";" not in description:
            continue
        names = description.split(";", 1)[0]
        symbol = names.split(",", 1)[0].strip()
        if symbol:
            rows.append({"Gene": symbol, "geneID": _strip_prefix(fields[0])})
    return pd.DataFrame(rows, columns=["Gene", "geneID"])


def parse_link_table(raw: str) -> pd.DataFrame:
    """
    Parse `link` output between pathways and genes into hsaID / geneID.
    The pathway column is whichever side carries the `path:` prefix.
    """
    rows = []
    for fields in _lines(raw):
        if len(fields) < 2:
            continue
        left, right = fields[0].strip(), fields[1].strip()
        if right.startswith("path:"):
            left, right = right, left
        rows.append({"hsaID": _strip_prefix(left), "geneID": _strip_prefix(right)})
    return pd.DataFrame(rows, columns=["hsaID", "geneID"])


def parse_pathway_list(raw: str) -> pd.DataFrame:
    """Parse `list/pathway/<org>` output into hsaID / Pathway."""
    rows = []
    for fields in _lines(raw):
        if len(fields) < 2:
            continue
        name = _ORGANISM_SUFFIX.sub("", fields[1]).strip()
        rows.append({"hsaID": _strip_prefix(fields[0]), "Pathway": name})
    return pd.DataFrame(rows, columns=["hsaID", "Pathway"])


# ------------------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------------------


@dataclass
class KeggTables:
    """
    The three organism-wide reference tables.

    Attributes:
        genes: Gene / geneID (gene universe).
        links: hsaID / geneID (pathway membership).
        names: hsaID / Pathway (pathway names).
    """

    genes: pd.DataFrame
    links: pd.DataFrame
    names: pd.DataFrame

    def save(self, directory: str | pathlib.Path) -> pathlib.Path:
        out = pathlib.Path(directory)
        write_table(self.genes, out / GENES_FILE)
        write_table(self.links, out / LINKS_FILE)
        write_table(self.names, out / NAMES_FILE)
        logger.info("Saved KEGG tables to %s", out)
        return out

    @classmethod
    def load(cls, directory: str | pathlib.Path) -> "KeggTables":
        base = pathlib.Path(directory)
        # ids must stay text so they join with freshly parsed tables
        return cls(
            genes=read_table(base / GENES_FILE, dtype=str),
            links=read_table(base / LINKS_FILE, dtype=str),
            names=read_table(base / NAMES_FILE, dtype=str),
        )

    @staticmethod
    def exists(directory: str | pathlib.Path) -> bool:
        base = pathlib.Path(directory)
        return all((base / name).is_file() for name in (GENES_FILE, LINKS_FILE, NAMES_FILE))


class KeggClient:
    """Fetches KEGG reference tables for one organism."""

    def __init__(self, organism: str = DEFAULT_ORGANISM, service: KEGG | None = None):
        self.organism = organism
        self._kegg = service if service is not None else KEGG(verbose=False)

    def gene_universe(self) -> pd.DataFrame:
        raw = _request_text(self._kegg.list, self.organism)
        genes = parse_gene_list(raw)
        logger.info("KEGG %s gene universe: %d symbols", self.organism, len(genes))
        return genes

    def pathway_links(self) -> pd.DataFrame:
        raw = _request_text(self._kegg.link, self.organism, "pathway")
        links = parse_link_table(raw)
        logger.info("KEGG %s pathway links: %d gene-pathway pairs", self.organism, len(links))
        return links

    def pathway_names(self) -> pd.DataFrame:
        raw = _request_text(self._kegg.list, f"pathway/{self.organism}")
        names = parse_pathway_list(raw)
        logger.info("KEGG %s pathways: %d", self.organism, len(names))
        return names

    def fetch_tables(self) -> KeggTables:
        return KeggTables(
            genes=self.gene_universe(),
            links=self.pathway_links(),
            names=self.pathway_names(),
        )
