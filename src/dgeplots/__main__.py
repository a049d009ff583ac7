"""
Command-line interface for the dgeplots pipeline.

Stages run in order, each reading the files the previous one wrote:
  download -> KEGG reference tables (optional; prepare fetches live otherwise)
  prepare  -> DGE_results.csv, DGE_pathways.csv, patient_data.csv
  volcano  -> volcano.pdf
  dotplot  -> dot.pdf
`run` chains prepare, volcano and dotplot with the default paths.
"""

import logging
import pathlib
import sys
import typing

import click
from stairval.notepad import Notepad, create_notepad

from . import dge as dge_model
from . import patient
from .aggregate import shared_scale_limits, split_pathways, summarize_pathways
from .dotplot import build_dot_figure, save_dot_figure
from .kegg import DEFAULT_ORGANISM, KeggClient, KeggLookupError, KeggTables
from .loader import DGE_SHEET, load_dge_table, read_patient_sheet, read_table, write_table
from .mapper import build_gene_pathway_table
from .volcano import TITLE, build_volcano_figure, save_volcano

DEFAULT_PATIENTS = "DATA/mmc3.xlsx"
DEFAULT_DGE_WORKBOOK = "DATA/mmc2.xlsx"
DEFAULT_KEGG_DIR = "DATA/kegg"
DEFAULT_TABLE_DIR = "R"
DEFAULT_PLOT_DIR = "PLOTS"

DGE_RESULTS_FILE = "DGE_results.csv"
DGE_PATHWAYS_FILE = "DGE_pathways.csv"
PATIENT_FILE = "patient_data.csv"


@click.group()
@click.option("--verbose-logging", is_flag=True, help="Also emit debug logs to stderr")
@click.option(
    "--log-file-path",
    type=click.Path(dir_okay=False, writable=True),
    help="Append timestamped logs to this file",
)
def main(verbose_logging: bool, log_file_path: typing.Optional[str]):
    """dgeplots: volcano and pathway dot plots from precomputed DGE results."""
    _configure_logging(verbose_logging, log_file_path)


@main.command(name="download")
@click.option(
    "-d",
    "--data-dir",
    default=DEFAULT_KEGG_DIR,
    type=click.Path(file_okay=False),
    help=f"where to save the KEGG tables (default: {DEFAULT_KEGG_DIR})",
)
@click.option("--organism", default=DEFAULT_ORGANISM, help="KEGG organism code")
def download(data_dir: str, organism: str):
    """
    Download the KEGG gene list, pathway links and pathway names for an organism.
    """
    click.echo(f"Downloading KEGG tables for {organism} …")
    tables = _fetch_kegg_tables(organism)
    out = tables.save(data_dir)
    click.echo(
        f"Saved {len(tables.genes)} genes, {len(tables.links)} links and "
        f"{len(tables.names)} pathways to {out}"
    )


@main.command(name="prepare")
@click.option(
    "--patients",
    "patients_path",
    default=DEFAULT_PATIENTS,
    type=click.Path(exists=True, dir_okay=False),
    help="clinical metadata workbook",
)
@click.option(
    "--dge",
    "dge_path",
    default=DEFAULT_DGE_WORKBOOK,
    type=click.Path(exists=True, dir_okay=False),
    help="DGE results workbook",
)
@click.option("--sheet", default=DGE_SHEET, help="sheet holding the DGE results")
@click.option(
    "--kegg-dir",
    default=DEFAULT_KEGG_DIR,
    type=click.Path(file_okay=False),
    help="saved KEGG tables; queried live when absent",
)
@click.option("--organism", default=DEFAULT_ORGANISM, help="KEGG organism code")
@click.option(
    "--out-dir",
    default=DEFAULT_TABLE_DIR,
    type=click.Path(file_okay=False),
    help="where to write the CSV tables",
)
def prepare(
    patients_path: str, dge_path: str, sheet: str, kegg_dir: str, organism: str, out_dir: str
):
    """
    Normalize patient metadata, clean the DGE table and map genes to KEGG pathways.
    """
    notepad = create_notepad("prepare")
    out = pathlib.Path(out_dir)

    # 1) Patient metadata
    patients = patient.normalize_patient_metadata(read_patient_sheet(patients_path), notepad)
    records = patient.to_records(patients, notepad)
    normalized = sum(record.has_normalized_severity for record in records)
    logging.info(f"{normalized} of {len(records)} patients have a normalized severity")
    write_table(patients, out / PATIENT_FILE)

    # 2) DGE results
    dge = load_dge_table(dge_path, sheet_name=sheet)
    dge_records = dge_model.to_records(dge)
    logging.info(f"Loaded {len(dge_records)} DGE rows from {dge_path!r} sheet {sheet!r}")
    write_table(dge, out / DGE_RESULTS_FILE)

    # 3) Gene -> pathway mapping
    if KeggTables.exists(kegg_dir):
        logging.info(f"Using saved KEGG tables from {kegg_dir!r}")
        tables = KeggTables.load(kegg_dir)
    else:
        tables = _fetch_kegg_tables(organism)
    pathways = build_gene_pathway_table(dge, tables, notepad)
    write_table(pathways, out / DGE_PATHWAYS_FILE)

    _report_issues(notepad, "prepare")
    click.echo(f"Created {len(records)} patient records")
    click.echo(f"Wrote {len(dge)} DGE rows and {len(pathways)} gene-pathway rows to {out}")


@main.command(name="volcano")
@click.option(
    "--dge",
    "dge_csv",
    default=f"{DEFAULT_TABLE_DIR}/{DGE_RESULTS_FILE}",
    type=click.Path(exists=True, dir_okay=False),
    help="DGE table written by `prepare`",
)
@click.option(
    "--out",
    "out_path",
    default=f"{DEFAULT_PLOT_DIR}/volcano.pdf",
    type=click.Path(dir_okay=False),
    help="output PDF",
)
@click.option("--title", default=TITLE, help="plot title")
@click.option("--subtitle", default=None, help="plot subtitle (e.g. author name)")
def volcano(dge_csv: str, out_path: str, title: str, subtitle: typing.Optional[str]):
    """
    Draw the volcano plot of all genes, labelling the genes cited in the article.
    """
    notepad = create_notepad("volcano")
    dge = read_table(dge_csv)

    unchanged = dge_model.unclassified_genes(dge_model.add_expression(dge))
    if unchanged:
        notepad.add_warning(
            f"{len(unchanged)} genes have no fold-change direction and are drawn as unchanged"
        )

    fig = build_volcano_figure(dge, title=title, subtitle=subtitle)
    out = save_volcano(fig, out_path)
    _report_issues(notepad, "volcano")
    click.echo(f"Saved volcano plot to {out}")


@main.command(name="dotplot")
@click.option(
    "--dge",
    "dge_csv",
    default=f"{DEFAULT_TABLE_DIR}/{DGE_RESULTS_FILE}",
    type=click.Path(exists=True, dir_okay=False),
    help="DGE table written by `prepare`",
)
@click.option(
    "--pathways",
    "pathways_csv",
    default=f"{DEFAULT_TABLE_DIR}/{DGE_PATHWAYS_FILE}",
    type=click.Path(exists=True, dir_okay=False),
    help="gene-pathway table written by `prepare`",
)
@click.option(
    "--out",
    "out_path",
    default=f"{DEFAULT_PLOT_DIR}/dot.pdf",
    type=click.Path(dir_okay=False),
    help="output PDF",
)
def dotplot(dge_csv: str, pathways_csv: str, out_path: str):
    """
    Draw the paired up/down pathway dot plot for the allow-listed pathways.
    """
    notepad = create_notepad("dotplot")
    dge = read_table(dge_csv)
    pathways = read_table(pathways_csv)

    summary = summarize_pathways(pathways, dge)
    up_pathways, down_pathways = split_pathways(summary)
    limits = shared_scale_limits(up_pathways, down_pathways)
    logging.debug(f"Pathway summary:\n{summary.to_string(index=False)}")
    missing = summary.loc[summary["pMean"].isna(), "Pathway"].tolist()
    if missing:
        notepad.add_warning(
            f"{len(missing)} pathways have genes without padj and are drawn grey: "
            + ", ".join(missing)
        )

    fig = build_dot_figure(up_pathways, down_pathways, limits)
    out = save_dot_figure(fig, out_path)
    _report_issues(notepad, "dotplot")
    click.echo(
        f"Saved dot plot of {len(up_pathways)} up and {len(down_pathways)} down pathways to {out}"
    )


@main.command(name="run")
@click.option("--subtitle", default=None, help="volcano plot subtitle")
@click.pass_context
def run(ctx: click.Context, subtitle: typing.Optional[str]):
    """
    Run prepare, volcano and dotplot with the default paths.
    """
    for path in (DEFAULT_PATIENTS, DEFAULT_DGE_WORKBOOK):
        if not pathlib.Path(path).is_file():
            click.secho(f"Error: input file not found at {path}", fg="red", err=True)
            sys.exit(1)
    ctx.invoke(
        prepare,
        patients_path=DEFAULT_PATIENTS,
        dge_path=DEFAULT_DGE_WORKBOOK,
        sheet=DGE_SHEET,
        kegg_dir=DEFAULT_KEGG_DIR,
        organism=DEFAULT_ORGANISM,
        out_dir=DEFAULT_TABLE_DIR,
    )
    ctx.invoke(
        volcano,
        dge_csv=f"{DEFAULT_TABLE_DIR}/{DGE_RESULTS_FILE}",
        out_path=f"{DEFAULT_PLOT_DIR}/volcano.pdf",
        title=TITLE,
        subtitle=subtitle,
    )
    ctx.invoke(
        dotplot,
        dge_csv=f"{DEFAULT_TABLE_DIR}/{DGE_RESULTS_FILE}",
        pathways_csv=f"{DEFAULT_TABLE_DIR}/{DGE_PATHWAYS_FILE}",
        out_path=f"{DEFAULT_PLOT_DIR}/dot.pdf",
    )


def _configure_logging(verbose_logging: bool, log_file_path: typing.Optional[str]) -> None:
    handlers: list[logging.Handler] = []
    if log_file_path:
        handlers.append(logging.FileHandler(log_file_path, mode="a", encoding="utf-8"))
    if verbose_logging:
        handlers.append(logging.StreamHandler(sys.stderr))
    if handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose_logging else logging.INFO,
            format="%(asctime)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            handlers=handlers,
            force=True,
        )


def _fetch_kegg_tables(organism: str) -> KeggTables:
    # live KEGG lookup; a failure ends the run with a readable message
    try:
        return KeggClient(organism).fetch_tables()
    except KeggLookupError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)


def _report_issues(notepad: Notepad, stage: str) -> None:
    # if there were errors, show them
    if notepad.has_errors(include_subsections=True):
        click.echo(f"Errors found in {stage}:")
        for err in notepad.errors():
            click.echo(f"- {err}")
    # show any warnings but keep going
    if notepad.has_warnings(include_subsections=True):
        click.echo(f"Warnings found in {stage}:")
        for w in notepad.warnings():
            click.echo(f"- {w}")


if __name__ == "__main__":
    main()
