"""
Spreadsheet and delimited-text I/O:
- read_patient_sheet: header repair, first four columns, renames
- load_dge_table / drop_missing_genes: rows without a Gene symbol are dropped
- write_table / read_table: flat CSV with no quoting that loads back intact
"""

import pandas as pd
import pytest

from dgeplots.loader import (
    PATIENT_COLUMNS,
    drop_missing_genes,
    load_dge_table,
    read_patient_sheet,
    read_table,
    write_table,
)


def test_read_patient_sheet_repairs_header(patient_workbook):
    df = read_patient_sheet(patient_workbook)
    assert list(df.columns) == PATIENT_COLUMNS
    assert df["Patient"].tolist() == ["C1", "C2", "C3", "C4"]
    # raw severity text is untouched at this stage
    assert df["Severity"].iloc[0] == "Mild COVID-19"


def test_load_dge_table_drops_missing_genes(dge_workbook, dge_table):
    df = load_dge_table(dge_workbook)
    assert len(df) == len(dge_table)
    assert df["Gene"].notna().all()
    # other columns pass through
    assert "baseMean" in df.columns


@pytest.mark.parametrize("missing", [None, float("nan"), "", "   "])
def test_drop_missing_genes_counts(missing):
    df = pd.DataFrame(
        {
            "Gene": ["A", missing, "B", missing, "C"],
            "log2FoldChange": [1.0, 2.0, -1.0, 0.5, 0.1],
        }
    )
    out = drop_missing_genes(df)
    assert len(out) == 3
    assert out["Gene"].tolist() == ["A", "B", "C"]


def test_write_table_has_no_quotes_and_empty_missing(tmp_path):
    df = pd.DataFrame(
        {
            "Gene": ["IL6", "RPL41"],
            "Pathway": ["Glycine, serine and threonine metabolism", "Ribosome"],
            "padj": [0.01, None],
        }
    )
    path = write_table(df, tmp_path / "nested" / "out.csv")
    text = path.read_text()
    assert '"' not in text
    lines = text.splitlines()
    assert lines[0] == "Gene,Pathway,padj"
    assert lines[2] == "RPL41,Ribosome,"


def test_table_round_trip(tmp_path, dge_table):
    pathways = pd.DataFrame(
        {
            "hsaID": ["hsa00260", "hsa04060"],
            "geneID": ["1", "3569"],
            "Gene": ["X", "IL6"],
            "Pathway": ["Glycine, serine and threonine metabolism", "Cytokine-cytokine receptor interaction"],
        }
    )
    write_table(dge_table, tmp_path / "dge.csv")
    write_table(pathways, tmp_path / "pathways.csv")

    dge_back = read_table(tmp_path / "dge.csv")
    pathways_back = read_table(tmp_path / "pathways.csv")

    assert dge_back["Gene"].tolist() == dge_table["Gene"].tolist()
    for column in ["log2FoldChange", "pvalue", "padj"]:
        assert dge_back[column].tolist() == pytest.approx(dge_table[column].tolist())
    assert pathways_back["Pathway"].tolist() == pathways["Pathway"].tolist()
