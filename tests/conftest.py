import matplotlib

matplotlib.use("Agg")

import pandas as pd
import pytest

from dgeplots.kegg import KeggTables, parse_gene_list, parse_link_table, parse_pathway_list

# Raw KEGG REST text in the current four-column `list/hsa` layout
KEGG_GENE_LIST = "\n".join(
    [
        "hsa:3569\tCDS\t7:join(22727147..22727200)\tIL6, BSF-2, IFNB2; interleukin 6",
        "hsa:3627\tCDS\t4:complement(76021118..76023497)\tCXCL10, C7, IP-10; C-X-C motif chemokine ligand 10",
        "hsa:6280\tCDS\t1:complement(153418528..153420195)\tS100A9, 60B8AG; S100 calcium binding protein A9",
        "hsa:6171\tCDS\t1:complement(...)\tRPL41, HG12; ribosomal protein L41",
        "hsa:4512\tCDS\tMT:5904..7445\tCOX1, MTCO1; cytochrome c oxidase subunit I",
        "hsa:100287102\tncRNA\t1:11869..14409\tuncharacterized LOC100287102",
    ]
)

KEGG_LINKS = "\n".join(
    [
        "hsa:3569\tpath:hsa04060",
        "hsa:3627\tpath:hsa04060",
        "hsa:3569\tpath:hsa04630",
        "hsa:6171\tpath:hsa03010",
        "hsa:4512\tpath:hsa00190",
        "hsa:6280\tpath:hsa04657",
    ]
)

KEGG_PATHWAYS = "\n".join(
    [
        "path:hsa04060\tCytokine-cytokine receptor interaction - Homo sapiens (human)",
        "path:hsa04630\tJAK-STAT signaling pathway - Homo sapiens (human)",
        "path:hsa03010\tRibosome - Homo sapiens (human)",
        "path:hsa00190\tOxidative phosphorylation - Homo sapiens (human)",
        "path:hsa04657\tIL-17 signaling pathway - Homo sapiens (human)",
        "path:hsa00260\tGlycine, serine and threonine metabolism - Homo sapiens (human)",
    ]
)


@pytest.fixture
def dge_table() -> pd.DataFrame:
    """
    Small DGE table: three up genes, two down genes, one with zero fold change
    and one gene (FAKE1) that KEGG does not know.
    """
    return pd.DataFrame(
        {
            "Gene": ["IL6", "CXCL10", "S100A9", "RPL41", "COX1", "FLAT1", "FAKE1"],
            "baseMean": [120.5, 80.0, 300.2, 5000.0, 900.1, 40.0, 10.0],
            "log2FoldChange": [3.1, 2.3, 1.2, -1.4, -0.5, 0.0, 0.8],
            "pvalue": [1e-8, 1e-6, 0.002, 1e-5, 0.03, 0.9, 0.2],
            "padj": [1e-6, 1e-4, 0.01, 0.001, 0.05, 0.95, 0.3],
        }
    )


@pytest.fixture
def kegg_tables() -> KeggTables:
    return KeggTables(
        genes=parse_gene_list(KEGG_GENE_LIST),
        links=parse_link_table(KEGG_LINKS),
        names=parse_pathway_list(KEGG_PATHWAYS),
    )


class FakeKEGG:
    """Stands in for bioservices.KEGG, answering from the canned text above."""

    def __init__(self):
        self.calls = []

    def list(self, query, organism=None):
        self.calls.append(("list", query))
        if query.startswith("pathway"):
            return KEGG_PATHWAYS
        return KEGG_GENE_LIST

    def link(self, target, source):
        self.calls.append(("link", target, source))
        return KEGG_LINKS


@pytest.fixture
def fake_kegg() -> FakeKEGG:
    return FakeKEGG()


@pytest.fixture
def patient_workbook(tmp_path) -> str:
    """
    Clinical workbook laid out like the published supplement: a title header,
    a junk row, the real column names, then patient rows with extra columns.
    """
    rows = [
        ["Supplementary Table 3", None, None, None, None],
        ["Patient", "Age (years)", "Sex", "Disease severity", "Notes"],
        ["C1", 54, "M", "Mild COVID-19", "x"],
        ["C2", 71, "F", "Severe COVID-19", "y"],
        ["C3", 63, "M", "Moderate COVID-19", ""],
        ["C4", 45, "F", "Healthy control", ""],
    ]
    df = pd.DataFrame(rows, columns=["Table S3", "Unnamed: 1", "Unnamed: 2", "Unnamed: 3", "Unnamed: 4"])
    path = tmp_path / "mmc3.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as w:
        df.to_excel(w, sheet_name="Sheet1", index=False)
    return str(path)


@pytest.fixture
def dge_workbook(tmp_path, dge_table) -> str:
    """DGE workbook with the results on the Control_vs_COVID sheet plus an empty-Gene row."""
    blank = pd.DataFrame(
        {"Gene": [None], "baseMean": [None], "log2FoldChange": [None], "pvalue": [None], "padj": [None]}
    )
    df = pd.concat([dge_table.iloc[:3], blank, dge_table.iloc[3:]], ignore_index=True)
    path = tmp_path / "mmc2.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as w:
        pd.DataFrame({"note": ["other contrast"]}).to_excel(w, sheet_name="README", index=False)
        df.to_excel(w, sheet_name="Control_vs_COVID", index=False)
    return str(path)
