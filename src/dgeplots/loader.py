import csv
import pathlib

import pandas as pd

# Clinical workbook columns after the header row has been repaired
PATIENT_COLUMNS = ["Patient", "Age", "Sex", "Severity"]

DGE_SHEET = "Control_vs_COVID"

# Escape character used in place of quoting when writing delimited text
_ESCAPE_CHAR = "\\"


def read_patient_sheet(workbook_path: str, sheet_name: str | int = 0) -> pd.DataFrame:
    """
    Read the clinical metadata sheet:
      - the sheet's own header row is a title, not column names
      - first data row = junk, second data row = real column names
      - drop both, keep only the first four columns
      - rename to Patient / Age / Sex / Severity
    """
    raw = pd.read_excel(workbook_path, sheet_name=sheet_name, header=0, engine="openpyxl")

    df = raw.iloc[2:, : len(PATIENT_COLUMNS)].copy()
    df.columns = PATIENT_COLUMNS
    return df.reset_index(drop=True)


def load_dge_table(workbook_path: str, sheet_name: str = DGE_SHEET) -> pd.DataFrame:
    """
    Read gene-level DGE statistics and drop rows without a Gene symbol.
    Remaining columns pass through unchanged; values are not validated.
    """
    df = pd.read_excel(workbook_path, sheet_name=sheet_name, header=0, engine="openpyxl")
    return drop_missing_genes(df)


def drop_missing_genes(df: pd.DataFrame) -> pd.DataFrame:
    # blank or whitespace-only symbols count as missing
    genes = df["Gene"].map(lambda g: g.strip() if isinstance(g, str) else g)
    keep = genes.notna() & (genes != "")
    return df.loc[keep].reset_index(drop=True)


def write_table(df: pd.DataFrame, path: str | pathlib.Path) -> pathlib.Path:
    """
    Write a flat comma-delimited file: header row, no index, missing values as
    empty fields, strings never quoted (embedded commas are escaped instead).
    """
    out = pathlib.Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(
        out,
        index=False,
        na_rep="",
        quoting=csv.QUOTE_NONE,
        escapechar=_ESCAPE_CHAR,
    )
    return out


def read_table(path: str | pathlib.Path, **kwargs) -> pd.DataFrame:
    """Load a file written by `write_table`; extra kwargs go to `pd.read_csv`."""
    return pd.read_csv(path, escapechar=_ESCAPE_CHAR, **kwargs)
