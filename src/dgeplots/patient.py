"""
Patient domain model.

Defines the PatientRecord class and the ordered rules that collapse free-text
disease severity descriptions into mild / moderate / severe.
"""

import typing
from dataclasses import dataclass

import pandas as pd
from stairval.notepad import Notepad

# Evaluated in order; every rule whose substring occurs in the raw text matches,
# and the last match wins ("Moderate" overrides "Severe" overrides "Mild").
SEVERITY_RULES: list[tuple[str, str]] = [
    ("Mild", "mild"),
    ("Severe", "severe"),
    ("Moderate", "moderate"),
]

SEVERITY_LABELS = {label for _, label in SEVERITY_RULES}


@dataclass
class PatientRecord:
    """
    Represents one row of the clinical metadata sheet.

    Attributes:
        Patient: Patient identifier as given in the workbook.
        Age: Age at sampling.
        Sex: Sex as recorded in the workbook.
        Severity: Normalized severity (mild, moderate, severe) or the raw text
            when no rule matched.
    """

    Patient: str
    Age: typing.Any
    Sex: str
    Severity: typing.Any

    def __post_init__(self):
        if self.Patient is None or pd.isna(self.Patient) or not str(self.Patient).strip():
            raise ValueError(f"Invalid patient ID: {self.Patient!r}")
        self.Patient = str(self.Patient).strip()

    @property
    def has_normalized_severity(self) -> bool:
        return self.Severity in SEVERITY_LABELS


def normalize_severity(value: typing.Any) -> typing.Any:
    """
    Return the label of the last rule whose substring occurs in `value`.
    Text matching no rule, and non-text values, are returned unchanged.
    """
    if not isinstance(value, str):
        return value
    result = value
    for needle, label in SEVERITY_RULES:
        if needle in value:
            result = label
    return result


def normalize_patient_metadata(df: pd.DataFrame, notepad: Notepad) -> pd.DataFrame:
    """
    Return a copy of the patient table with Severity normalized.

    Unrecognized labels pass through unchanged; each distinct one is reported
    as a warning on `notepad`.
    """
    normalized = df.copy()
    normalized["Severity"] = df["Severity"].map(normalize_severity)

    leftovers = normalized.loc[
        normalized["Severity"].notna() & ~normalized["Severity"].isin(SEVERITY_LABELS),
        "Severity",
    ]
    for raw in leftovers.unique():
        notepad.add_warning(f"Unrecognized severity label {raw!r} kept as-is")
    return normalized


def to_records(df: pd.DataFrame, notepad: Notepad) -> list[PatientRecord]:
    # one PatientRecord per valid row; invalid rows become notepad errors
    records: list[PatientRecord] = []
    for index, row in df.iterrows():
        try:
            records.append(
                PatientRecord(
                    Patient=row["Patient"],
                    Age=row["Age"],
                    Sex=row["Sex"],
                    Severity=row["Severity"],
                )
            )
        except ValueError as exception:
            notepad.add_error(f"Patient sheet, row {index}: {exception}")
    return records
