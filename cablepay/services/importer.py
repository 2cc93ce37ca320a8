"""Spreadsheet (CSV/XLSX) reader for the bulk customer import."""
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd

REQUIRED_COLUMNS = ("stb_number", "name", "mobile", "village")
ALL_COLUMNS = REQUIRED_COLUMNS + ("street", "has_amplifier", "alternate_mobile", "full_address", "status")


def _norm_header(h: Any) -> str:
    return "_".join(str(h).strip().lower().split())


def read_rows(path) -> List[Dict[str, Any]]:
    """
    Load a customer sheet into plain dict rows ready for ``bulk_upsert``.
    Headers are matched case-insensitively with spaces as underscores;
    unknown columns are dropped. Every cell is read as text so STB numbers
    and mobiles keep their leading zeros.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    elif suffix in (".xlsx", ".xls"):
        df = pd.read_excel(path, dtype=str)
    else:
        raise ValueError(f"Unsupported file type: {suffix or '(none)'}; use .csv, .xlsx or .xls")

    df.columns = [_norm_header(c) for c in df.columns]
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {', '.join(missing)}")

    df = df[[c for c in ALL_COLUMNS if c in df.columns]]
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")
