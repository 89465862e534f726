from typing import Tuple
import io
import logging
import re

import pandas as pd

from backend import MalformedFormula
from hsf import TrialDesign

logger = logging.getLogger(__name__)

HEADER_MODES = ("Auto-detect", "Force header", "Force no header")


def _is_numeric_token(tok) -> bool:
    if tok is None or (not isinstance(tok, str) and pd.isna(tok)):
        return False
    try:
        float(str(tok))
        return True
    except ValueError:
        return False


def _detect_header(rows, header_override: str) -> bool:
    """
    Decide whether the first row holds column names.

    Auto-detect treats the first row as a header when it has fewer numeric
    tokens than the second row. Trial tables mix labels and numbers in every
    row, so a fully non-numeric first row is not required.
    """
    if header_override == "Force header":
        return True
    if header_override == "Force no header":
        return False
    if len(rows) < 2:
        return False
    first = sum(1 for tok in rows[0] if _is_numeric_token(tok))
    second = sum(1 for tok in rows[1] if _is_numeric_token(tok))
    return first < second


def _frame_from_rows(rows, header_override: str) -> Tuple[pd.DataFrame, bool]:
    if not rows:
        return pd.DataFrame(), False
    width = max(len(r) for r in rows)
    rows = [list(r) + [None] * (width - len(r)) for r in rows]

    header_used = _detect_header(rows, header_override)
    if header_used:
        columns = [str(c) if c not in (None, "") else f"col{i}" for i, c in enumerate(rows[0], start=1)]
        df = pd.DataFrame(rows[1:], columns=columns)
    else:
        df = pd.DataFrame(rows, columns=[f"col{i}" for i in range(1, width + 1)])

    for col in df.columns:
        if df[col].dtype == object:
            df[col] = df[col].replace({"": pd.NA, " ": pd.NA})
    return df, header_used


def parse_table_from_text(raw_text: str, header_override: str = "Auto-detect") -> Tuple[pd.DataFrame, bool]:
    """
    Parse a pasted text table into a DataFrame.
    Tabs win over commas, commas over whitespace. Returns (df, header_used).
    """
    lines = [ln.strip() for ln in raw_text.splitlines() if ln.strip() != ""]
    if not lines:
        return pd.DataFrame(), False

    if any("\t" in ln for ln in lines):
        delim = r"\t+"
    elif any("," in ln for ln in lines):
        delim = r"\s*,\s*"
    else:
        delim = r"\s+"
    rows = [[tok.strip() for tok in re.split(delim, ln)] for ln in lines]
    return _frame_from_rows(rows, header_override)


def read_table_from_bytes(
    content: bytes,
    filename: str = "uploaded_file",
    header_override: str = "Auto-detect",
) -> Tuple[pd.DataFrame, bool]:
    """
    Read an uploaded file (CSV/TSV/XLS/XLSX) into a DataFrame.
    - Excel: pandas.read_excel with an explicit engine (xlrd / openpyxl)
    - CSV/other: pandas.read_csv with separator sniffing
    - Fallback: decode and hand to parse_table_from_text
    Returns (df, header_used).
    """
    fname = (filename or "").lower()
    ext = fname.rsplit(".", 1)[-1] if "." in fname else ""

    if ext in ("xls", "xlsx"):
        engine = "xlrd" if ext == "xls" else "openpyxl"
        try:
            __import__(engine)
        except ImportError as e:
            raise ValueError(
                f"Reading .{ext} files needs the optional dependency '{engine}' "
                f"(pip install {engine}), or save the file as .csv."
            ) from e
        try:
            raw = pd.read_excel(io.BytesIO(content), header=None, dtype=object, engine=engine)
        except Exception as e:
            raise ValueError(f"Failed to read .{ext} file '{filename}': {e}") from e
        rows = raw.where(raw.notna(), None).values.tolist()
        return _frame_from_rows(rows, header_override)

    try:
        raw = pd.read_csv(io.BytesIO(content), header=None, dtype=str, sep=None, engine="python", keep_default_na=False)
        rows = raw.values.tolist()
        return _frame_from_rows(rows, header_override)
    except Exception as e:
        logger.debug("read_csv failed on %s (%s); falling back to text parsing", filename, e)
        text = content.decode("utf-8", errors="replace")
        return parse_table_from_text(text, header_override=header_override)


def guess_design(df: pd.DataFrame) -> TrialDesign:
    """
    Guess column roles for a freshly parsed table.

    The first mostly-numeric column is the response; of the remaining
    columns, the one with the fewest distinct values is the condition and
    the next one the participant.
    """
    if df.shape[1] < 3:
        raise MalformedFormula("A trial table needs at least three columns (response, condition, participant).")
    numeric_share = {c: pd.to_numeric(df[c], errors="coerce").notna().mean() for c in df.columns}
    response = max(df.columns, key=lambda c: numeric_share[c])
    others = sorted((c for c in df.columns if c != response), key=lambda c: df[c].nunique(dropna=True))
    return TrialDesign(response=str(response), condition=str(others[0]), participant=str(others[1]))


def trial_table_from_frame(df: pd.DataFrame, design: TrialDesign) -> pd.DataFrame:
    """
    Coerce a parsed table into a clean long-format trial table.

    The response becomes float (unparseable cells turn into NaN and the row
    is dropped); condition and participant become categoricals of strings,
    keeping first-appearance order of the condition levels.
    """
    cols = [design.response, design.condition, design.participant]
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise MalformedFormula(f"Columns not found in table: {missing}.")
    if len(set(cols)) != 3:
        raise MalformedFormula(f"response, condition and participant must be three distinct columns, got {cols}.")

    out = pd.DataFrame({
        design.response: pd.to_numeric(df[design.response], errors="coerce"),
        design.condition: df[design.condition],
        design.participant: df[design.participant],
    })
    n_before = len(out)
    out = out.dropna().reset_index(drop=True)
    if len(out) < n_before:
        logger.warning("Dropped %d row(s) with missing or non-numeric values.", n_before - len(out))

    cond = out[design.condition].astype(str)
    out[design.condition] = pd.Categorical(cond, categories=list(pd.unique(cond)))
    out[design.participant] = out[design.participant].astype(str).astype("category")
    return out
