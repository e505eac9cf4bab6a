"""
file_parser.py
==============

Turn an uploaded **CSV / Excel** stock sheet into a ``pandas.DataFrame``.

* file type is decided from the MIME type and extension
* CSV encodings are guessed with **chardet**, then common fallbacks tried
* header cells are NFKC-normalised, stripped of BOMs and lower-cased, and
  known aliases folded into the canonical names used by the intake
  (``product_id``, ``product_name``, ``boxes``, ``pcs``, ``note``)
* every value is read as **str** (``dtype=str``, ``keep_default_na=False``)
* empty files and unsupported formats raise ``ValueError``

Accepts a FastAPI ``UploadFile``, a path, or raw bytes, so the API and the
tests call it the same way.
"""

from __future__ import annotations

import io
import mimetypes
import unicodedata
from pathlib import Path
from typing import Final, Iterable

import chardet
import pandas as pd
from fastapi import UploadFile

ENCODINGS: Final[list[str]] = [
    "utf-8",
    "utf-8-sig",
    "utf-16",
    "utf-16-le",
    "utf-16-be",
    "cp1252",
    "iso8859-1",
]

HEADER_ALIASES: Final[dict[str, str]] = {
    # --- product ---------------------------------------------------------
    "product": "product_id",
    "productid": "product_id",
    "product id": "product_id",
    "item_id": "product_id",
    "sku": "product_id",
    "productname": "product_name",
    "product name": "product_name",
    "name": "product_name",
    "item": "product_name",
    # --- quantities ------------------------------------------------------
    "box": "boxes",
    "boxqty": "boxes",
    "box_qty": "boxes",
    "box qty": "boxes",
    "cases": "boxes",
    "pieces": "pcs",
    "pcsqty": "pcs",
    "pcs_qty": "pcs",
    "pcs qty": "pcs",
    "loose": "pcs",
    # --- misc ------------------------------------------------------------
    "remarks": "note",
    "comment": "note",
}


# --------------------------------------------------------------------------- #
# public API                                                                  #
# --------------------------------------------------------------------------- #
def read_dataframe(file: UploadFile | str | Path | bytes | bytearray) -> pd.DataFrame:
    """
    Parameters
    ----------
    file :
        * **FastAPI UploadFile** - production uploads
        * **str / Path** - local scripts and tests
        * **bytes / bytearray** - in-memory content (parsed as CSV)

    Returns
    -------
    pandas.DataFrame
        First row is the header; all values are strings.

    Raises
    ------
    ValueError
        Empty file, unsupported format, or undecodable CSV.
    """
    raw, filename = _get_raw_and_name(file)

    if not raw:
        raise ValueError("File is empty")

    mime, _ = mimetypes.guess_type(filename)
    lower_name = filename.lower()

    # ----------------------------- CSV ------------------------------------
    if mime in ("text/csv", None) or lower_name.endswith(".csv"):
        # many NUL bytes in the first KB usually means UTF-16
        might_be_utf16 = b"\x00" in raw[:1024]
        enc_guess: str = (chardet.detect(raw[:4096]).get("encoding") or "").lower()

        enc_try_order = (
            ["utf-16", "utf-16-le", "utf-16-be"] if might_be_utf16 else []
        ) + [enc_guess] + ENCODINGS

        for enc in _unique(e for e in enc_try_order if e):
            try:
                df = _read_csv(raw, enc)
                break
            except (UnicodeError, LookupError):
                continue
        else:
            raise ValueError("Cannot decode CSV - unknown encoding")

    # ----------------------------- Excel ----------------------------------
    elif lower_name.endswith((".xlsx", ".xls")):
        df = pd.read_excel(io.BytesIO(raw), dtype=str, keep_default_na=False)

    else:
        raise ValueError("Unsupported file type (only .csv/.xlsx/.xls accepted)")

    df.columns = [_normalize_header(c) for c in df.columns]
    df = df.rename(columns={c: HEADER_ALIASES[c] for c in df.columns if c in HEADER_ALIASES})

    if df.empty:
        raise ValueError("File has no data rows")

    return df


__all__ = ["read_dataframe", "HEADER_ALIASES"]


# --------------------------------------------------------------------------- #
# helpers (private)                                                           #
# --------------------------------------------------------------------------- #
def _read_csv(raw: bytes, enc: str) -> pd.DataFrame:
    # the sniffer is unreliable on UTF-16, force comma there
    sep_param = None if enc.startswith("utf-8") else ","
    df = pd.read_csv(
        io.BytesIO(raw),
        encoding=enc,
        dtype=str,
        keep_default_na=False,
        sep=sep_param,
        engine="python",
    )
    # a single column usually means the delimiter was not detected
    if df.shape[1] == 1:
        for sep in ("\t", ";", "|"):
            try:
                alt = pd.read_csv(
                    io.BytesIO(raw), encoding=enc, dtype=str, keep_default_na=False, sep=sep
                )
            except pd.errors.ParserError:
                continue
            if alt.shape[1] > 1:
                return alt
    return df


def _normalize_header(name: object) -> str:
    text = unicodedata.normalize("NFKC", str(name))
    text = text.replace("\ufeff", "").strip().lower()
    return " ".join(text.split())


def _get_raw_and_name(
    file: UploadFile | str | Path | bytes | bytearray,
) -> tuple[bytes, str]:
    """Convert the accepted inputs into raw bytes + filename."""
    # ----------------------- in-memory bytes ------------------------------
    if isinstance(file, (bytes, bytearray)):
        return bytes(file), ""

    # ----------------------- filesystem path ------------------------------
    if isinstance(file, (str, Path)):
        p = Path(file)
        return p.read_bytes(), p.name

    # ------------------- FastAPI / Starlette UploadFile -------------------
    if isinstance(file, UploadFile):
        return file.file.read(), file.filename or ""

    # ---------------------------- duck typing -----------------------------
    if hasattr(file, "file") and hasattr(file, "filename"):
        return file.file.read(), getattr(file, "filename", "") or ""

    raise TypeError(
        "file must be UploadFile | str | Path | bytes | bytearray; "
        f"got {type(file)}"
    )


def _unique(seq: Iterable[str]) -> list[str]:
    """De-duplicate while keeping order."""
    seen: set[str] = set()
    out: list[str] = []
    for item in seq:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out
