"""Helper utilities for turning trade batches into DataFrames and CSV rows.

This module provides:
- trades_to_frame: Trade batch -> DataFrame with a UTC ``time`` column.
- save_df_to_csv: CSV writer with optional directory creation and append mode.
- append_trades_to_csv: Append one emitted batch to a CSV sink.
"""

from __future__ import annotations

import os
from typing import Iterable, Optional

import pandas as pd

from okex_feed.core.models import Trade

TRADE_COLUMNS = ["exchange", "ts", "price", "size", "side"]


def trades_to_frame(trades: Iterable[Trade]) -> pd.DataFrame:
    """Build a DataFrame (one row per trade, arrival order kept)."""
    df = pd.DataFrame([t.to_row() for t in trades], columns=TRADE_COLUMNS)
    df["ts"] = df["ts"].astype("int64")
    df["price"] = df["price"].astype(float)
    df["size"] = df["size"].astype(float)
    df["side"] = df["side"].astype("int64")
    df["time"] = pd.to_datetime(df["ts"], unit="ms", utc=True)
    return df


def save_df_to_csv(
    df: pd.DataFrame,
    file_path: str,
    *,
    index: bool = False,
    create_dirs: bool = True,
    date_format: Optional[str] = None,
    float_format: Optional[str] = None,
    mode: str = "w",
    **kwargs,
) -> None:
    """Save a DataFrame to CSV.

    Parameters
    - df: DataFrame to write
    - file_path: Destination CSV path
    - index: Whether to write the index
    - create_dirs: Create parent directories if missing
    - date_format: strftime format for datetimes
    - float_format: Format string for floats (e.g., '%.8f')
    - mode: File write mode ('w' to overwrite, 'a' to append)
    - kwargs: Passed through to pandas.DataFrame.to_csv

    Raises
    - ValueError: If df is not a pandas DataFrame
    - OSError: On I/O errors when writing the file
    """
    if not isinstance(df, pd.DataFrame):
        raise ValueError("df must be a pandas DataFrame")

    parent = os.path.dirname(os.path.abspath(file_path))
    if create_dirs and parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    df.to_csv(
        file_path,
        index=index,
        date_format=date_format,
        float_format=float_format,
        mode=mode,
        **kwargs,
    )


def append_trades_to_csv(trades: Iterable[Trade], file_path: str) -> int:
    """Append a batch to *file_path*; the header is written only once."""
    df = trades_to_frame(trades)
    if df.empty:
        return 0
    write_header = not os.path.exists(file_path)
    save_df_to_csv(df, file_path, mode="a", header=write_header)
    return len(df)
