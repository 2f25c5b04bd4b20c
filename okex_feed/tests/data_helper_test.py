import pandas as pd
import pytest

from okex_feed.core.models import Trade
from okex_feed.helpers.data_helper import (
    TRADE_COLUMNS,
    append_trades_to_csv,
    save_df_to_csv,
    trades_to_frame,
)

TRADES = [
    Trade(exchange="okex", ts=1577836800000, price=100.0, size=2.0, side=1),
    Trade(exchange="okex", ts=1577836800250, price=101.5, size=0.25, side=0),
]


def test_trades_to_frame():
    df = trades_to_frame(TRADES)

    assert list(df.columns) == TRADE_COLUMNS + ["time"]
    assert df["price"].tolist() == [100.0, 101.5]
    assert df["side"].tolist() == [1, 0]
    assert df["time"].iloc[0] == pd.Timestamp("2020-01-01", tz="UTC")


def test_trades_to_frame_empty():
    df = trades_to_frame([])
    assert df.empty
    assert list(df.columns) == TRADE_COLUMNS + ["time"]


def test_save_df_to_csv_rejects_non_frame(tmp_path):
    with pytest.raises(ValueError):
        save_df_to_csv([1, 2, 3], str(tmp_path / "x.csv"))


def test_append_trades_to_csv(tmp_path):
    out = tmp_path / "subdir" / "trades.csv"

    assert append_trades_to_csv(TRADES[:1], str(out)) == 1
    assert append_trades_to_csv(TRADES[1:], str(out)) == 1
    assert append_trades_to_csv([], str(out)) == 0

    df = pd.read_csv(out)
    assert len(df) == 2
    assert df["ts"].tolist() == [t.ts for t in TRADES]
    assert df["size"].tolist() == [2.0, 0.25]
