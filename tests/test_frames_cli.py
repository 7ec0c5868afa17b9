import pandas as pd
import pytest
from click.testing import CliRunner

import ethflow.cli as cli_mod
from ethflow.analytics.divergence import annotate
from ethflow.analytics.netflow import compute_volume_ratios
from ethflow.core.clock import HOUR_MS
from ethflow.core.models import CombinedPoint, CurrentPrice, DataStatus, HourlyVolumeBucket
from ethflow.dashboard import DashboardSnapshot
from ethflow.data.frames import combined_frame, export_frame, volume_frame
from conftest import T0

BUCKETS = [HourlyVolumeBucket(T0, 300.0, 100.0, 3), HourlyVolumeBucket(T0 + HOUR_MS, 5.0, 0.0, 1)]


def _points():
    return annotate([CombinedPoint(T0, 100.0, 3000.0), CombinedPoint(T0 + HOUR_MS, 0.0, 3005.0)])


def _snapshot(points=None, volume_status=DataStatus.LIVE):
    return DashboardSnapshot(
        whale_mode=False, current_price=CurrentPrice(3005.0, 3100.0, 2900.0, 0.4),
        prices=[], buckets=BUCKETS, ratios=compute_volume_ratios(BUCKETS),
        combined=_points() if points is None else points,
        price_status=DataStatus.LIVE, volume_status=volume_status, generated_at_ms=T0,
    )


def test_combined_frame_indexed_by_utc_time():
    df = combined_frame(_points())
    assert list(df.index) == [pd.Timestamp(T0, unit='ms', tz='UTC'), pd.Timestamp(T0 + HOUR_MS, unit='ms', tz='UTC')]
    assert df['divergence'].tolist() == [False, True]
    assert df['divergence_kind'].iloc[1] == "outflow_price_up"


def test_empty_frames():
    assert combined_frame([]).empty
    assert volume_frame([]).empty


def test_volume_frame_with_ratios():
    df = volume_frame(BUCKETS, compute_volume_ratios(BUCKETS))
    assert df['total_volume_usd'].tolist() == [400.0, 5.0]
    assert df['ratio'].iloc[0] == pytest.approx(3.0)
    assert df['exceeded_cap'].tolist() == [False, True]


def test_export_csv_and_rejects_unknown_suffix(tmp_path):
    out = export_frame(combined_frame(_points()), str(tmp_path / "out" / "combined.csv"))
    assert out.exists()
    assert len(pd.read_csv(out)) == 2
    with pytest.raises(ValueError):
        export_frame(combined_frame(_points()), str(tmp_path / "combined.xlsx"))


class _FakeService:
    def __init__(self, snap):
        self.snap = snap
        self.closed = False

    async def refresh(self, whale_mode=False, force_refresh=False):
        assert force_refresh
        return self.snap

    async def aclose(self):
        self.closed = True


def _config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(f"system:\n  log_file: {tmp_path / 'logs' / 'ethflow.log'}\n")
    return str(path)


def test_snapshot_command_prints_and_exports(tmp_path, monkeypatch):
    svc = _FakeService(_snapshot())
    monkeypatch.setattr(cli_mod, "build_dashboard", lambda cfg: svc)
    out = tmp_path / "combined.csv"
    vol_out = tmp_path / "volume.csv"
    result = CliRunner().invoke(cli_mod.cli, ["snapshot", "--config", _config(tmp_path),
                                              "--out", str(out), "--volume-out", str(vol_out)])
    assert result.exit_code == 0, result.output
    assert "2 aligned hours, 1 divergences" in result.output
    assert "High selling volume but price rising" in result.output
    assert out.exists() and vol_out.exists()
    assert svc.closed


def test_snapshot_command_empty_state_and_fallback_notice(tmp_path, monkeypatch):
    svc = _FakeService(_snapshot(points=[], volume_status=DataStatus.RATE_LIMITED))
    monkeypatch.setattr(cli_mod, "build_dashboard", lambda cfg: svc)
    result = CliRunner().invoke(cli_mod.cli, ["snapshot", "--config", _config(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "synthetic data" in result.output
    assert "No overlapping net-flow and price data" in result.output
