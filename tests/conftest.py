import pytest

from telemetry import metrics


@pytest.fixture(autouse=True)
def isolated_metrics(monkeypatch, tmp_path):
    """Keep metric rows out of the repo and away from Supabase."""
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
    monkeypatch.setattr(metrics, "_supabase_client", None)
    monkeypatch.setattr(metrics, "METRICS_DIR", tmp_path / "metrics")
    monkeypatch.setattr(metrics, "CSV_PATH", tmp_path / "metrics" / "pipeline_log.csv")
    yield tmp_path / "metrics" / "pipeline_log.csv"
