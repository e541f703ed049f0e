import json

import pandas as pd

from aggregator.errors import ConfigurationError
from aggregator.models import ContactInfo, UnifiedProperty
from cli import search as search_cli


def _props():
    return [
        UnifiedProperty(
            id="a",
            source="epctex-slash-realtor-scraper",
            title="Cheap Studio",
            price="$900",
            price_numeric=900,
            images=["https://x/a.jpg", "https://x/b.jpg"],
            contact_info=ContactInfo(phone="512-555-0100"),
            scraped_at="2024-06-01T12:00:00+00:00",
        ),
        UnifiedProperty(
            id="b",
            source="epctex-slash-realtor-scraper",
            title="Big House",
            price="$3,000",
            price_numeric=3000,
            bedrooms=3,
            scraped_at="2024-06-01T12:00:00+00:00",
        ),
    ]


def test_cli_saves_json_and_csv(monkeypatch, tmp_path, capsys):
    calls = []

    def fake_search_sync(tool_name, arguments):
        calls.append((tool_name, arguments))
        return _props()

    monkeypatch.setattr(search_cli, "search_sync", fake_search_sync)
    json_out = tmp_path / "out.json"
    csv_out = tmp_path / "out.csv"

    code = search_cli.main(
        [
            "--tool", "epctex_realtor_scraper",
            "--input", '{"search": "Austin, TX"}',
            "--json-out", str(json_out),
            "--csv-out", str(csv_out),
            "--bedrooms", "3",
        ]
    )

    assert code == 0
    assert calls == [("epctex_realtor_scraper", {"search": "Austin, TX"})]
    saved = json.loads(json_out.read_text(encoding="utf-8"))
    assert [item["id"] for item in saved] == ["b", "a"]

    df = pd.read_csv(csv_out)
    assert list(df["id"]) == ["b", "a"]
    assert "contactInfo.phone" in df.columns
    assert df.loc[df["id"] == "a", "images"].iloc[0] == "https://x/a.jpg | https://x/b.jpg"
    assert "Found 2 properties" in capsys.readouterr().out


def test_cli_rejects_bad_input(tmp_path):
    assert search_cli.main(["--tool", "x", "--input", "[1, 2]", "--json-out", str(tmp_path / "o.json")]) == 2
    assert search_cli.main(["--tool", "x", "--input", "{not json", "--json-out", str(tmp_path / "o.json")]) == 2
    assert search_cli.main([]) == 2


def test_cli_reports_missing_token(monkeypatch, tmp_path, capsys):
    def fake_search_sync(tool_name, arguments):
        raise ConfigurationError("APIFY_TOKEN (or APIFY_API_TOKEN) is required to run property searches.")

    monkeypatch.setattr(search_cli, "search_sync", fake_search_sync)
    assert search_cli.main(["--tool", "x", "--json-out", str(tmp_path / "o.json")]) == 1
    assert "APIFY_TOKEN" in capsys.readouterr().out


def test_cli_lists_tools(capsys):
    assert search_cli.main(["--list-tools"]) == 0
    assert "jupri-slash-zillow-scraper" in capsys.readouterr().out
