import json

from greentrain.scripts import service_dates

CATALOG = [
    {
        "id": "K7701",
        "name": "K7701",
        "timezone": "Asia/Shanghai",
        "status": "active",
        "carriages": 2,
        "rows_per_carriage": 3,
        "service_days": [1, 3, 5],
        "sales_close_before_departure_minutes": 10,
        "stations": [
            {"name": "起始站", "departure_time": "14:35+00"},
            {"name": "终点站", "arrival_time": "15:45+00"},
        ],
    }
]


def _catalog(tmp_path):
    path = tmp_path / "trains.json"
    path.write_text(json.dumps(CATALOG, ensure_ascii=False), encoding="utf-8")
    return str(path)


def test_lists_dates_with_sale_status(tmp_path, capsys):
    rc = service_dates.main(
        ["K7701", "--from", "2025-08-11", "--to", "2025-08-17", "--catalog", _catalog(tmp_path)]
    )
    assert rc == 0
    out = json.loads(capsys.readouterr().out)
    assert out["train_id"] == "K7701"
    assert [d["service_date"] for d in out["dates"]] == ["2025-08-11", "2025-08-13", "2025-08-15"]
    first = out["dates"][0]
    # These dates are in the past for any current clock
    assert first["sale_status"] == "closed"
    assert first["sales_open"] is None
    assert first["sales_close"] == "2025-08-11T14:25:00+08:00"


def test_unknown_train(tmp_path, capsys):
    rc = service_dates.main(
        ["NOPE", "--from", "2025-08-11", "--to", "2025-08-17", "--catalog", _catalog(tmp_path)]
    )
    assert rc == 1
    assert "Unknown train" in capsys.readouterr().err


def test_missing_catalog(tmp_path, capsys):
    rc = service_dates.main(
        ["K7701", "--from", "2025-08-11", "--to", "2025-08-17", "--catalog", str(tmp_path / "x.json")]
    )
    assert rc == 2


def test_bad_station_index(tmp_path, capsys):
    rc = service_dates.main(
        [
            "K7701",
            "--from",
            "2025-08-11",
            "--to",
            "2025-08-17",
            "--catalog",
            _catalog(tmp_path),
            "--station",
            "5",
        ]
    )
    assert rc == 1
    assert "Invalid station index" in capsys.readouterr().err
