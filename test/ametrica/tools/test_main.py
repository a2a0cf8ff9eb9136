import json

import pytest

from ametrica import beacon
from ametrica import event
from ametrica import eventstore
from ametrica import storage
from ametrica import version
from ametrica.tools import main


def tevent(event_id: str, event_type: str = "pv") -> event.Event:
    return event.Event.make(
        params=beacon.BeaconParams(eid=event_id, e=event_type),
        info=beacon.RequestInfo(url=""),
        decoded=None,
        custom_dimensions=None,
    )


@pytest.fixture
def store_file(tmp_path):
    p = tmp_path / "ametrica.json"
    store = eventstore.EventStore(storage.Storage(p))
    store.append(tevent("1", "pv"))
    store.append(tevent("2", "pp"))
    store.append(tevent("3", "se"))
    return str(p)


def test_list(store_file, capsys):
    assert main.main(["--store", store_file, "list"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("Showing 3 events")
    assert out.index("e: se") < out.index("e: pp") < out.index("e: pv")


def test_list_options(store_file, capsys):
    assert main.main(["--store", store_file, "list", "--hide-pp"]) == 0
    assert "Showing 2 events" in capsys.readouterr().out

    assert main.main(["--store", store_file, "list", "--filter", "pp"]) == 0
    assert "Showing 1 events" in capsys.readouterr().out

    assert main.main(["--store", store_file, "list", "--limit", "1"]) == 0
    out = capsys.readouterr().out
    assert "Showing 1 events" in out
    assert "e: se" in out

    assert main.main(["--store", store_file, "list", "--filter", "nothing"]) == 0
    assert capsys.readouterr().out.strip() == "No events found."


def test_clear(store_file, capsys):
    assert main.main(["--store", store_file, "clear"]) == 0
    assert "Cleared" in capsys.readouterr().out
    with open(store_file) as f:
        assert json.load(f)["events"] == []


def test_export(store_file, tmp_path, capsys):
    target = tmp_path / "out.json"
    assert main.main(["--store", store_file, "export", str(target)]) == 0
    assert "Exported 3 beacons" in capsys.readouterr().out
    data = json.loads(target.read_text("utf-8"))
    assert [d["event_id"] for d in data] == ["3", "2", "1"]


def test_export_directory(store_file, tmp_path):
    d = tmp_path / "exports"
    d.mkdir()
    assert main.main(["--store", store_file, "export", str(d)]) == 0
    (f,) = d.glob("alpha-metrics-events-*.json")
    assert len(json.loads(f.read_text("utf-8"))) == 3


def test_status(store_file, capsys):
    assert main.main(["--store", store_file, "status"]) == 0
    out = capsys.readouterr().out
    assert "capture: disabled" in out
    assert "beacons: 3" in out

    storage.Storage(store_file).put(storage.LOGGING_ENABLED, True)
    assert main.main(["--store", store_file, "status"]) == 0
    assert "capture: enabled" in capsys.readouterr().out


def test_missing_store(tmp_path, capsys):
    assert main.main(["--store", str(tmp_path / "none.json"), "list"]) == 0
    assert "No events found." in capsys.readouterr().out


def test_write_error(store_file, tmp_path, capsys):
    target = tmp_path / "missing" / "out.json"
    assert main.main(["--store", store_file, "export", str(target)]) == 1
    assert capsys.readouterr().err.startswith("ametrica: ")


def test_usage(capsys):
    with pytest.raises(SystemExit):
        main.main([])
    with pytest.raises(SystemExit):
        main.main(["--version"])
    assert capsys.readouterr().out.strip() == f"ametrica {version.VERSION}"
