import importlib
import json

from adv_route.errors import RoutingError
from adv_route.planner import RoutePlanner, RoutePlannerConfig
from adv_route.stitcher import RouteStitcher
from conftest import FakeClock, ScriptedGate

main_mod = importlib.import_module("adv_route.main")


class EmptyDiscovery:
    def fetch_tracks(self, bbox):
        return []


def _use_planner(monkeypatch, gate, captured=None):
    def fake_build_planner(custom_model=None):
        if captured is not None:
            captured["custom_model"] = custom_model
        stitcher = RouteStitcher(gate, clock=FakeClock())
        return RoutePlanner(stitcher, EmptyDiscovery(), RoutePlannerConfig())

    monkeypatch.setattr(main_mod, "build_planner", fake_build_planner)


def test_main_writes_files_and_prints_summary(monkeypatch, tmp_path, capsys):
    gate = ScriptedGate()
    _use_planner(monkeypatch, gate)
    code = main_mod.main(
        [
            "--start",
            "10.0,50.0",
            "--end",
            "10.5,50.0",
            "--via",
            "10.25,50.05",
            "--out-dir",
            str(tmp_path),
        ]
    )
    assert code == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["used_fallback"] is True
    assert summary["via_points_used"] == [[10.0, 50.0], [10.25, 50.05], [10.5, 50.0]]
    assert (tmp_path / f"{summary['id']}.gpx").exists()
    assert (tmp_path / f"{summary['id']}.geojson").exists()
    assert summary["gpx_path"].endswith(".gpx")
    assert gate.calls == [[(10.0, 50.0), (10.25, 50.05), (10.5, 50.0)]]


def test_main_auto_order_swaps_latlon(monkeypatch, tmp_path, capsys):
    gate = ScriptedGate()
    _use_planner(monkeypatch, gate)
    code = main_mod.main(
        [
            "--auto-order",
            "--start",
            "37.8,-122.4",
            "--end",
            "-122.3,37.9",
            "--out-dir",
            str(tmp_path),
        ]
    )
    assert code == 0
    assert gate.calls[0] == [(-122.4, 37.8), (-122.3, 37.9)]


def test_main_accepts_equals_form_for_negative_points(monkeypatch, tmp_path):
    gate = ScriptedGate()
    _use_planner(monkeypatch, gate)
    code = main_mod.main(
        [
            "--start=-122.42,37.77",
            "--end",
            "-122.27,37.80",
            "--via",
            "-122.35,-37.0",
            "--out-dir",
            str(tmp_path),
        ]
    )
    assert code == 0
    assert gate.calls[0][0] == (-122.42, 37.77)
    assert gate.calls[0][-1] == (-122.27, 37.80)


def test_join_point_values_leaves_other_options_alone():
    argv = ["--end", "-122.3,37.9", "-v", "--via", "-1.5,-2.5", "--name", "x"]
    assert main_mod._join_point_values(argv) == [
        "--end=-122.3,37.9",
        "-v",
        "--via=-1.5,-2.5",
        "--name",
        "x",
    ]


def test_main_rejects_ambiguous_auto_order(monkeypatch, tmp_path):
    gate = ScriptedGate()
    _use_planner(monkeypatch, gate)
    code = main_mod.main(
        ["--auto-order", "--start", "8.68,49.41", "--end", "8.95,49.62"]
    )
    assert code == 2
    assert gate.calls == []


def test_main_rejects_bad_coordinate(monkeypatch):
    _use_planner(monkeypatch, ScriptedGate())
    assert main_mod.main(["--start", "oops", "--end", "8.95,49.62"]) == 2


def test_main_routing_failure_exits_non_zero(monkeypatch, tmp_path):
    def responder(points):
        raise RoutingError("GraphHopper error: no key", status=401)

    _use_planner(monkeypatch, ScriptedGate(responder))
    code = main_mod.main(
        ["--start", "10.0,50.0", "--end", "10.5,50.0", "--out-dir", str(tmp_path)]
    )
    assert code == 1
    assert list(tmp_path.iterdir()) == []


def test_main_missing_api_key(monkeypatch):
    monkeypatch.setattr(main_mod, "GH_KEY", "")
    assert main_mod.main(["--start", "10.0,50.0", "--end", "10.5,50.0"]) == 2


def test_main_passes_must_use_areas(monkeypatch, tmp_path, capsys):
    areas = tmp_path / "areas.geojson"
    areas.write_text(
        json.dumps(
            {
                "type": "FeatureCollection",
                "features": [{"type": "Feature", "id": "tunnel", "geometry": {}}],
            }
        ),
        encoding="utf-8",
    )
    captured = {}
    _use_planner(monkeypatch, ScriptedGate(), captured)
    code = main_mod.main(
        [
            "--start",
            "10.0,50.0",
            "--end",
            "10.5,50.0",
            "--must-use-areas",
            str(areas),
            "--out-dir",
            str(tmp_path / "out"),
        ]
    )
    assert code == 0
    model = captured["custom_model"]
    assert [f["id"] for f in model["areas"]["features"]] == ["tunnel"]


def test_load_must_use_areas_rejects_other_json(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text('{"type": "Point"}', encoding="utf-8")
    try:
        main_mod.load_must_use_areas(path)
    except ValueError as exc:
        assert "FeatureCollection" in str(exc)
    else:
        raise AssertionError("expected ValueError")
    assert main_mod.load_must_use_areas(None) == []
