"""
메인 파이프라인 테스트
"""

import json
import os

import pytest

from Conflation import ConflationResult
from Exceptions import AmbiguousPruning
from MapManager import MapManager
from Start import ConflationExporter, process_conflation


def _points(ls, ids=None):
    ids = ids or {}
    return [[ids.get(p.x, p.id), p.x, p.y, p.z] for p in ls.points]


def _write_inputs(road, tmp_path, match, reuse_ref_ids=False):
    """reuse_ref_ids: OSM node id 를 같은 x 의 reference 점 id 로 기록"""
    ref_ids = {}
    if reuse_ref_ids:
        ref_ids = {p.x: p.id for seg in match.ref_pline for p in seg.linestring.points}
    map_path = str(tmp_path / "lanelet_map.sqlite")
    MapManager.save(road.lanelet_map, map_path)
    data = {
        "matches": [{
            "id": match.id,
            "ref_pline": [
                {"id": seg.linestring.id, "points": _points(seg.linestring),
                 "forward": seg.forward, "backward": seg.backward}
                for seg in match.ref_pline
            ],
            "target_pline": [
                {"id": ls.id, "points": _points(ls, ref_ids), "tags": ls.attributes}
                for ls in match.target_pline
            ],
        }]
    }
    match_path = tmp_path / "matches.json"
    match_path.write_text(json.dumps(data), encoding="utf-8")
    return map_path, str(match_path)


def test_process_conflation(road, tmp_path):
    match = road.match(
        [0.0, 15.0, 30.0],
        [{"highway": "primary", "lanes": "2"}, {"highway": "trunk", "lanes": "2"}],
    )
    map_path, match_path = _write_inputs(road, tmp_path, match)
    out_map = str(tmp_path / "output" / "conflated.sqlite")

    result = process_conflation(
        map_path, match_path,
        output_map_file=out_map,
        output_dir_json=str(tmp_path / "output"),
        output_dir_viz=str(tmp_path / "imgs"),
        visualize=True,
    )

    assert len(result.created) == 2
    assert os.path.exists(str(tmp_path / "imgs" / "conflation.png"))
    loaded = MapManager(out_map).initialize_all_layers()
    assert len(loaded) == 8
    assert loaded.find_lanelet(result.created[0]).attributes["subtype"] == "highway"

    with open(str(tmp_path / "output" / "conflation_summary.json"), encoding="utf-8") as f:
        summary = json.load(f)
    assert summary["num_created"] == 2
    assert summary["num_lanelets"] == 8
    assert summary["color_counts"] == {"match": 6}


def test_process_conflation_with_alignment(road, tmp_path):
    match = road.match(
        [0.0, 10.0, 20.0, 30.0],
        [{"highway": "primary"}] * 3,
    )
    map_path, match_path = _write_inputs(road, tmp_path, match)
    out_map = str(tmp_path / "aligned.sqlite")

    process_conflation(
        map_path, match_path,
        output_map_file=out_map,
        output_dir_json=str(tmp_path),
        output_dir_viz=str(tmp_path),
        visualize=False,
        transform_map=True,
        align_method="Umeyama",
    )

    loaded = MapManager(out_map).initialize_all_layers()
    # OSM 은 맵보다 y 방향으로 0.5 위
    assert loaded.find_lanelet(1).left_bound.front().y == pytest.approx(2.5)
    assert loaded.find_lanelet(1).right_bound.front().x == pytest.approx(0.0)


def test_alignment_with_colliding_point_ids(road, tmp_path):
    """OSM node id 가 맵 점 id 와 겹쳐도 OSM 좌표로 정합"""
    match = road.match([0.0, 10.0, 20.0, 30.0], [{"highway": "primary"}] * 3)
    map_path, match_path = _write_inputs(road, tmp_path, match, reuse_ref_ids=True)
    out_map = str(tmp_path / "aligned.sqlite")

    process_conflation(
        map_path, match_path,
        output_map_file=out_map,
        output_dir_json=str(tmp_path),
        output_dir_viz=str(tmp_path),
        visualize=False,
        transform_map=True,
        align_method="Umeyama",
    )

    loaded = MapManager(out_map).initialize_all_layers()
    assert loaded.find_lanelet(1).left_bound.front().y == pytest.approx(2.5)


def test_exporter_to_dict():
    result = ConflationResult(
        colors=[(1, "match"), (2, "mismatch"), (3, "match")],
        deleted=[2],
        diagnostics=[AmbiguousPruning(segment_index=0, lanes_present=3, lanes_target=1, candidates=[1, 3])],
        created=[10],
    )
    summary = ConflationExporter.to_dict(result)
    assert summary["color_counts"] == {"match": 2, "mismatch": 1}
    assert summary["num_deleted"] == 1
    assert summary["diagnostics"][0]["candidates"] == [1, 3]
    assert "num_lanelets" not in summary


def test_process_conflation_missing_map(tmp_path):
    with pytest.raises(FileNotFoundError):
        process_conflation(str(tmp_path / "none.sqlite"), str(tmp_path / "none.json"), visualize=False)
