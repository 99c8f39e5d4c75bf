"""
lanelet / linestring 분할 테스트
"""

import pytest

import GeometryPort
from DataTypes import LineString3d, Point3d
from Exceptions import LaneletLookupError
from LaneletSplitter import LaneletSplitter, LinestringSplitter, SplitCache, find_segment_2d, get_index
from MapManager import LaneletMap


def _line(xs, y=0.0, start_id=1):
    return LineString3d(start_id * 100, [Point3d(start_id * 100 + i + 1, x, y) for i, x in enumerate(xs)])


def _splitter():
    lanelet_map = LaneletMap()
    lanelet_map._track_id(10000)
    return LinestringSplitter(lanelet_map, SplitCache())


def test_split_interior_projection():
    ls = _line([0.0, 10.0, 20.0])
    orig_pts = list(ls.points)
    new_ls = _splitter().split(ls, Point3d(0, 15.0, 3.0))

    assert [p.x for p in ls.points] == [0.0, 10.0, 15.0]
    assert [p.x for p in new_ls.points] == [15.0, 20.0]
    assert ls.back() is new_ls.front()
    assert ls.back().y == pytest.approx(0.0)
    # 원래 점 객체는 그대로 재사용
    assert ls.points[:2] == orig_pts[:2]
    assert new_ls.back() is orig_pts[2]


def test_split_snaps_to_existing_vertex():
    ls = _line([0.0, 10.0, 20.0])
    middle = ls[1]
    new_ls = _splitter().split(ls, Point3d(0, 10.0, 0.0))
    assert ls.points == [ls[0], middle]
    assert new_ls.points[0] is middle
    assert len(new_ls) == 2


def test_split_at_first_vertex_uses_midpoint():
    ls = _line([0.0, 10.0, 20.0])
    new_ls = _splitter().split(ls, Point3d(0, 0.0, 0.0))
    assert [p.x for p in ls.points] == [0.0, 5.0]
    assert [p.x for p in new_ls.points] == [5.0, 10.0, 20.0]
    assert ls.back() is new_ls.front()


def test_split_at_last_vertex_uses_midpoint():
    ls = _line([0.0, 10.0, 20.0])
    new_ls = _splitter().split(ls, Point3d(0, 20.0, 0.0))
    assert [p.x for p in ls.points] == [0.0, 10.0, 15.0]
    assert [p.x for p in new_ls.points] == [15.0, 20.0]
    assert len(ls) >= 2 and len(new_ls) >= 2


def test_split_inverted_keeps_bound_direction():
    """역순 분할: 기존 linestring은 분할점부터 끝까지, 새 linestring은 시작부터 분할점까지"""
    ls = _line([20.0, 10.0, 0.0])
    first, last = ls.front(), ls.back()
    new_ls = _splitter().split(ls, Point3d(0, 5.0, 0.0), invert=True)

    assert [p.x for p in new_ls.points] == [20.0, 10.0, 5.0]
    assert [p.x for p in ls.points] == [5.0, 0.0]
    assert new_ls.front() is first
    assert ls.back() is last
    assert new_ls.back() is ls.front()


def test_split_is_idempotent_per_pass():
    splitter = _splitter()
    ls = _line([0.0, 10.0, 20.0])
    first = splitter.split(ls, Point3d(0, 15.0, 0.0))
    pts_after_first = list(ls.points)
    second = splitter.split(ls, Point3d(0, 5.0, 0.0))
    assert second is first
    assert ls.points == pts_after_first


def test_split_preserves_coverage():
    ls = _line([0.0, 3.0, 10.0, 20.0])
    total = GeometryPort.length(ls)
    new_ls = _splitter().split(ls, Point3d(0, 7.0, -1.0))
    assert GeometryPort.length(ls) + GeometryPort.length(new_ls) == pytest.approx(total)


def test_split_copies_attributes():
    ls = _line([0.0, 10.0])
    ls.attributes["type"] = "line_thin"
    new_ls = _splitter().split(ls, Point3d(0, 4.0, 0.0))
    assert new_ls.attributes == {"type": "line_thin"}
    assert new_ls.attributes is not ls.attributes


def test_find_segment_2d_straight_line():
    """일직선에서는 점을 포함하는 선분을 선택"""
    pts = [Point3d(i, x, 0.0) for i, x in enumerate([0.0, 10.0, 20.0, 30.0])]
    assert find_segment_2d(Point3d(99, 15.0, 0.0), pts) == 1
    assert find_segment_2d(Point3d(99, 25.0, 0.0), pts) == 2
    assert find_segment_2d(Point3d(99, 5.0, 0.0), pts) == 0


def test_find_segment_2d_vertical_segment():
    pts = [Point3d(1, 0.0, 0.0), Point3d(2, 0.0, 10.0), Point3d(3, 10.0, 10.0)]
    assert find_segment_2d(Point3d(99, 0.0, 4.0), pts) == 0
    assert find_segment_2d(Point3d(99, 6.0, 10.0), pts) == 1


def test_get_index(road):
    match = road.match([0.0, 30.0], [{}])
    assert get_index(match, Point3d(0, 15.0, 0.5)) == 1
    assert get_index(match, Point3d(0, 2.0, 0.5)) == 0
    assert get_index(match, Point3d(0, 27.0, 0.5)) == 2


def test_split_lanelet_both_directions(road):
    match = road.match([0.0, 15.0, 30.0], [{}, {}])
    splitter = LaneletSplitter(road.lanelet_map)
    created = splitter.split_lanelet(match, [match.target_pline[1].front()])

    assert len(created) == 2
    new_f, new_b = created
    f1, b1 = road.forward[1], road.backward[1]
    assert match.ref_pline[1].forward == [new_f.id]
    assert match.ref_pline[1].backward == [new_b.id]
    assert len(road.lanelet_map) == 8

    # 정방향: 원본 F1 은 [10, 15], 새 lanelet 은 [15, 20]
    assert [p.x for p in f1.left_bound] == [10.0, 15.0]
    assert [p.x for p in new_f.left_bound] == [15.0, 20.0]
    assert GeometryPort.follows(road.forward[0], f1)
    assert GeometryPort.follows(f1, new_f)
    assert GeometryPort.follows(new_f, road.forward[2])

    # 역방향: 원본 B1 은 15 -> 10, 새 lanelet 은 20 -> 15
    assert [p.x for p in b1.left_bound] == [15.0, 10.0]
    assert [p.x for p in new_b.left_bound] == [20.0, 15.0]
    assert GeometryPort.follows(road.backward[2], new_b)
    assert GeometryPort.follows(new_b, b1)
    assert GeometryPort.follows(b1, road.backward[0])


def test_split_lanelet_copies_attributes(road):
    road.forward[1].attributes["subtype"] = "road"
    match = road.match([0.0, 15.0, 30.0], [{}, {}])
    created = LaneletSplitter(road.lanelet_map).split_lanelet(match, [match.target_pline[1].front()])
    assert created[0].attributes == {"subtype": "road"}


def test_same_lanelet_split_twice_reuses_new_lanelet(road):
    """한 패스에서 같은 lanelet 분할이 다시 요청되면 새 lanelet 을 재사용"""
    cache = SplitCache()
    match_a = road.match([0.0, 15.0, 30.0], [{}, {}], match_id=1)
    match_b = road.match([0.0, 15.0, 30.0], [{}, {}], match_id=2)
    splitter = LaneletSplitter(road.lanelet_map, cache)

    created_a = splitter.split_lanelet(match_a, [match_a.target_pline[1].front()])
    created_b = splitter.split_lanelet(match_b, [match_b.target_pline[1].front()])

    assert len(created_a) == 2
    assert created_b == []
    assert match_b.ref_pline[1].forward == match_a.ref_pline[1].forward
    assert len(road.lanelet_map) == 8


def test_split_unknown_lanelet_raises(road):
    match = road.match([0.0, 15.0, 30.0], [{}, {}])
    match.ref_pline[1].forward.append(777)
    with pytest.raises(LaneletLookupError) as exc:
        LaneletSplitter(road.lanelet_map).split_lanelet(match, [match.target_pline[1].front()])
    assert exc.value.lanelet_id == 777


def test_split_inverted_view_splits_base():
    """역방향 뷰 분할: 원본을 정방향으로 분할하고 새 linestring 의 역방향 뷰를 반환"""
    splitter = _splitter()
    base = _line([0.0, 10.0, 20.0])
    view = base.invert()
    new_view = splitter.split(view, Point3d(0, 15.0, 0.0), invert=True)

    assert new_view.inverted()
    assert new_view.invert() is splitter.cache.get(base.id)
    assert [p.x for p in base.points] == [0.0, 10.0, 15.0]
    assert [p.x for p in view.points] == [15.0, 10.0, 0.0]
    assert [p.x for p in new_view.points] == [20.0, 15.0]
    assert new_view.back() is view.front()


def test_split_lanelet_shared_centerline(shared_road):
    match = shared_road.match([0.0, 15.0, 30.0], [{}, {}])
    created = LaneletSplitter(shared_road.lanelet_map).split_lanelet(match, [match.target_pline[1].front()])

    assert len(created) == 2
    new_f, new_b = created
    f1, b1 = shared_road.forward[1], shared_road.backward[1]

    # 중앙선은 한 번만 분할되고 양방향이 같은 결과를 공유
    assert not new_f.right_bound.inverted()
    assert new_b.right_bound.inverted()
    assert new_b.right_bound.invert() is new_f.right_bound
    assert b1.right_bound.invert() is f1.right_bound
    assert [p.x for p in f1.right_bound] == [10.0, 15.0]
    assert [p.x for p in b1.right_bound] == [15.0, 10.0]
    assert [p.x for p in new_b.right_bound] == [20.0, 15.0]
    assert len(shared_road.lanelet_map.linestrings()) == 12

    assert GeometryPort.follows(f1, new_f)
    assert GeometryPort.follows(new_f, shared_road.forward[2])
    assert GeometryPort.follows(shared_road.backward[2], new_b)
    assert GeometryPort.follows(new_b, b1)
    assert GeometryPort.follows(b1, shared_road.backward[0])

    # 꼬인 폴리곤이 아닌 5 x 2 사각형
    assert new_b.polygon.is_valid
    assert new_b.polygon.area == pytest.approx(10.0)
    assert b1.polygon.area == pytest.approx(10.0)
