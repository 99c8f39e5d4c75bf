"""
테스트 공용 fixture

road: x축을 따라 0 -> 30 으로 뻗은 왕복 2차로 도로.
    - reference 세그먼트 3개: [0, 10], [10, 20], [20, 30]
    - 정방향 lanelet F0, F1, F2 (y: 0 ~ 2, +x 방향), 경계 점 공유로 연결
    - 역방향 lanelet B0, B1, B2 (y: -2 ~ 0, -x 방향), 경계 점 공유로 연결
    - 세그먼트 i 는 forward=[F_i], backward=[B_i]

shared_road: road 와 같은 배치이지만 중앙선(y = 0) linestring 하나를 양방향이 공유.
    - F_i 의 오른쪽 경계가 중앙선, B_i 의 오른쪽 경계는 그 역방향 뷰
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from DataTypes import Lanelet, LineString3d, Point3d
from MapManager import LaneletMap
from ObjectTypes import Match, RefSegment

XS = (0.0, 10.0, 20.0, 30.0)


@dataclass
class Road:
    lanelet_map: LaneletMap
    forward: List[Lanelet]
    backward: List[Lanelet]
    next_id: int = 5000
    _osm_points: Dict[float, Point3d] = field(default_factory=dict)

    def new_id(self) -> int:
        self.next_id += 1
        return self.next_id

    def ref_pline(self) -> List[RefSegment]:
        pts = [Point3d(self.new_id(), x, 0.0) for x in XS]
        return [
            RefSegment(
                linestring=LineString3d(self.new_id(), [pts[i], pts[i + 1]]),
                forward=[self.forward[i].id],
                backward=[self.backward[i].id],
            )
            for i in range(3)
        ]

    def osm_point(self, x: float) -> Point3d:
        if x not in self._osm_points:
            self._osm_points[x] = Point3d(self.new_id(), x, 0.5)
        return self._osm_points[x]

    def target_pline(self, breaks: Sequence[float], tags: Sequence[Dict[str, str]],
                     reverse: bool = False) -> List[LineString3d]:
        """breaks: 세그먼트 경계 x 좌표 (양 끝 포함), tags: 세그먼트별 태그"""
        xs = list(breaks)
        segs = [
            LineString3d(self.new_id(), [self.osm_point(a), self.osm_point(b)], dict(t))
            for a, b, t in zip(xs[:-1], xs[1:], tags)
        ]
        if reverse:
            segs = [
                LineString3d(s.id, s.reversed_points(), dict(s.attributes)) for s in reversed(segs)
            ]
        return segs

    def match(self, breaks: Sequence[float], tags: Sequence[Dict[str, str]],
              reverse: bool = False, match_id: int = 1) -> Match:
        return Match(
            ref_pline=self.ref_pline(),
            target_pline=self.target_pline(breaks, tags, reverse),
            id=match_id,
        )


def _chain(start_id: int, coords: Sequence[Tuple[float, float]]) -> List[Point3d]:
    return [Point3d(start_id + i, x, y) for i, (x, y) in enumerate(coords)]


@pytest.fixture
def road() -> Road:
    lanelet_map = LaneletMap()
    f_left = _chain(100, [(x, 2.0) for x in XS])
    f_right = _chain(200, [(x, 0.0) for x in XS])
    b_left = _chain(300, [(x, -2.0) for x in reversed(XS)])
    b_right = _chain(400, [(x, 0.0) for x in reversed(XS)])

    forward = []
    backward = []
    for i in range(3):
        ll = Lanelet(
            id=1 + i,
            left_bound=LineString3d(10 + i, [f_left[i], f_left[i + 1]]),
            right_bound=LineString3d(20 + i, [f_right[i], f_right[i + 1]]),
        )
        lanelet_map.add(ll)
        forward.append(ll)
    # 역방향: 인덱스 i 는 x 구간 [XS[i], XS[i+1]] 을 덮도록 맞춤
    for i in range(3):
        j = 2 - i
        ll = Lanelet(
            id=4 + i,
            left_bound=LineString3d(30 + i, [b_left[j], b_left[j + 1]]),
            right_bound=LineString3d(40 + i, [b_right[j], b_right[j + 1]]),
        )
        lanelet_map.add(ll)
        backward.append(ll)
    return Road(lanelet_map=lanelet_map, forward=forward, backward=backward)


@pytest.fixture
def orphan_factory():
    """맵 어디와도 연결되지 않은 lanelet 생성기"""
    def make(lanelet_map: LaneletMap, ll_id: int, y0: float = 10.0,
             attributes: Optional[Dict[str, str]] = None) -> Lanelet:
        left = LineString3d(ll_id * 10 + 1, _chain(ll_id * 100, [(0.0, y0 + 2.0), (10.0, y0 + 2.0)]))
        right = LineString3d(ll_id * 10 + 2, _chain(ll_id * 100 + 50, [(0.0, y0), (10.0, y0)]))
        ll = Lanelet(id=ll_id, left_bound=left, right_bound=right, attributes=dict(attributes or {}))
        lanelet_map.add(ll)
        return ll
    return make


@pytest.fixture
def shared_road() -> Road:
    lanelet_map = LaneletMap()
    f_left = _chain(100, [(x, 2.0) for x in XS])
    center = _chain(200, [(x, 0.0) for x in XS])
    b_left = _chain(300, [(x, -2.0) for x in reversed(XS)])

    forward = []
    backward = []
    for i in range(3):
        j = 2 - i
        center_ls = LineString3d(20 + i, [center[i], center[i + 1]])
        forward.append(Lanelet(
            id=1 + i,
            left_bound=LineString3d(10 + i, [f_left[i], f_left[i + 1]]),
            right_bound=center_ls,
        ))
        backward.append(Lanelet(
            id=4 + i,
            left_bound=LineString3d(30 + i, [b_left[j], b_left[j + 1]]),
            right_bound=center_ls.invert(),
        ))
    for ll in forward + backward:
        lanelet_map.add(ll)
    return Road(lanelet_map=lanelet_map, forward=forward, backward=backward)
