"""
Lanelet 분할 모듈

OSM 태그가 바뀌는 지점에서 해당 구간을 대표하는 lanelet들을 분할합니다.

구성:
- SplitCache: 한 번의 융합 패스 동안 유지되는 분할 결과 캐시
- LinestringSplitter: 경계 linestring 하나를 분할점에서 두 개로 나눔 (멱등)
- LaneletSplitter: reference 세그먼트가 참조하는 모든 lanelet의 좌/우 경계를
  분할하고 새 lanelet을 생성, Match의 lanelet id 참조를 갱신
- get_index: 점에 가장 가까운 reference 세그먼트 인덱스

분할 불변식:
    linestring은 한 패스에서 최대 한 번 분할됩니다. 같은 linestring에 대한
    두 번째 요청은 분할점과 무관하게 캐시된 결과를 반환합니다. 분할 후
    원본(앞부분)의 마지막 점과 새 linestring(뒷부분)의 첫 점은 같은 점 객체입니다.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import DefaultParams
import GeometryPort
from DataTypes import Bound, Lanelet, LineString3d, Point3d
from MapManager import LaneletMap
from ObjectTypes import BACKWARD, DIRECTIONS, Match

LOG = logging.getLogger("lanelet_splitter")


@dataclass
class SplitCache:
    """
    패스 범위 분할 캐시.

    Attributes:
        linestrings (Dict[int, LineString3d]): 원본 linestring id -> 분할로 생긴 새 linestring
        lanelets (Dict[int, Lanelet]): 원본 lanelet id -> 분할로 생긴 새 lanelet
    """
    linestrings: Dict[int, LineString3d] = field(default_factory=dict)
    lanelets: Dict[int, Lanelet] = field(default_factory=dict)

    def get(self, ls_id: int) -> Optional[LineString3d]:
        return self.linestrings.get(ls_id)


def find_segment_2d(pt: Point3d, points: Sequence[Point3d]) -> int:
    """
    분할점이 놓인 선분 인덱스를 찾습니다.

    각 선분이 이루는 직선(기울기/절편)으로부터의 y 편차 |y - (m*x + t)| 가 가장
    작은 선분을 고르며, 동률이면 앞쪽 선분이 우선합니다. 수직 선분은 x 편차를
    사용합니다. 점이 선분의 xy 경계 상자 안에 있는 선분이 하나라도 있으면 그
    선분들만 후보로 삼습니다 (일직선 경계에서 모든 선분 편차가 0이 되는 경우).
    """
    eps = 1e-9
    diffs: List[float] = []
    inside: List[bool] = []
    for a, b in zip(points[:-1], points[1:]):
        dx = b.x - a.x
        if abs(dx) < eps:
            diffs.append(abs(pt.x - a.x))
        else:
            m = (b.y - a.y) / dx
            t = a.y - m * a.x
            diffs.append(abs(pt.y - (m * pt.x + t)))
        inside.append(
            min(a.x, b.x) - DefaultParams.SPLIT_TOLERANCE <= pt.x <= max(a.x, b.x) + DefaultParams.SPLIT_TOLERANCE
            and min(a.y, b.y) - DefaultParams.SPLIT_TOLERANCE <= pt.y <= max(a.y, b.y) + DefaultParams.SPLIT_TOLERANCE
        )
    candidates = [i for i, ok in enumerate(inside) if ok] or list(range(len(diffs)))
    return min(candidates, key=lambda i: diffs[i])


def get_index(match: Match, pt: Point3d) -> int:
    """양 끝점까지 2D 거리 합이 가장 작은 reference 세그먼트 인덱스 (동률이면 앞쪽)"""
    best = 0
    best_d = float("inf")
    for i, seg in enumerate(match.ref_pline):
        d = GeometryPort.distance2d(seg.front(), pt) + GeometryPort.distance2d(seg.back(), pt)
        if d < best_d:
            best = i
            best_d = d
    return best


def _midpoint(point_id: int, a: Point3d, b: Point3d) -> Point3d:
    return Point3d(id=point_id, x=(a.x + b.x) / 2.0, y=(a.y + b.y) / 2.0, z=(a.z + b.z) / 2.0)


class LinestringSplitter:
    """
    경계 linestring 분할기.

    backward 방향 lanelet은 reference polyline과 반대로 진행하므로, 분할 시
    경계를 역순으로 읽어 앞부분/뒷부분을 정한 뒤 결과를 다시 원래 방향으로
    기록합니다. 원본 linestring이 뒤집힌 상태로 남는 일은 없습니다.

    역방향 뷰(InvertedLineString3d) 경계는 원본 linestring을 반대 읽기 방향으로
    분할하고 결과의 역방향 뷰를 반환합니다. 캐시는 원본 id 기준이므로 경계를
    공유하는 양방향 lanelet은 같은 분할 결과를 받습니다.
    """

    def __init__(self, lanelet_map: LaneletMap, cache: SplitCache,
                 tolerance: float = DefaultParams.SPLIT_TOLERANCE) -> None:
        self.lanelet_map = lanelet_map
        self.cache = cache
        self.tolerance = tolerance

    def split(self, ls: Bound, pt: Point3d, invert: bool = False) -> Bound:
        """
        linestring을 pt의 투영 위치에서 분할하고 뒷부분 새 linestring을 반환합니다.

        원본 ls는 분할점에서 끝나도록 잘립니다. 이미 분할된 ls이면 캐시된 새
        linestring을 그대로 반환합니다.

        Args:
            ls: 분할할 경계 linestring
            pt: 분할 기준점 (OSM 태그 변화 지점)
            invert: True이면 역순으로 읽어 분할 (backward 방향 lanelet)

        Returns:
            Bound: 분할점에서 시작하는 새 linestring (원래 방향 기준), ls가 역방향
            뷰이면 새 linestring의 역방향 뷰
        """
        if ls.inverted():
            return self.split(ls.invert(), pt, not invert).invert()
        cached = self.cache.get(ls.id)
        if cached is not None:
            return cached
        if len(ls) < 2:
            raise ValueError(f"linestring {ls.id} has fewer than 2 points and can't be split")

        pts = ls.reversed_points() if invert else list(ls.points)
        view = LineString3d(id=ls.id, points=pts)
        px, py, pz = GeometryPort.project(view, pt)
        dists = [GeometryPort.distance3d((px, py, pz), p) for p in pts]
        i_min = min(range(len(dists)), key=lambda i: dists[i])

        if dists[i_min] < self.tolerance:
            if i_min == 0:
                # 분할 결과가 최소 2점이 되도록 첫 두 점의 중점 사용
                new_pt = _midpoint(self.lanelet_map.allocate_id(), pts[0], pts[1])
                ind = 0
            elif i_min == len(pts) - 1:
                new_pt = _midpoint(self.lanelet_map.allocate_id(), pts[-2], pts[-1])
                ind = len(pts) - 2
            else:
                new_pt = pts[i_min]
                ind = i_min
        else:
            new_pt = Point3d(id=self.lanelet_map.allocate_id(), x=px, y=py, z=pz)
            ind = find_segment_2d(new_pt, pts)

        head = pts[:ind + 1]
        if head[-1] is not new_pt:
            head.append(new_pt)
        tail = [new_pt] + pts[ind + 1:]

        if invert:
            head.reverse()
            tail.reverse()
        new_ls = LineString3d(id=self.lanelet_map.allocate_id(), points=tail, attributes=dict(ls.attributes))
        ls.points = head
        self.cache.linestrings[ls.id] = new_ls
        LOG.debug("split linestring %d at point %d -> %d", ls.id, new_pt.id, new_ls.id)
        return new_ls


class LaneletSplitter:
    """
    태그 변화 지점에서 lanelet을 분할하는 클래스.

    각 변화 지점마다 가장 가까운 reference 세그먼트를 찾고, 그 세그먼트가
    forward/backward 방향으로 참조하는 모든 lanelet에 대해:
        1. 좌/우 경계를 LinestringSplitter로 분할 (backward는 역순 처리)
        2. 새 경계 두 개와 원본 속성으로 새 lanelet 생성, 맵에 추가
        3. Match의 해당 세그먼트 참조를 새 lanelet id로 교체

    같은 lanelet이 한 패스에서 다시 분할 요청되면 이미 만든 새 lanelet을
    재사용하여 중복 lanelet이 생기지 않게 합니다.
    """

    def __init__(self, lanelet_map: LaneletMap, cache: Optional[SplitCache] = None,
                 tolerance: float = DefaultParams.SPLIT_TOLERANCE) -> None:
        self.lanelet_map = lanelet_map
        self.cache = cache if cache is not None else SplitCache()
        self.ls_splitter = LinestringSplitter(lanelet_map, self.cache, tolerance)

    def split_lanelet(self, match: Match, pts: Sequence[Point3d]) -> List[Lanelet]:
        """모든 변화 지점에서 lanelet을 분할하고 새로 만든 lanelet 리스트를 반환합니다."""
        created: List[Lanelet] = []
        for pt in pts:
            ind = get_index(match, pt)
            for direction in DIRECTIONS:
                created.extend(self.split_ll_dir(match, ind, direction, pt))
        return created

    def split_ll_dir(self, match: Match, ind: int, direction: str, pt: Point3d) -> List[Lanelet]:
        invert = direction == BACKWARD
        created: List[Lanelet] = []
        refs = match.ref_pline[ind].refs(direction)
        for slot, ll_id in enumerate(list(refs)):
            orig = self.lanelet_map.find_lanelet(ll_id)
            new_ll = self.cache.lanelets.get(orig.id)
            if new_ll is None:
                new_left = self.ls_splitter.split(orig.left_bound, pt, invert)
                new_right = self.ls_splitter.split(orig.right_bound, pt, invert)
                new_ll = Lanelet(
                    id=self.lanelet_map.allocate_id(),
                    left_bound=new_left,
                    right_bound=new_right,
                    attributes=dict(orig.attributes),
                )
                self.lanelet_map.add(new_ll)
                self.cache.lanelets[orig.id] = new_ll
                created.append(new_ll)
                LOG.debug("split lanelet %d (%s) -> new lanelet %d", orig.id, direction, new_ll.id)
            match.update_ref_tag(direction, slot, orig.id, new_ll.id, ind)
        return created
