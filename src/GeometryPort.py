"""
기하 연산 모듈

융합 엔진이 사용하는 기하 기본 연산을 Shapely 위에 제공합니다.
- project: linestring 위로의 점 투영
- distance2d / distance3d: 점 사이 거리
- follows: lanelet 연결 관계 (선행/후속)
- length / interpolate_at_distance: linestring 길이 및 거리 기반 보간
"""

from __future__ import annotations

import math
from typing import Tuple, Union

from shapely.geometry import LineString, Point

from DataTypes import Lanelet, LineString3d, Point3d

PointLike = Union[Point3d, Tuple[float, float], Tuple[float, float, float]]


def _xyz(pt: PointLike) -> Tuple[float, float, float]:
    if isinstance(pt, Point3d):
        return pt.x, pt.y, pt.z
    if len(pt) >= 3:
        return float(pt[0]), float(pt[1]), float(pt[2])
    return float(pt[0]), float(pt[1]), 0.0


def _line2d(ls: LineString3d) -> LineString:
    if len(ls) < 2:
        raise ValueError(f"linestring {ls.id} needs at least 2 points, has {len(ls)}")
    return LineString([(p.x, p.y) for p in ls.points])


def project(ls: LineString3d, pt: PointLike) -> Tuple[float, float, float]:
    """
    점을 linestring 위 최근접 위치로 투영합니다.

    투영은 xy 평면에서 수행하고, z는 투영 위치를 포함하는 선분의 양 끝 z를
    선형 보간해 얻습니다.

    Returns:
        Tuple[float, float, float]: 투영점 좌표
    """
    x, y, _ = _xyz(pt)
    line = _line2d(ls)
    s = line.project(Point(x, y))
    p = line.interpolate(s)

    # 투영 위치가 속한 선분에서 z 보간
    acc = 0.0
    z = ls.points[-1].z
    for a, b in zip(ls.points[:-1], ls.points[1:]):
        seg = math.hypot(b.x - a.x, b.y - a.y)
        if s <= acc + seg or b is ls.points[-1]:
            t = 0.0 if seg == 0.0 else min(max((s - acc) / seg, 0.0), 1.0)
            z = a.z + t * (b.z - a.z)
            break
        acc += seg
    return float(p.x), float(p.y), float(z)


def distance2d(a: PointLike, b: PointLike) -> float:
    ax, ay, _ = _xyz(a)
    bx, by, _ = _xyz(b)
    return math.hypot(bx - ax, by - ay)


def distance3d(a: PointLike, b: PointLike) -> float:
    ax, ay, az = _xyz(a)
    bx, by, bz = _xyz(b)
    return math.sqrt((bx - ax) ** 2 + (by - ay) ** 2 + (bz - az) ** 2)


def follows(prev: Lanelet, nxt: Lanelet) -> bool:
    """prev의 좌/우 경계 끝점이 nxt의 좌/우 경계 시작점과 같은 점 객체인지 여부"""
    if not prev.left_bound.points or not nxt.left_bound.points:
        return False
    if not prev.right_bound.points or not nxt.right_bound.points:
        return False
    return (
        prev.left_bound.back() is nxt.left_bound.front()
        and prev.right_bound.back() is nxt.right_bound.front()
    )


def length(ls: LineString3d) -> float:
    """2D 길이"""
    if len(ls) < 2:
        return 0.0
    return float(_line2d(ls).length)


def interpolate_at_distance(ls: LineString3d, distance: float) -> Tuple[float, float]:
    """시작점으로부터 distance 만큼 떨어진 linestring 위 2D 점 (범위 밖은 끝점으로 클램프)"""
    line = _line2d(ls)
    d = min(max(distance, 0.0), line.length)
    p = line.interpolate(d)
    return float(p.x), float(p.y)
