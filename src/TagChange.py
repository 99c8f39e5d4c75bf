"""
태그 변화 검출 모듈

Target(OSM) polyline을 따라 지정한 태그 값이 바뀌는 지점을 찾고,
여러 태그의 변화 지점을 하나의 점 리스트로 병합합니다.

- check_tag_change: 키별 변화 지점(세그먼트 첫 점)과 값 순서열
- merge_point_lists: 객체 동일성 기준 중복 제거, 최초 등장 순서 유지
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

from DataTypes import LineString3d, Point3d

EMPTY_VALUE = ""


@dataclass
class TagChanges:
    """
    단일 태그 키의 변화 검출 결과.

    Attributes:
        points (List[Point3d]): 값이 바뀌는 세그먼트의 첫 점 (순서대로)
        values (List[str]): 시작 값 + 변화 후 값들. 항상 len(points) + 1
    """
    points: List[Point3d] = field(default_factory=list)
    values: List[str] = field(default_factory=list)


def check_tag_change(pline: Sequence[LineString3d], keys: Iterable[str]) -> Dict[str, TagChanges]:
    """
    Polyline 세그먼트 속성에서 키별 값 변화 지점을 찾습니다.

    시작 값은 첫 세그먼트의 값(없으면 빈 문자열)입니다. 이후 세그먼트의 값이
    현재 값과 다르면(속성이 사라지는 경우 포함) 그 세그먼트의 첫 점을 변화
    지점으로 기록하고 새 값을 값 순서열에 추가합니다. 키끼리는 서로 비교하지
    않습니다.

    Args:
        pline: target polyline 세그먼트 리스트
        keys: 검사할 태그 키 (순서 유지)

    Returns:
        Dict[str, TagChanges]: 키 -> 변화 검출 결과 (keys 순서)
    """
    result: Dict[str, TagChanges] = {}
    for key in keys:
        changes = TagChanges()
        val = EMPTY_VALUE
        if pline:
            val = pline[0].attributes.get(key, EMPTY_VALUE)
        changes.values.append(val)
        for seg in pline[1:]:
            seg_val = seg.attributes.get(key, EMPTY_VALUE)
            if seg_val != val:
                changes.points.append(seg.front())
                val = seg_val
                changes.values.append(val)
        result[key] = changes
    return result


def merge_point_lists(point_lists: Iterable[Sequence[Point3d]]) -> List[Point3d]:
    """여러 변화 지점 리스트를 하나로 합칩니다 (같은 점 객체는 한 번만)."""
    merged: List[Point3d] = []
    seen = set()
    for pts in point_lists:
        for pt in pts:
            if id(pt) not in seen:
                seen.add(id(pt))
                merged.append(pt)
    return merged
