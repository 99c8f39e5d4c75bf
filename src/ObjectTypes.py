"""
객체 타입 정의 모듈

이 모듈은 map-matching 결과를 표현하는 객체 타입을 정의합니다.
주요 데이터 클래스:
- RefSegment: reference polyline 세그먼트와 방향별 lanelet id 리스트
- Match: reference polyline 하나와 target(OSM) polyline 하나의 대응

데이터 흐름:
    외부 map-matching 결과 (JSON)
      └─> JsonMatchLoader.get_matches()
          └─> List[Match]
              └─> ConflationEngine.conflate_lanelet_osm()
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List

from DataTypes import LineString3d
from Exceptions import LaneletLookupError

FORWARD = "forward"
BACKWARD = "backward"
DIRECTIONS = (FORWARD, BACKWARD)


@dataclass(eq=False)
class RefSegment:
    """
    Reference polyline의 단일 세그먼트.

    세그먼트 하나는 같은 구간에서 나란히 달리는 여러 lanelet을 대표합니다.
    forward/backward 리스트에는 세그먼트 방향과 같은/반대 방향으로 주행하는
    lanelet id가 왼쪽부터 순서대로 들어 있습니다.

    Attributes:
        linestring (LineString3d): 세그먼트 기하 (맵 좌표계)
        forward (List[int]): 정방향 lanelet id 리스트
        backward (List[int]): 역방향 lanelet id 리스트
    """
    linestring: LineString3d
    forward: List[int] = field(default_factory=list)
    backward: List[int] = field(default_factory=list)

    def refs(self, direction: str) -> List[int]:
        if direction == FORWARD:
            return self.forward
        if direction == BACKWARD:
            return self.backward
        raise ValueError(f"unknown direction: {direction}")

    def all_refs(self) -> List[int]:
        """정방향 다음 역방향 순서의 전체 lanelet id"""
        return list(self.forward) + list(self.backward)

    def lane_count(self) -> int:
        return len(self.forward) + len(self.backward)

    def front(self):
        return self.linestring.front()

    def back(self):
        return self.linestring.back()


@dataclass(eq=False)
class Match:
    """
    Reference polyline과 target polyline의 대응 관계.

    외부 map-matching 단계가 생성합니다. reference polyline은 Lanelet 맵에서
    유도된 세그먼트 열이고, target polyline은 OSM way 세그먼트 열로 highway,
    maxspeed, name, lanes 등 전달할 태그를 속성으로 갖습니다.

    융합 과정에서 lanelet이 분할되거나 삭제되면 update_ref_tag() /
    remove_ref_tag()로 세그먼트의 lanelet id 리스트를 갱신합니다.
    """
    ref_pline: List[RefSegment] = field(default_factory=list)
    target_pline: List[LineString3d] = field(default_factory=list)
    id: int = 0

    def update_ref_tag(self, direction: str, slot: int, old_id: int, new_id: int, segment_index: int) -> None:
        """
        segment_index 세그먼트의 direction 리스트에서 old_id를 new_id로 교체합니다.

        slot 위치에 old_id가 있으면 그 자리를, 없으면 첫 번째 old_id를 교체합니다.

        Raises:
            LaneletLookupError: 세그먼트가 old_id를 참조하지 않는 경우
        """
        refs = self.ref_pline[segment_index].refs(direction)
        if 0 <= slot < len(refs) and refs[slot] == old_id:
            refs[slot] = new_id
            return
        try:
            refs[refs.index(old_id)] = new_id
        except ValueError:
            raise LaneletLookupError(old_id) from None

    def remove_ref_tag(self, lanelet_id: int) -> int:
        """모든 세그먼트/방향에서 lanelet_id 참조를 제거하고 제거 개수를 반환합니다."""
        removed = 0
        for seg in self.ref_pline:
            for direction in DIRECTIONS:
                refs = seg.refs(direction)
                while lanelet_id in refs:
                    refs.remove(lanelet_id)
                    removed += 1
        return removed

    def same_direction(self) -> bool:
        """
        Reference/target polyline의 진행 방향 일치 여부.

        두 polyline 시작점->끝점 변위 벡터 사이의 부호 있는 각도가
        ±90도 미만이면 같은 방향으로 판단합니다. 한쪽이라도 비어 있으면 False.
        """
        if not self.ref_pline or not self.target_pline:
            return False
        r0 = self.ref_pline[0].front()
        r1 = self.ref_pline[-1].back()
        t0 = self.target_pline[0].front()
        t1 = self.target_pline[-1].back()
        v1 = (r1.x - r0.x, r1.y - r0.y)
        v2 = (t1.x - t0.x, t1.y - t0.y)
        angle = math.atan2(v1[0] * v2[1] - v2[0] * v1[1], v1[0] * v2[0] + v1[1] * v2[1])
        return abs(angle) < math.pi / 2.0
