"""
차선 수 검증 모듈

OSM lanes / shoulder 태그로부터 구간별 목표 차선 수를 구하고, reference
세그먼트가 대표하는 lanelet 수와 비교하여 색상 분류를 할당합니다. 맵이 OSM보다
차선을 많이 가진 구간에서는 선행/후속 lanelet이 전혀 없는 고립(orphan)
lanelet을 찾아 삭제 대상으로 기록합니다.

색상 분류:
    - match: lanelet 수 == 목표 차선 수
    - mismatch: lanelet 수 != 목표 차선 수
    - no-data: lanes 태그 없음 (검증/삭제 생략)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple

import DefaultParams
import GeometryPort
from AttributeTransfer import value_at
from DataTypes import ColorCode, Lanelet
from Exceptions import AmbiguousPruning
from LaneletSplitter import get_index
from MapManager import LaneletMap
from ObjectTypes import Match, RefSegment
from TagChange import EMPTY_VALUE, TagChanges, merge_point_lists

LOG = logging.getLogger("lane_validator")


def lanes_target(val_lanes: str, val_shoulder: str) -> Optional[int]:
    """
    OSM lanes / shoulder 값으로 목표 차선 수를 계산합니다.

    shoulder가 yes/left/right 이면 +1, both 이면 +2.
    lanes 값이 비어 있으면 None (기준 데이터 없음).

    Raises:
        ValueError: lanes 값이 정수가 아닌 경우
    """
    if val_lanes == EMPTY_VALUE:
        return None
    target = int(val_lanes)
    if val_shoulder in DefaultParams.SHOULDER_SINGLE:
        target += 1
    elif val_shoulder == DefaultParams.SHOULDER_BOTH:
        target += 2
    return target


@dataclass
class LaneConsistencyValidator:
    """
    패스 범위 차선 수 검증기.

    여러 Match에 걸쳐 색상 할당과 삭제 목록을 누적합니다. 한 lanelet의 색상은
    패스 전체에서 처음 할당된 값이 유지됩니다.

    Attributes:
        lanelet_map (LaneletMap): 검증 대상 맵 (live map, 삭제하지 않음)
        colors (List[Tuple[int, str]]): (lanelet id, 색상 분류) 리스트
        deleted (List[int]): 삭제 대상 lanelet id 리스트
        diagnostics (List[AmbiguousPruning]): 삭제 대상 특정 실패 기록
    """
    lanelet_map: LaneletMap
    colors: List[Tuple[int, str]] = field(default_factory=list)
    deleted: List[int] = field(default_factory=list)
    diagnostics: List[AmbiguousPruning] = field(default_factory=list)
    _colored: Set[int] = field(default_factory=set, repr=False)

    def check_lanes(self, match: Match, lanes: TagChanges, shoulder: TagChanges) -> None:
        """
        한 Match의 모든 reference 세그먼트에 대해 차선 수를 검증합니다.

        lanes/shoulder 변화 지점을 병합한 뒤, 병합 지점마다 각 키의 변화 횟수를
        따로 세어 병합 지점 기준 값 순서열을 다시 만듭니다. 두 polyline이 반대
        방향이면 두 값 순서열을 모두 뒤집습니다.
        """
        pts_merged = merge_point_lists([lanes.points, shoulder.points])
        ind_change = [get_index(match, pt) for pt in pts_merged]

        val_lanes = list(lanes.values) or [EMPTY_VALUE]
        val_shoulder = list(shoulder.values) or [EMPTY_VALUE]
        if not match.same_direction():
            val_lanes.reverse()
            val_shoulder.reverse()

        lanes_ids = {id(pt) for pt in lanes.points}
        shoulder_ids = {id(pt) for pt in shoulder.points}
        val_lanes_new = [val_lanes[0]]
        val_shoulder_new = [val_shoulder[0]]
        count_lanes = 0
        count_shoulder = 0
        for pt in pts_merged:
            if id(pt) in lanes_ids:
                count_lanes += 1
            if id(pt) in shoulder_ids:
                count_shoulder += 1
            val_lanes_new.append(val_lanes[count_lanes])
            val_shoulder_new.append(val_shoulder[count_shoulder])

        for ind, seg in enumerate(match.ref_pline):
            val_lane = value_at(ind, ind_change, val_lanes_new)
            val_sh = value_at(ind, ind_change, val_shoulder_new)
            self._check_segment(match, ind, seg, val_lane, val_sh)

    def _check_segment(self, match: Match, ind: int, seg: RefSegment, val_lane: str, val_sh: str) -> None:
        lanes_count = seg.lane_count()
        try:
            lanes_osm = lanes_target(val_lane, val_sh)
        except ValueError:
            LOG.warning("match %d segment %d: unparsable lanes value %r", match.id, ind, val_lane)
            lanes_osm = None

        if lanes_osm is None:
            col_code = ColorCode.NO_DATA
        elif lanes_count == lanes_osm:
            col_code = ColorCode.MATCH
        else:
            col_code = ColorCode.MISMATCH
        self._set_color_code(seg, col_code)

        if lanes_osm is None:
            return
        # 맵 lanelet이 OSM보다 많으면 고립 lanelet부터 제거
        while lanes_count > lanes_osm:
            if self.find_wrong_lanelet(seg, match):
                lanes_count -= 1
            else:
                diag = AmbiguousPruning(
                    segment_index=ind,
                    lanes_present=lanes_count,
                    lanes_target=lanes_osm,
                    candidates=seg.all_refs(),
                )
                self.diagnostics.append(diag)
                LOG.warning("match %d: %s", match.id, diag)
                break

    def _set_color_code(self, seg: RefSegment, col_code: str) -> None:
        for ll_id in seg.all_refs():
            ll = self.lanelet_map.find_lanelet(ll_id)
            if ll.id not in self._colored:
                self._colored.add(ll.id)
                self.colors.append((ll.id, col_code))

    def _is_orphan(self, ll: Lanelet) -> bool:
        for other in self.lanelet_map.lanelet_layer:
            if other.id == ll.id:
                continue
            if GeometryPort.follows(other, ll) or GeometryPort.follows(ll, other):
                return False
        return True

    def find_wrong_lanelet(self, seg: RefSegment, match: Match) -> bool:
        """
        세그먼트 lanelet 중 선행/후속 lanelet이 모두 없는 첫 lanelet을 삭제 대상으로 기록합니다.

        찾으면 삭제 목록에 추가하고 Match의 참조에서 제거한 뒤 True를 반환합니다.
        """
        candidates = [self.lanelet_map.find_lanelet(ll_id) for ll_id in seg.all_refs()]
        for ll in candidates:
            if self._is_orphan(ll):
                self.deleted.append(ll.id)
                match.remove_ref_tag(ll.id)
                LOG.info("lanelet %d has neither predecessor nor successor - marked for removal", ll.id)
                return True
        return False
