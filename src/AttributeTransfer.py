"""
속성 전달 모듈

OSM 태그 값을 reference 세그먼트 위치별로 결정하여, 세그먼트가 대표하는
모든 lanelet(정방향/역방향)에 기록합니다.

- active_values: 세그먼트별 활성 값 계산 (변화 인덱스 기준)
- transfer_tag / transfer_att: 일반 속성 전달 (maxspeed -> speed_limit 등)
- set_type_location: highway 태그 -> lanelet subtype / location
- highway2subtype_location: highway 값 매핑 규칙
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Set, Tuple

import DefaultParams
from LaneletSplitter import get_index
from MapManager import LaneletMap
from ObjectTypes import DIRECTIONS, Match, RefSegment
from TagChange import TagChanges

LOG = logging.getLogger("attribute_transfer")


def change_indices(match: Match, tag_changes: TagChanges) -> List[int]:
    """변화 지점을 가장 가까운 reference 세그먼트 인덱스로 변환"""
    return [get_index(match, pt) for pt in tag_changes.points]


def active_values(match: Match, ind_change: Sequence[int], values: Sequence[str]) -> List[str]:
    """
    Reference 세그먼트별 활성 값을 계산합니다.

    두 polyline이 반대 방향이면 값 순서열을 뒤집어 사용합니다. 세그먼트 i의
    값은 i >= ind_change[j] 를 만족하는 마지막 j에 대한 values[j + 1],
    그런 j가 없으면 values[0] 입니다.

    Returns:
        List[str]: 세그먼트 수와 같은 길이의 값 리스트 (values가 비면 빈 리스트)
    """
    if not values:
        return []
    vals = list(values)
    if not match.same_direction():
        vals.reverse()
    return [value_at(ind, ind_change, vals) for ind in range(len(match.ref_pline))]


def value_at(ind: int, ind_change: Sequence[int], values: Sequence[str]) -> str:
    """세그먼트 인덱스 ind 에서의 활성 값 (values 길이는 len(ind_change) + 1)"""
    val = values[0]
    for j, change in enumerate(ind_change):
        if ind >= change:
            val = values[j + 1]
    return val


def set_value_dir(lanelet_map: LaneletMap, seg: RefSegment, direction: str, key_ref: str,
                  val: str, set_ids: Set[int]) -> None:
    """세그먼트가 direction 방향으로 참조하는 lanelet에 값을 기록 (set_ids에 있는 lanelet은 건너뜀)"""
    for ll_id in seg.refs(direction):
        if ll_id in set_ids:
            continue
        ll = lanelet_map.find_lanelet(ll_id)
        ll.attributes[key_ref] = val
        set_ids.add(ll.id)


def transfer_tag(lanelet_map: LaneletMap, match: Match, key_ref: str, ind_change: Sequence[int],
                 values: Sequence[str], set_ids: Optional[Set[int]] = None) -> Set[int]:
    """
    세그먼트별 활성 값을 key_ref 속성으로 lanelet에 기록합니다.

    한 lanelet이 인접한 여러 세그먼트에 참조되더라도 한 번의 호출에서
    처음 기록한 값이 유지됩니다.

    Returns:
        Set[int]: 값이 기록된 lanelet id 집합
    """
    if set_ids is None:
        set_ids = set()
    for seg, val in zip(match.ref_pline, active_values(match, ind_change, values)):
        for direction in DIRECTIONS:
            set_value_dir(lanelet_map, seg, direction, key_ref, val, set_ids)
    return set_ids


def transfer_att(lanelet_map: LaneletMap, match: Match, key_ref: str, tag_changes: TagChanges) -> Set[int]:
    """OSM 태그 변화 결과를 lanelet 속성 key_ref로 전달"""
    return transfer_tag(lanelet_map, match, key_ref, change_indices(match, tag_changes), tag_changes.values)


def highway2subtype_location(val_osm: str) -> Tuple[str, str]:
    """
    OSM highway 값 -> (lanelet subtype, location).

        motorway, trunk (+ _link)      -> ("highway", "nonurban")
        primary ... service            -> ("road", "urban")
        living_street                  -> ("play_street", "")
        busway                         -> ("bus_lane", "urban")
        cycleway                       -> ("bicycle_lane", "")
        그 외                           -> ("", "")
    """
    if val_osm in DefaultParams.HIGHWAY_NONURBAN:
        return "highway", "nonurban"
    if val_osm in DefaultParams.ROAD_URBAN:
        return "road", "urban"
    if val_osm == "living_street":
        return "play_street", ""
    if val_osm == "busway":
        return "bus_lane", "urban"
    if val_osm == "cycleway":
        return "bicycle_lane", ""
    return "", ""


def set_type_location(lanelet_map: LaneletMap, match: Match, tag_changes: TagChanges) -> None:
    """highway 태그 변화 결과로 lanelet의 subtype / location 속성을 설정"""
    if not tag_changes.values:
        return
    set_subtype: Set[int] = set()
    set_location: Set[int] = set()
    ind_change = change_indices(match, tag_changes)
    for seg, val in zip(match.ref_pline, active_values(match, ind_change, tag_changes.values)):
        subtype, location = highway2subtype_location(val)
        for direction in DIRECTIONS:
            set_value_dir(lanelet_map, seg, direction, "subtype", subtype, set_subtype)
            set_value_dir(lanelet_map, seg, direction, "location", location, set_location)
    LOG.debug("set subtype/location for %d lanelets of match %d", len(set_subtype), match.id)
