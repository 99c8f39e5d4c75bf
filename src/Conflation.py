"""
융합(conflation) 엔진 모듈

OpenStreetMap 태그 정보를 기존 Lanelet 맵에 융합합니다.

처리 파이프라인 (Match 마다):
    1. 태그 변화 검출 (TagChange.check_tag_change) - DefaultParams.TARGET_KEYS
    2. 변화 지점 병합 (TagChange.merge_point_lists) - 중복 분할 방지
    3. lanelet 분할 (LaneletSplitter) - 맵과 Match 갱신
    4. highway -> subtype / location 설정
    5. maxspeed, name, oneway, surface, lane_markings 속성 전달
    6. lanes / shoulder 기반 차선 수 검증, 색상 분류, 삭제 대상 식별

분할 캐시와 차선 검증기는 패스 전체(모든 Match)에 걸쳐 하나씩 사용됩니다.
삭제 대상 lanelet은 create_updated_map()으로 만든 새 맵에서만 제외됩니다.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple

import DefaultParams
from AttributeTransfer import set_type_location, transfer_att
from Exceptions import AmbiguousPruning
from LaneValidator import LaneConsistencyValidator
from LaneletSplitter import LaneletSplitter, SplitCache
from MapManager import LaneletMap
from ObjectTypes import Match
from TagChange import check_tag_change, merge_point_lists

LOG = logging.getLogger("conflation")


@dataclass
class ConflationResult:
    """
    융합 패스 결과.

    Attributes:
        colors (List[Tuple[int, str]]): (lanelet id, 색상 분류), lanelet 당 한 번
        deleted (List[int]): 삭제 대상 lanelet id
        diagnostics (List[AmbiguousPruning]): 삭제 대상 특정 실패 세그먼트
        created (List[int]): 분할로 생성된 lanelet id
    """
    colors: List[Tuple[int, str]] = field(default_factory=list)
    deleted: List[int] = field(default_factory=list)
    diagnostics: List[AmbiguousPruning] = field(default_factory=list)
    created: List[int] = field(default_factory=list)


class ConflationEngine:
    """
    Lanelet 맵 / OSM 융합 엔진.

    사용 예시:
        engine = ConflationEngine()
        engine.remove_tags(lanelet_map)
        result = engine.conflate_lanelet_osm(lanelet_map, matches)
        new_map = engine.create_updated_map(lanelet_map, result)
    """

    def __init__(self, target_keys: Sequence[str] = DefaultParams.TARGET_KEYS,
                 tolerance: float = DefaultParams.SPLIT_TOLERANCE) -> None:
        missing = [k for k in ("highway", "lanes", "shoulder") if k not in target_keys]
        if missing:
            raise ValueError(f"target_keys must contain {missing}")
        self.target_keys = tuple(target_keys)
        self.tolerance = tolerance

    @staticmethod
    def remove_tags(lanelet_map: LaneletMap, names: Iterable[str] = DefaultParams.REMOVE_POINT_TAGS) -> int:
        """맵의 모든 점에서 자동 생성 속성(local_x, local_y, mgrs_code)을 제거하고 제거 개수를 반환"""
        names = tuple(names)
        removed = 0
        for pt in lanelet_map.points():
            for name in names:
                if pt.attributes.pop(name, None) is not None:
                    removed += 1
        return removed

    def conflate_lanelet_osm(self, lanelet_map: LaneletMap, matches: Sequence[Match]) -> ConflationResult:
        """
        모든 Match에 대해 융합 파이프라인을 실행합니다.

        target polyline이 비어 있는 Match는 건너뜁니다. lanelet_map과 matches는
        제자리에서 갱신됩니다 (분할 lanelet 추가, 속성 기록, 참조 갱신).

        Returns:
            ConflationResult: 색상 분류, 삭제 대상, 진단 정보
        """
        cache = SplitCache()
        splitter = LaneletSplitter(lanelet_map, cache, self.tolerance)
        validator = LaneConsistencyValidator(lanelet_map)
        result = ConflationResult()

        for match in matches:
            if not match.target_pline:
                continue
            changes = check_tag_change(match.target_pline, self.target_keys)

            # 어느 태그든 바뀌는 지점을 한 번씩만 분할
            pts_merged = merge_point_lists(c.points for c in changes.values())
            if pts_merged:
                created = splitter.split_lanelet(match, pts_merged)
                result.created.extend(ll.id for ll in created)

            set_type_location(lanelet_map, match, changes["highway"])
            for osm_key, ref_key in DefaultParams.TRANSFER_KEYS.items():
                if osm_key in changes:
                    transfer_att(lanelet_map, match, ref_key, changes[osm_key])

            validator.check_lanes(match, changes["lanes"], changes["shoulder"])

        result.colors = list(validator.colors)
        result.deleted = list(validator.deleted)
        result.diagnostics = list(validator.diagnostics)

        LOG.info("Set lanelet subtype and location based on OSM highway tag")
        for osm_key, ref_key in DefaultParams.TRANSFER_KEYS.items():
            LOG.info("Transferred %s to %s", osm_key, ref_key)
        LOG.info(
            "Colorized %d lanelets based on amount of adjacent lanes (%d split, %d removed, %d ambiguous)",
            len(result.colors), len(result.created), len(result.deleted), len(result.diagnostics),
        )
        return result

    @staticmethod
    def create_updated_map(lanelet_map: LaneletMap, result: ConflationResult) -> LaneletMap:
        """삭제 대상 lanelet을 제외한 새 맵"""
        return lanelet_map.create_updated_map(result.deleted)
