"""
예외 및 진단 타입 정의 모듈

융합 파이프라인에서 사용하는 오류 분류:
- LaneletLookupError: 속성이 맵에 없는 lanelet id를 참조 (조회 실패)
- AmbiguousPruning: 삭제할 lanelet을 특정할 수 없음 (예외가 아닌 진단 기록)
- UnsupportedMethodError: 지원하지 않는 정합 알고리즘 이름
- ScaleSanityWarning: 정합 스케일 추정값이 1.0에서 크게 벗어남 (경고만)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple


class ConflationError(Exception):
    """융합 파이프라인 오류의 기본 클래스."""


class LaneletLookupError(ConflationError, KeyError):
    """
    lanelet 조회 실패.

    id 조회 실패 시 lanelet_id가, 경계 조회 실패 시 bounds(좌, 우 linestring id)가
    채워집니다.
    """

    def __init__(self, lanelet_id: Optional[int] = None, bounds: Optional[Tuple[int, int]] = None) -> None:
        super().__init__(lanelet_id if bounds is None else bounds)
        self.lanelet_id = lanelet_id
        self.bounds = bounds

    def __str__(self) -> str:
        if self.bounds is not None:
            return f"Couldn't find lanelet with left bound {self.bounds[0]} and right bound {self.bounds[1]}"
        return f"Couldn't find lanelet for id {self.lanelet_id}"


class UnsupportedMethodError(ConflationError, ValueError):
    def __init__(self, method: str) -> None:
        super().__init__(method)
        self.method = method

    def __str__(self) -> str:
        return f"Registration method not supported: {self.method!r}"


class ScaleSanityWarning(UserWarning):
    """정합 스케일이 1.0에서 허용 오차 이상 벗어날 때 발생하는 경고."""


@dataclass
class AmbiguousPruning:
    """
    차선 수 검증 중 삭제 대상 lanelet을 특정하지 못한 세그먼트 기록.

    Attributes:
        segment_index (int): reference polyline 상의 세그먼트 인덱스
        lanes_present (int): 중단 시점의 맵 lanelet 수
        lanes_target (int): OSM 기반 목표 차선 수
        candidates (List[int]): 세그먼트가 참조하던 lanelet id 목록
    """
    segment_index: int
    lanes_present: int
    lanes_target: int
    candidates: List[int]

    def __str__(self) -> str:
        return (
            f"Couldn't identify wrong lanelets clearly on segment {self.segment_index} "
            f"({self.lanes_present} present, {self.lanes_target} expected) - skipping segment"
        )
