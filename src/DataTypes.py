"""
데이터 타입 정의 모듈

이 모듈은 Lanelet 맵을 구성하는 핵심 기본 요소(primitive)를 정의합니다.
주요 데이터 클래스:
- Point3d: 식별자와 속성을 갖는 3차원 점
- LineString3d: 점의 순서열 (lanelet 경계, OSM way 세그먼트 등)
- InvertedLineString3d: LineString3d를 역방향으로 읽는 뷰 (양방향 도로의 공유 경계)
- Lanelet: 좌/우 경계 linestring 두 개로 정의되는 방향성 차선 엣지
- Area, RegulatoryElement, Polygon3d: 융합 과정에서 그대로 전달되는 레이어 요소
- ColorCode: 차선 수 검증 결과 색상 분류

동일성(identity):
    모든 기본 요소는 좌표가 아니라 객체 자체로 비교됩니다 (eq=False).
    같은 id의 linestring은 같은 객체 참조이며, 두 lanelet이 경계를 공유하면
    하나의 LineString3d 객체를 함께 참조합니다. 반대 방향 lanelet은 같은
    linestring을 InvertedLineString3d 뷰로 참조합니다.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Tuple, Union

import numpy as np
from shapely.geometry import LineString, Polygon


class ColorCode:
    """차선 수 검증 색상 분류 값."""
    MATCH = "match"          # OSM lanes 태그와 인접 lanelet 수 일치
    MISMATCH = "mismatch"    # 불일치
    NO_DATA = "no-data"      # lanes 태그 없음
    NO_MATCH = "no-match"    # 어떤 매칭에도 포함되지 않은 lanelet (시각화 전용)


@dataclass(eq=False)
class Point3d:
    """
    맵 점.

    Attributes:
        id (int): 점 식별자
        x, y, z (float): 좌표 (보통 UTM, 미터)
        attributes (Dict[str, str]): 속성 (예: "ele", "local_x")
    """
    id: int
    x: float
    y: float
    z: float = 0.0
    attributes: Dict[str, str] = field(default_factory=dict)

    @property
    def xy(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def __repr__(self) -> str:
        return f"Point3d(id={self.id}, x={self.x:.3f}, y={self.y:.3f}, z={self.z:.3f})"


class _LineStringReadMixin:
    """점 순서열 읽기 연산 (points 속성만 있으면 동작)"""

    points: List[Point3d]

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[Point3d]:
        return iter(self.points)

    def __getitem__(self, idx: int) -> Point3d:
        return self.points[idx]

    def front(self) -> Point3d:
        return self.points[0]

    def back(self) -> Point3d:
        return self.points[-1]

    def reversed_points(self) -> List[Point3d]:
        return self.points[::-1]

    @property
    def coords(self) -> np.ndarray:
        """(N, 3) 좌표 배열."""
        if not self.points:
            return np.zeros((0, 3), dtype=np.float64)
        return np.array([[p.x, p.y, p.z] for p in self.points], dtype=np.float64)

    @property
    def linestring(self) -> LineString:
        """Shapely LineString (3D 좌표 유지)"""
        return LineString([(p.x, p.y, p.z) for p in self.points])


@dataclass(eq=False)
class LineString3d(_LineStringReadMixin):
    """
    점 순서열로 이루어진 폴리라인.

    Lanelet 경계, reference polyline 세그먼트, OSM target polyline 세그먼트로
    사용됩니다. 방향 처리를 위해 점 순서를 뒤집어 읽어야 할 때는
    reversed_points()로 읽기 전용 역순 리스트를, invert()로 역방향 뷰를 얻으며
    원본 점 순서는 바뀌지 않습니다.
    """
    id: int
    points: List[Point3d] = field(default_factory=list)
    attributes: Dict[str, str] = field(default_factory=dict)

    def inverted(self) -> bool:
        return False

    def invert(self) -> InvertedLineString3d:
        return InvertedLineString3d(self)

    def base(self) -> LineString3d:
        return self

    def __repr__(self) -> str:
        return f"LineString3d(id={self.id}, points={[p.id for p in self.points]})"


class InvertedLineString3d(_LineStringReadMixin):
    """
    LineString3d의 역방향 뷰.

    id와 속성은 원본과 같고 점 순서만 반대입니다. 원본이 분할되어 점이 바뀌면
    뷰에도 그대로 반영됩니다.
    """

    def __init__(self, parent: LineString3d) -> None:
        self._parent = parent

    @property
    def id(self) -> int:
        return self._parent.id

    @property
    def attributes(self) -> Dict[str, str]:
        return self._parent.attributes

    @property
    def points(self) -> List[Point3d]:
        return self._parent.points[::-1]

    def inverted(self) -> bool:
        return True

    def invert(self) -> LineString3d:
        return self._parent

    def base(self) -> LineString3d:
        return self._parent

    def __repr__(self) -> str:
        return f"InvertedLineString3d(id={self.id}, points={[p.id for p in self.points]})"


Bound = Union[LineString3d, InvertedLineString3d]


@dataclass(eq=False)
class Lanelet:
    """
    방향성 차선 엣지 (lanelet).

    좌/우 경계 linestring 두 개를 소유하며, 주행 방향은 경계 점 순서와 같습니다.
    경계는 공유 linestring의 역방향 뷰(InvertedLineString3d)일 수 있습니다.
    융합 과정에서 분할되면 새 Lanelet이 생성되고 원본의 경계는 분할점까지로
    잘립니다.

    Attributes:
        id (int): lanelet 식별자
        left_bound (Bound): 왼쪽 경계
        right_bound (Bound): 오른쪽 경계
        attributes (Dict[str, str]): 속성 (subtype, location, speed_limit 등)
    """
    id: int
    left_bound: Bound
    right_bound: Bound
    attributes: Dict[str, str] = field(default_factory=dict)

    @property
    def polygon(self) -> Polygon:
        """좌 경계 + 역순 우 경계로 닫은 2D 폴리곤"""
        ring = [p.xy for p in self.left_bound.points]
        ring.extend(p.xy for p in self.right_bound.reversed_points())
        if len(ring) < 3:
            return Polygon()
        return Polygon(ring)

    def __repr__(self) -> str:
        return f"Lanelet(id={self.id}, left={self.left_bound.id}, right={self.right_bound.id})"


@dataclass(eq=False)
class Area:
    id: int
    outer_bound: List[LineString3d] = field(default_factory=list)
    attributes: Dict[str, str] = field(default_factory=dict)


@dataclass(eq=False)
class RegulatoryElement:
    """
    규제 요소 (신호등, 정지선, 우선순위 등).

    parameters는 역할 이름 -> 참조 요소 id 리스트 (예: {"refers": [12], "ref_line": [40]}).
    """
    id: int
    attributes: Dict[str, str] = field(default_factory=dict)
    parameters: Dict[str, List[int]] = field(default_factory=dict)


@dataclass(eq=False)
class Polygon3d:
    id: int
    points: List[Point3d] = field(default_factory=list)
    attributes: Dict[str, str] = field(default_factory=dict)
