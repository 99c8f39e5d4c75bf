"""
맵 데이터 관리자 모듈

이 모듈은 Lanelet 맵 컨테이너(LaneletMap)와 SQLite 기반 맵 저장/로딩
(MapManager)을 제공합니다.

LaneletMap 레이어:
- LANELET: 방향성 차선 엣지
- AREA: 영역
- REGULATORY_ELEMENT: 규제 요소
- POLYGON: 폴리곤
점(Point3d)과 linestring은 별도 레이어 없이 위 요소들을 통해 도달합니다.

맵은 추가 전용(append-only)입니다. 융합 중 삭제 대상으로 판정된 lanelet은
살아 있는 맵에서 제거되지 않고, create_updated_map()이 새 맵을 만들 때만
제외됩니다.
"""

from __future__ import annotations

import json
import os
import sqlite3
from typing import Dict, Iterable, List, Optional, Tuple, Union

from shapely import wkb

from DataTypes import Area, Bound, Lanelet, LineString3d, Point3d, Polygon3d, RegulatoryElement
from Exceptions import LaneletLookupError


# 맵 레이어 이름 상수
LAYER_LANELET = "LANELET"                        # lanelet 레이어
LAYER_AREA = "AREA"                              # 영역 레이어
LAYER_REGULATORY_ELEMENT = "REGULATORY_ELEMENT"  # 규제 요소 레이어
LAYER_POLYGON = "POLYGON"                        # 폴리곤 레이어

MapElement = Union[Lanelet, Area, RegulatoryElement, Polygon3d]


class LaneletMap:
    """
    Lanelet / Area / RegulatoryElement / Polygon 네 레이어를 갖는 맵 컨테이너.

    각 레이어는 id -> 객체 딕셔너리이며 삽입 순서를 유지합니다.
    allocate_id()는 맵에 등록된 모든 요소(점, linestring 포함)의 id보다 큰
    새 id를 반환합니다.
    """

    def __init__(self) -> None:
        self._lanelets: Dict[int, Lanelet] = {}
        self._areas: Dict[int, Area] = {}
        self._regulatory_elements: Dict[int, RegulatoryElement] = {}
        self._polygons: Dict[int, Polygon3d] = {}
        self._max_id = 0

    # ----------------------------
    # Layers
    # ----------------------------
    @property
    def lanelet_layer(self) -> List[Lanelet]:
        return list(self._lanelets.values())

    @property
    def area_layer(self) -> List[Area]:
        return list(self._areas.values())

    @property
    def regulatory_element_layer(self) -> List[RegulatoryElement]:
        return list(self._regulatory_elements.values())

    @property
    def polygon_layer(self) -> List[Polygon3d]:
        return list(self._polygons.values())

    def __len__(self) -> int:
        return len(self._lanelets)

    def __contains__(self, lanelet_id: int) -> bool:
        return lanelet_id in self._lanelets

    def linestrings(self) -> List[LineString3d]:
        """
        lanelet 경계와 area 외곽에서 도달 가능한 linestring (중복 제거).

        역방향 뷰로 참조되는 경계는 원본 LineString3d로 반환됩니다.
        """
        seen: Dict[int, LineString3d] = {}
        for ll in self._lanelets.values():
            for ls in (ll.left_bound, ll.right_bound):
                seen.setdefault(id(ls.base()), ls.base())
        for area in self._areas.values():
            for ls in area.outer_bound:
                seen.setdefault(id(ls.base()), ls.base())
        return list(seen.values())

    def points(self) -> List[Point3d]:
        """맵 요소에서 도달 가능한 모든 점 (객체 기준 중복 제거)"""
        seen: Dict[int, Point3d] = {}
        for ls in self.linestrings():
            for pt in ls.points:
                seen.setdefault(id(pt), pt)
        for poly in self._polygons.values():
            for pt in poly.points:
                seen.setdefault(id(pt), pt)
        return list(seen.values())

    # ----------------------------
    # Mutation
    # ----------------------------
    def add(self, element: MapElement) -> None:
        if isinstance(element, Lanelet):
            self._lanelets[element.id] = element
            self._track_linestring(element.left_bound)
            self._track_linestring(element.right_bound)
        elif isinstance(element, Area):
            self._areas[element.id] = element
            for ls in element.outer_bound:
                self._track_linestring(ls)
        elif isinstance(element, RegulatoryElement):
            self._regulatory_elements[element.id] = element
        elif isinstance(element, Polygon3d):
            self._polygons[element.id] = element
            for pt in element.points:
                self._track_id(pt.id)
        else:
            raise TypeError(f"Unsupported map element: {type(element)}")
        self._track_id(element.id)

    def allocate_id(self) -> int:
        self._max_id += 1
        return self._max_id

    def _track_id(self, element_id: int) -> None:
        if element_id > self._max_id:
            self._max_id = element_id

    def _track_linestring(self, ls: Bound) -> None:
        self._track_id(ls.id)
        for pt in ls.points:
            self._track_id(pt.id)

    # ----------------------------
    # Lookup
    # ----------------------------
    def find_lanelet(self, lanelet_id: int) -> Lanelet:
        """
        id로 lanelet을 조회합니다.

        Raises:
            LaneletLookupError: 맵에 해당 id의 lanelet이 없는 경우
        """
        try:
            return self._lanelets[lanelet_id]
        except KeyError:
            raise LaneletLookupError(lanelet_id) from None

    def find_lanelet_from_bounds(self, left: Bound, right: Bound) -> Lanelet:
        for ll in self._lanelets.values():
            if ll.left_bound.id == left.id and ll.right_bound.id == right.id:
                return ll
        raise LaneletLookupError(bounds=(left.id, right.id))

    def get_map_object(self, object_id: int, layer: str) -> Optional[MapElement]:
        store = {
            LAYER_LANELET: self._lanelets,
            LAYER_AREA: self._areas,
            LAYER_REGULATORY_ELEMENT: self._regulatory_elements,
            LAYER_POLYGON: self._polygons,
        }.get(layer.upper())
        if store is None:
            raise ValueError(f"Unknown layer: {layer}")
        return store.get(object_id)

    # ----------------------------
    # Filtered copy
    # ----------------------------
    def create_updated_map(self, deleted: Iterable[int]) -> 'LaneletMap':
        """
        삭제 대상 lanelet을 제외한 새 맵을 생성합니다.

        lanelet 레이어는 deleted에 없는 요소만, area / regulatory element /
        polygon 레이어는 전부 옮깁니다. 점과 linestring은 옮겨진 요소를 통해
        그대로 공유됩니다.
        """
        deleted_ids = set(deleted)
        new_map = LaneletMap()
        for ll in self._lanelets.values():
            if ll.id not in deleted_ids:
                new_map.add(ll)
        for area in self._areas.values():
            new_map.add(area)
        for reg in self._regulatory_elements.values():
            new_map.add(reg)
        for poly in self._polygons.values():
            new_map.add(poly)
        new_map._track_id(self._max_id)
        return new_map


def _query(conn: sqlite3.Connection, sql: str, params: Tuple = ()) -> List[sqlite3.Row]:
    cur = conn.cursor()
    cur.execute(sql, params)
    rows = cur.fetchall()
    cur.close()
    return rows


def _table_exists(conn: sqlite3.Connection, name: str) -> bool:
    cur = conn.cursor()
    cur.execute("SELECT 1 FROM sqlite_master WHERE type='table' AND name=?", (name,))
    ok = cur.fetchone() is not None
    cur.close()
    return ok


def _has_columns(conn: sqlite3.Connection, table: str, columns: Iterable[str]) -> bool:
    cur = conn.cursor()
    cur.execute(f"PRAGMA table_info({table})")
    names = {row[1] for row in cur.fetchall()}
    cur.close()
    return all(col in names for col in columns)


def _attrs(raw: Optional[str]) -> Dict[str, str]:
    if not raw:
        return {}
    return {str(k): str(v) for k, v in json.loads(raw).items()}


_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS points (id INTEGER PRIMARY KEY, x REAL, y REAL, z REAL, attributes TEXT)",
    "CREATE TABLE IF NOT EXISTS linestrings (id INTEGER PRIMARY KEY, point_ids TEXT, attributes TEXT)",
    "CREATE TABLE IF NOT EXISTS lanelets (id INTEGER PRIMARY KEY, left_bound_id INTEGER, "
    "right_bound_id INTEGER, attributes TEXT, polygon_wkb BLOB, "
    "left_inverted INTEGER DEFAULT 0, right_inverted INTEGER DEFAULT 0)",
    "CREATE TABLE IF NOT EXISTS areas (id INTEGER PRIMARY KEY, outer_bound_ids TEXT, attributes TEXT)",
    "CREATE TABLE IF NOT EXISTS regulatory_elements (id INTEGER PRIMARY KEY, attributes TEXT, parameters TEXT)",
    "CREATE TABLE IF NOT EXISTS polygons (id INTEGER PRIMARY KEY, point_ids TEXT, attributes TEXT)",
)


class MapManager:
    """
    SQLite 맵 파일을 LaneletMap으로 로드하고 저장하는 클래스.

    점과 linestring은 id 기준으로 한 번만 생성되므로, 경계를 공유하는 lanelet들은
    로드 후에도 같은 LineString3d 객체를 참조합니다 (융합 시 경계 분할 캐시와
    follows() 연결 판정이 이 공유에 의존).
    left_inverted / right_inverted 컬럼이 1인 경계는 역방향 뷰로 연결됩니다
    (컬럼이 없는 파일은 모두 정방향).

    사용 방법:
        map_manager = MapManager("dataset/lanelet_map.sqlite")
        lanelet_map = map_manager.initialize_all_layers()
        ...
        MapManager.save(updated_map, "output/lanelet_map_conflated.sqlite")
    """

    def __init__(self, sqlite_path: str) -> None:
        if not os.path.exists(sqlite_path):  # 파일 존재 여부 확인
            raise FileNotFoundError(f"SQLite not found: {sqlite_path}")
        self.sqlite_path = sqlite_path

        self._points: Dict[int, Point3d] = {}
        self._linestrings: Dict[int, LineString3d] = {}

    # ----------------------------
    # Initialization / loading
    # ----------------------------
    def initialize_all_layers(self) -> LaneletMap:
        """
        모든 맵 레이어를 로드합니다.

        로드 순서:
            1. Points
            2. LineStrings (점 참조)
            3. Lanelets (linestring 참조)
            4. Areas, RegulatoryElements, Polygons (선택적 테이블)

        Returns:
            LaneletMap: 로드된 맵
        """
        lanelet_map = LaneletMap()
        conn = sqlite3.connect(self.sqlite_path)
        try:
            self._load_points(conn)
            self._load_linestrings(conn)
            self._load_lanelets(conn, lanelet_map)
            self._load_areas(conn, lanelet_map)
            self._load_regulatory_elements(conn, lanelet_map)
            self._load_polygons(conn, lanelet_map)
        finally:
            conn.close()
        return lanelet_map

    def _load_points(self, conn: sqlite3.Connection) -> None:
        for pid, x, y, z, attrs in _query(conn, "SELECT id, x, y, z, attributes FROM points"):
            self._points[int(pid)] = Point3d(
                id=int(pid), x=float(x), y=float(y), z=float(z or 0.0), attributes=_attrs(attrs)
            )

    def _load_linestrings(self, conn: sqlite3.Connection) -> None:
        for lid, point_ids, attrs in _query(conn, "SELECT id, point_ids, attributes FROM linestrings"):
            pts = [self._points[int(pid)] for pid in json.loads(point_ids)]
            self._linestrings[int(lid)] = LineString3d(id=int(lid), points=pts, attributes=_attrs(attrs))

    def _load_lanelets(self, conn: sqlite3.Connection, lanelet_map: LaneletMap) -> None:
        if not _table_exists(conn, "lanelets"):
            return
        has_inverted = _has_columns(conn, "lanelets", ["left_inverted", "right_inverted"])
        inverted_fields = "left_inverted, right_inverted" if has_inverted else "0, 0"
        sql = f"SELECT id, left_bound_id, right_bound_id, attributes, {inverted_fields} FROM lanelets"
        for lid, left_id, right_id, attrs, left_inv, right_inv in _query(conn, sql):
            left = self._linestrings[int(left_id)]
            right = self._linestrings[int(right_id)]
            lanelet_map.add(Lanelet(
                id=int(lid),
                left_bound=left.invert() if left_inv else left,
                right_bound=right.invert() if right_inv else right,
                attributes=_attrs(attrs),
            ))

    def _load_areas(self, conn: sqlite3.Connection, lanelet_map: LaneletMap) -> None:
        if not _table_exists(conn, "areas"):
            return
        for aid, outer_ids, attrs in _query(conn, "SELECT id, outer_bound_ids, attributes FROM areas"):
            outer = [self._linestrings[int(i)] for i in json.loads(outer_ids or "[]")]
            lanelet_map.add(Area(id=int(aid), outer_bound=outer, attributes=_attrs(attrs)))

    def _load_regulatory_elements(self, conn: sqlite3.Connection, lanelet_map: LaneletMap) -> None:
        if not _table_exists(conn, "regulatory_elements"):
            return
        sql = "SELECT id, attributes, parameters FROM regulatory_elements"
        for rid, attrs, params in _query(conn, sql):
            parameters = {str(k): [int(v) for v in vals] for k, vals in json.loads(params or "{}").items()}
            lanelet_map.add(RegulatoryElement(id=int(rid), attributes=_attrs(attrs), parameters=parameters))

    def _load_polygons(self, conn: sqlite3.Connection, lanelet_map: LaneletMap) -> None:
        if not _table_exists(conn, "polygons"):
            return
        for pid, point_ids, attrs in _query(conn, "SELECT id, point_ids, attributes FROM polygons"):
            pts = [self._points[int(i)] for i in json.loads(point_ids or "[]")]
            lanelet_map.add(Polygon3d(id=int(pid), points=pts, attributes=_attrs(attrs)))

    # ----------------------------
    # Saving
    # ----------------------------
    @staticmethod
    def save(lanelet_map: LaneletMap, sqlite_path: str) -> None:
        """
        LaneletMap을 SQLite 파일로 저장합니다 (기존 파일은 덮어씀).

        lanelet 폴리곤은 GIS 도구 확인용으로 polygon_wkb 컬럼에 WKB로도 기록됩니다.
        역방향 뷰 경계는 원본 linestring id와 left_inverted / right_inverted 플래그로
        기록됩니다.
        """
        out_dir = os.path.dirname(sqlite_path)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)
        if os.path.exists(sqlite_path):
            os.remove(sqlite_path)

        conn = sqlite3.connect(sqlite_path)
        try:
            cur = conn.cursor()
            for stmt in _SCHEMA:
                cur.execute(stmt)
            cur.executemany(
                "INSERT INTO points VALUES (?, ?, ?, ?, ?)",
                [(p.id, p.x, p.y, p.z, json.dumps(p.attributes)) for p in lanelet_map.points()],
            )
            cur.executemany(
                "INSERT INTO linestrings VALUES (?, ?, ?)",
                [
                    (ls.id, json.dumps([p.id for p in ls.points]), json.dumps(ls.attributes))
                    for ls in lanelet_map.linestrings()
                ],
            )
            rows = []
            for ll in lanelet_map.lanelet_layer:
                poly = ll.polygon
                blob = None if poly.is_empty else wkb.dumps(poly)
                rows.append((
                    ll.id, ll.left_bound.id, ll.right_bound.id, json.dumps(ll.attributes), blob,
                    int(ll.left_bound.inverted()), int(ll.right_bound.inverted()),
                ))
            cur.executemany("INSERT INTO lanelets VALUES (?, ?, ?, ?, ?, ?, ?)", rows)
            cur.executemany(
                "INSERT INTO areas VALUES (?, ?, ?)",
                [
                    (a.id, json.dumps([ls.id for ls in a.outer_bound]), json.dumps(a.attributes))
                    for a in lanelet_map.area_layer
                ],
            )
            cur.executemany(
                "INSERT INTO regulatory_elements VALUES (?, ?, ?)",
                [
                    (r.id, json.dumps(r.attributes), json.dumps(r.parameters))
                    for r in lanelet_map.regulatory_element_layer
                ],
            )
            cur.executemany(
                "INSERT INTO polygons VALUES (?, ?, ?)",
                [
                    (p.id, json.dumps([pt.id for pt in p.points]), json.dumps(p.attributes))
                    for p in lanelet_map.polygon_layer
                ],
            )
            conn.commit()
            cur.close()
        finally:
            conn.close()
