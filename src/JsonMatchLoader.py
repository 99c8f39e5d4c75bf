"""
JSON 매칭 로더 모듈

외부 map-matching 단계가 생성한 JSON 파일을 읽어 Match 리스트로 변환합니다.

입력 형식:
    {
        "matches": [
            {
                "id": int,
                "ref_pline": [
                    {
                        "id": int,
                        "points": [[point_id, x, y, (z)], ...],
                        "forward": [lanelet_id, ...],
                        "backward": [lanelet_id, ...]
                    },
                    ...
                ],
                "target_pline": [
                    {
                        "id": int,
                        "points": [[point_id, x, y, (z)], ...],
                        "tags": {"highway": "primary", "lanes": "2", ...}
                    },
                    ...
                ]
            },
            ...
        ]
    }

point id 공간은 polyline 종류별로 분리됩니다. ref_pline 점은 맵 점 id를,
target_pline 점은 OSM node id를 쓰므로 두 종류는 같은 id라도 별도 객체입니다.
같은 종류 안에서 같은 point_id는 파일 전체에서 하나의 Point3d 객체로
생성됩니다. OSM way의 연속 세그먼트는 끝점/시작점을 공유하므로, 여러 태그가
같은 위치에서 바뀌면 같은 점 객체가 변화 지점으로 검출되어 한 번만 분할됩니다.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from DataTypes import LineString3d, Point3d
from ObjectTypes import Match, RefSegment

LOG = logging.getLogger("json_match_loader")


class JsonMatchLoader:
    """
    JSON 매칭 파일 로더.

    좌표 변환:
        파일 좌표가 로컬 좌표계이면 map_origin을 더해 맵 좌표계로 옮깁니다.
            map_x = local_x + map_origin[0]
            map_y = local_y + map_origin[1]
    """

    def __init__(self, match_file_path: str, map_origin: Sequence[float] = (0.0, 0.0)):
        self.match_file_path = match_file_path    # 매칭 파일 경로
        self.data: Optional[Dict[str, Any]] = None  # 로드된 JSON 데이터 (lazy loading)
        self.MAP_ORIGIN_X = float(map_origin[0])
        self.MAP_ORIGIN_Y = float(map_origin[1])
        self._ref_points: Dict[int, Point3d] = {}     # 맵 점 id -> 점
        self._target_points: Dict[int, Point3d] = {}  # OSM node id -> 점

    def load(self) -> Dict[str, Any]:
        """
        JSON 파일을 로드하여 캐시합니다.

        Raises:
            FileNotFoundError: 파일이 없는 경우
            json.JSONDecodeError: JSON 형식이 잘못된 경우
        """
        try:
            with open(self.match_file_path, 'r', encoding='utf-8') as file:
                self.data = json.load(file)
        except FileNotFoundError:
            LOG.error("Match file not found at %s", self.match_file_path)
            raise
        except json.JSONDecodeError as e:
            LOG.error("Invalid JSON format in %s: %s", self.match_file_path, e)
            raise
        return self.data

    def parse_point(self, raw: Sequence[float], registry: Dict[int, Point3d]) -> Point3d:
        pid = int(raw[0])
        pt = registry.get(pid)
        if pt is None:
            z = float(raw[3]) if len(raw) > 3 else 0.0
            pt = Point3d(
                id=pid,
                x=float(raw[1]) + self.MAP_ORIGIN_X,
                y=float(raw[2]) + self.MAP_ORIGIN_Y,
                z=z,
            )
            registry[pid] = pt
        return pt

    def parse_linestring(self, raw: Dict[str, Any], registry: Dict[int, Point3d],
                         attributes: Optional[Dict[str, Any]] = None) -> LineString3d:
        pts = [self.parse_point(p, registry) for p in raw.get("points", [])]
        attrs = {str(k): str(v) for k, v in (attributes or {}).items()}
        return LineString3d(id=int(raw["id"]), points=pts, attributes=attrs)

    def parse_match(self, raw: Dict[str, Any]) -> Match:
        ref_pline: List[RefSegment] = []
        for seg in raw.get("ref_pline", []):
            ref_pline.append(RefSegment(
                linestring=self.parse_linestring(seg, self._ref_points),
                forward=[int(i) for i in seg.get("forward", [])],
                backward=[int(i) for i in seg.get("backward", [])],
            ))
        target_pline = [
            self.parse_linestring(seg, self._target_points, seg.get("tags"))
            for seg in raw.get("target_pline", [])
        ]
        return Match(ref_pline=ref_pline, target_pline=target_pline, id=int(raw.get("id", 0)))

    def get_matches(self) -> List[Match]:
        """파일의 모든 매칭을 Match 리스트로 변환"""
        if self.data is None:
            self.load()
        matches = [self.parse_match(m) for m in self.data.get("matches", [])]
        LOG.info("Loaded %d matches from %s", len(matches), self.match_file_path)
        return matches
