"""
기본 파라미터 설정 모듈

Lanelet2 맵과 OpenStreetMap(OSM) 속성 융합(conflation) 시스템의 실행 파라미터를
정의합니다. 데이터 파일 경로, 융합 대상 태그, 분할 허용 오차, 정합(alignment)
설정 등을 포함합니다.

참조:
    - Start.py: process_conflation() 메인 파이프라인
    - Conflation.py: ConflationEngine
"""

# ============================================================================
# 데이터 파일 경로 설정
# ============================================================================

MAP_FILE_PATH = "dataset/lanelet_map.sqlite"
"""
입력 Lanelet 맵 SQLite 파일 경로.

MapManager.initialize_all_layers()가 이 파일을 로드합니다.
points / linestrings / lanelets / areas / regulatory_elements / polygons
테이블로 구성됩니다.

참조:
    - MapManager.MapManager.initialize_all_layers(): 맵 로딩
"""

MATCH_FILE_NAME = "dataset/matches.json"
"""
입력 매칭 결과 JSON 파일 경로.

외부 map-matching 단계가 생성한 reference/target polyline 대응 관계입니다.
JsonMatchLoader가 이 파일을 로드하여 Match 리스트로 변환합니다.

형식:
    - ref_pline: 맵 linestring id 와 forward/backward lanelet id 리스트
    - target_pline: OSM way 세그먼트 좌표와 태그

참조:
    - JsonMatchLoader: JSON 매칭 로딩 및 파싱
"""

OUTPUT_MAP_FILE = "./output/lanelet_map_conflated.sqlite"
"""
융합 결과 맵 SQLite 출력 경로.

삭제된 lanelet이 제외된 최종 맵(create_updated_map 결과)이 저장됩니다.
"""

OUTPUT_DIR_RESULT_FILE = "./output"
"""
색상 분류, 삭제 목록, 진단 정보 JSON 출력 디렉토리.

출력 파일 형식:
    - conflation_summary.json: 색상/삭제/진단 요약

참조:
    - Start.ConflationExporter
"""

OUTPUT_DIR_IMAGE_FILE = "./imgs"
"""
시각화 이미지 출력 디렉토리.

ConflationVisualizer가 생성한 PNG 이미지가 저장됩니다.
"""

# ============================================================================
# 처리 옵션 설정
# ============================================================================

VISUALIZE = True
"""
시각화 이미지 생성 여부.

- True: 색상 분류된 lanelet 맵 PNG 이미지 생성
- False: 맵/JSON만 생성
"""

TRANSFORM_MAP = False
"""
융합 전 Lanelet 맵을 OSM 좌표계로 정합할지 여부.

True인 경우 ALIGN_METHOD 알고리즘으로 첫 번째 매칭의 reference/target
polyline 사이 변환을 추정한 뒤 맵 전체 점에 적용합니다.

참조:
    - Align.Aligner
"""

REMOVE_POINT_TAGS = ("local_x", "local_y", "mgrs_code")
"""
VectorMapBuilder가 자동 생성한 점 속성 중 정합 후 더 이상 유효하지 않은 키.

ConflationEngine.remove_tags()가 맵의 모든 점에서 이 키들을 제거합니다.
"""

# ============================================================================
# 융합 설정
# ============================================================================

TARGET_KEYS = (
    "highway",
    "maxspeed",
    "name",
    "oneway",
    "surface",
    "lane_markings",
    "lanes",
    "shoulder",
)
"""
변화 지점을 검출할 OSM 태그 키 (순서 고정).

각 키는 TagChange.check_tag_change()에서 독립적으로 처리되며, 결과는 아래 순서로 사용됩니다.
    - highway: lanelet subtype / location 결정
    - maxspeed, name, oneway, surface, lane_markings: 속성 전달
    - lanes, shoulder: 차선 수 검증
"""

TRANSFER_KEYS = {
    "maxspeed": "speed_limit",
    "name": "road_name",
    "oneway": "one_way",
    "surface": "road_surface",
    "lane_markings": "lane_markings",
}
"""OSM 태그 키 -> Lanelet 속성 키 매핑."""

SPLIT_TOLERANCE = 1e-3
"""
분할점 스냅 허용 오차 (좌표 단위, 보통 미터).

투영점과 가장 가까운 linestring 정점 사이 거리가 이 값보다 작으면
새 점을 만들지 않고 기존 정점을 분할점으로 사용합니다.
"""

HIGHWAY_NONURBAN = ("motorway", "trunk", "motorway_link", "trunk_link")
"""subtype=highway, location=nonurban 으로 매핑되는 OSM highway 값."""

ROAD_URBAN = (
    "primary",
    "secondary",
    "tertiary",
    "unclassified",
    "residential",
    "primary_link",
    "secondary_link",
    "tertiary_link",
    "service",
)
"""subtype=road, location=urban 으로 매핑되는 OSM highway 값."""

SHOULDER_SINGLE = ("yes", "left", "right")
"""차선 수에 1을 더하는 shoulder 값."""

SHOULDER_BOTH = "both"
"""차선 수에 2를 더하는 shoulder 값."""

# ============================================================================
# 정합(alignment) 설정
# ============================================================================

ALIGN_METHOD = "Umeyama"
"""
정합 알고리즘 이름.

- "Umeyama": 등간격 보간점 대응 기반 강체 변환 (스케일 없음)
- "ICP": 최근접점 반복 정합

그 외 값은 UnsupportedMethodError를 발생시킵니다.
"""

ALIGN_NUM_INTER_UME = 100
"""Umeyama 정합 시 각 linestring을 보간할 점 개수."""

SCALE_WARN_TOLERANCE = 0.05
"""
스케일 추정값 경고 허용 오차.

스케일 포함 Umeyama 결과의 스케일이 1.0에서 이 값보다 크게 벗어나면 (축소, 확대
모두) 두 데이터가 서로 대응하지 않을 가능성이 높으므로 ScaleSanityWarning을
발생시킵니다 (처리는 계속).
"""

ICP_MAX_ITERATIONS = 50
"""ICP 최대 반복 횟수."""

ICP_TOLERANCE = 1e-8
"""ICP 수렴 판정 (평균 오차 변화량)."""

# ============================================================================
# 시각화 설정
# ============================================================================

COLOR_MAP = {
    "match": "#4caf50",
    "mismatch": "#f44336",
    "no-data": "#81d4fa",
    "no-match": "#ffffff",
}
"""
색상 분류 -> matplotlib 색상.

    - match: OSM lanes 태그와 인접 lanelet 수 일치 (초록)
    - mismatch: 불일치 (빨강)
    - no-data: lanes 태그 없음 (하늘색)
    - no-match: 매칭되지 않은 lanelet (흰색)
"""
