"""
메인 실행 파일 및 융합 파이프라인

이 모듈은 Lanelet 맵 / OSM 융합 시스템의 메인 실행 파일로, 전체 파이프라인을
구현합니다. 주요 컴포넌트:
- ConflationExporter: 색상 분류 / 삭제 목록 / 진단 정보 JSON 출력
- process_conflation: 메인 파이프라인 함수

처리 파이프라인:
    1. 맵 데이터 로딩 (MapManager)
    2. 매칭 JSON 로딩 및 파싱 (JsonMatchLoader)
    3. 좌표계 정합 (Aligner, 선택적)
    4. 점 자동 생성 속성 제거
    5. 융합 (ConflationEngine)
    6. 삭제 대상 제외 맵 생성 및 저장
    7. JSON 출력 (ConflationExporter)
    8. 시각화 (ConflationVisualizer, 선택적)
"""

import json
import logging
import os
from collections import Counter
from dataclasses import asdict
from typing import Any, Dict, Optional

import DefaultParams
from Align import Aligner
from Conflation import ConflationEngine, ConflationResult
from JsonMatchLoader import JsonMatchLoader
from MapManager import LaneletMap, MapManager
from Visualizer import ConflationVisualizer

LOG = logging.getLogger("start")


class ConflationExporter:
    """Export conflation results to JSON"""

    @staticmethod
    def to_dict(result: ConflationResult, lanelet_map: Optional[LaneletMap] = None) -> Dict[str, Any]:
        counts = Counter(code for _, code in result.colors)
        summary: Dict[str, Any] = {
            'num_colored': len(result.colors),
            'color_counts': dict(counts),
            'num_deleted': len(result.deleted),
            'num_created': len(result.created),
            'num_ambiguous': len(result.diagnostics),
            'colors': [{'lanelet_id': ll_id, 'color': code} for ll_id, code in result.colors],
            'deleted': list(result.deleted),
            'created': list(result.created),
            'diagnostics': [asdict(d) for d in result.diagnostics],
        }
        if lanelet_map is not None:
            summary['num_lanelets'] = len(lanelet_map)
        return summary

    @staticmethod
    def export(result: ConflationResult, output_dir: str, lanelet_map: Optional[LaneletMap] = None) -> str:
        os.makedirs(output_dir, exist_ok=True)
        output_path = os.path.join(output_dir, 'conflation_summary.json')
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(ConflationExporter.to_dict(result, lanelet_map), f, indent=2, ensure_ascii=False)
        return output_path


def process_conflation(map_file_path: str,
                       match_file_path: str,
                       output_map_file: str = DefaultParams.OUTPUT_MAP_FILE,
                       output_dir_json: str = DefaultParams.OUTPUT_DIR_RESULT_FILE,
                       output_dir_viz: str = DefaultParams.OUTPUT_DIR_IMAGE_FILE,
                       visualize: bool = True,
                       transform_map: bool = False,
                       align_method: str = DefaultParams.ALIGN_METHOD) -> ConflationResult:
    """
    Lanelet 맵에 OSM 속성을 융합하는 메인 파이프라인 함수.

    Args:
        map_file_path (str): 입력 Lanelet 맵 SQLite 파일 경로
        match_file_path (str): 매칭 JSON 파일 경로
        output_map_file (str): 융합 결과 맵 SQLite 저장 경로
        output_dir_json (str): 결과 요약 JSON 출력 디렉토리
        output_dir_viz (str): 시각화 이미지 출력 디렉토리
        visualize (bool): 시각화 이미지 생성 여부
        transform_map (bool): 융합 전 맵을 OSM 좌표계로 정합할지 여부
            첫 번째 매칭의 첫 reference / target 세그먼트로 변환을 추정합니다.
        align_method (str): 정합 알고리즘 ("Umeyama" 또는 "ICP")

    출력:
        - 맵 파일: output_map_file
        - 요약 파일: output_dir_json/conflation_summary.json
        - 이미지 파일 (visualize=True): output_dir_viz/conflation.png

    Returns:
        ConflationResult: 색상 분류, 삭제 대상, 진단 정보

    Raises:
        FileNotFoundError: 맵 또는 매칭 파일이 없는 경우
        UnsupportedMethodError: 지원하지 않는 정합 알고리즘
    """
    print("=" * 80)
    print("1. Loading lanelet map")
    print("=" * 80)
    map_manager = MapManager(map_file_path)
    lanelet_map = map_manager.initialize_all_layers()
    print(f"   Lanelets: {len(lanelet_map)}, Areas: {len(lanelet_map.area_layer)}, "
          f"Regulatory elements: {len(lanelet_map.regulatory_element_layer)}")

    print("\n2. Loading matches")
    print("=" * 80)
    matches = JsonMatchLoader(match_file_path).get_matches()
    print(f"   Matches: {len(matches)}")

    if transform_map and matches and matches[0].ref_pline and matches[0].target_pline:
        print("\n3. Aligning map to OSM")
        print("=" * 80)
        aligner = Aligner()
        # OSM -> 맵 변환의 역변환을 맵(및 맵에서 유도된 reference polyline)에 적용
        trans = aligner.get_transformation(
            matches[0].target_pline[0], matches[0].ref_pline[0].linestring, align_method
        )
        Aligner.transform_map(lanelet_map, trans)
        ref_points = {id(pt): pt for m in matches for seg in m.ref_pline for pt in seg.linestring.points}
        Aligner.transform_points(ref_points.values(), trans)
        print(f"   Transformation ({align_method}):\n{trans}")

    print("\n4. Conflating OSM attributes")
    print("=" * 80)
    engine = ConflationEngine()
    removed = engine.remove_tags(lanelet_map)
    print(f"   Removed {removed} auto-generated point tags")
    result = engine.conflate_lanelet_osm(lanelet_map, matches)
    updated_map = engine.create_updated_map(lanelet_map, result)

    print("\n5. Saving results")
    print("=" * 80)
    MapManager.save(updated_map, output_map_file)
    summary_path = ConflationExporter.export(result, output_dir_json, updated_map)
    print(f"   Map: {output_map_file}")
    print(f"   Summary: {summary_path}")

    if visualize:
        img_path = os.path.join(output_dir_viz, "conflation.png")
        ConflationVisualizer(lanelet_map).visualize(result.colors, result.deleted, save_path=img_path)
        print(f"   Image: {img_path}")

    # Statistics
    print("\n6. Statistics")
    print("=" * 80)
    for code, count in sorted(Counter(code for _, code in result.colors).items()):
        print(f"   {code:10s}: {count:5d}")
    print(f"   split     : {len(result.created):5d}")
    print(f"   removed   : {len(result.deleted):5d}")
    print(f"   ambiguous : {len(result.diagnostics):5d}")
    print("=" * 80)
    return result


#==============================================================================
# Entry Point
#==============================================================================

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    print(f"설정:")
    print(f"  - 맵 파일: {DefaultParams.MAP_FILE_PATH}")
    print(f"  - 매칭 파일: {DefaultParams.MATCH_FILE_NAME}")
    print(f"  - 출력 맵: {DefaultParams.OUTPUT_MAP_FILE}")
    print(f"  - 시각화: {'활성화' if DefaultParams.VISUALIZE else '비활성화'}")
    print(f"  - 정합: {DefaultParams.ALIGN_METHOD if DefaultParams.TRANSFORM_MAP else '비활성화'}")
    print()

    process_conflation(
        map_file_path=DefaultParams.MAP_FILE_PATH,
        match_file_path=DefaultParams.MATCH_FILE_NAME,
        output_map_file=DefaultParams.OUTPUT_MAP_FILE,
        output_dir_json=DefaultParams.OUTPUT_DIR_RESULT_FILE,
        output_dir_viz=DefaultParams.OUTPUT_DIR_IMAGE_FILE,
        visualize=DefaultParams.VISUALIZE,
        transform_map=DefaultParams.TRANSFORM_MAP,
        align_method=DefaultParams.ALIGN_METHOD,
    )
