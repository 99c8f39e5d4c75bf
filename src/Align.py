"""
맵 정합(alignment) 모듈

Lanelet 맵과 OSM 데이터를 융합하기 전에 두 데이터의 좌표계를 맞추기 위한
2D 강체 변환(3x3 동차 행렬)을 추정하고 적용합니다.

지원 알고리즘:
- Umeyama: 두 linestring을 같은 개수의 등간격 점으로 보간한 뒤 대응점 기반
  SVD 로 회전/이동 추정 (스케일 없음)
- ICP: 최근접점 대응을 반복 갱신하는 point-to-point 정합

변환 방향:
    추정된 T는 src -> target 방향이며, transform_map / transform_ls 는
    T의 역행렬을 적용합니다.
"""

from __future__ import annotations

import logging
import warnings
from typing import Iterable, List, Sequence

import numpy as np

import DefaultParams
import GeometryPort
from DataTypes import LineString3d, Point3d
from Exceptions import ScaleSanityWarning, UnsupportedMethodError
from MapManager import LaneletMap

LOG = logging.getLogger("align")


def umeyama(src: np.ndarray, dst: np.ndarray, with_scaling: bool = True) -> np.ndarray:
    """
    Umeyama 최소자승 유사 변환 추정.

    Args:
        src: (d, n) 원본 점
        dst: (d, n) 대상 점
        with_scaling: False이면 스케일 1로 고정

    Returns:
        np.ndarray: (d+1, d+1) 동차 변환 행렬
    """
    d, n = src.shape
    src_mean = src.mean(axis=1, keepdims=True)
    dst_mean = dst.mean(axis=1, keepdims=True)
    src_demean = src - src_mean
    dst_demean = dst - dst_mean

    sigma = dst_demean @ src_demean.T / n
    u, s, vt = np.linalg.svd(sigma)
    S = np.eye(d)
    if np.linalg.det(u) * np.linalg.det(vt) < 0:
        S[d - 1, d - 1] = -1.0
    R = u @ S @ vt

    trans = np.eye(d + 1)
    if with_scaling:
        src_var = float((src_demean ** 2).sum() / n)
        c = float(np.trace(np.diag(s) @ S) / src_var) if src_var > 0 else 1.0
        trans[:d, :d] = c * R
    else:
        trans[:d, :d] = R
    trans[:d, d] = (dst_mean - trans[:d, :d] @ src_mean).ravel()
    return trans


def ls2interp_mat2d(ls: LineString3d, num: int) -> np.ndarray:
    """linestring을 num 개의 등간격 2D 점으로 보간한 (2, num) 행렬"""
    total = GeometryPort.length(ls)
    mat = np.zeros((2, num), dtype=np.float64)
    for i, d in enumerate(np.linspace(0.0, total, num)):
        mat[:, i] = GeometryPort.interpolate_at_distance(ls, float(d))
    return mat


class Aligner:
    """
    두 linestring 사이 2D 변환 추정 및 맵 적용.

    사용 예시:
        aligner = Aligner()
        trans = aligner.get_transformation(map_ls, osm_ls, "Umeyama")
        aligner.transform_map(lanelet_map, trans)
    """

    def __init__(self, num_inter_ume: int = DefaultParams.ALIGN_NUM_INTER_UME,
                 scale_tolerance: float = DefaultParams.SCALE_WARN_TOLERANCE,
                 icp_max_iterations: int = DefaultParams.ICP_MAX_ITERATIONS,
                 icp_tolerance: float = DefaultParams.ICP_TOLERANCE) -> None:
        self.num_inter_ume = num_inter_ume
        self.scale_tolerance = scale_tolerance
        self.icp_max_iterations = icp_max_iterations
        self.icp_tolerance = icp_tolerance

    def get_transformation(self, src: LineString3d, target: LineString3d, method: str) -> np.ndarray:
        """
        method 알고리즘으로 src -> target 변환을 추정합니다.

        Raises:
            UnsupportedMethodError: "ICP", "Umeyama" 외의 이름
        """
        if method == "ICP":
            return self.point_transformation_icp(src, target)
        if method == "Umeyama":
            return self.point_transformation_umeyama(src, target)
        LOG.error("Registration method not supported: %s", method)
        raise UnsupportedMethodError(method)

    def point_transformation_umeyama(self, src: LineString3d, target: LineString3d) -> np.ndarray:
        src_mat = ls2interp_mat2d(src, self.num_inter_ume)
        target_mat = ls2interp_mat2d(target, self.num_inter_ume)

        trans = umeyama(src_mat, target_mat, with_scaling=False)

        # 스케일 포함 결과와 비교해 두 데이터가 같은 구간인지 확인
        trans_scaling = umeyama(src_mat, target_mat, with_scaling=True)
        # 회전 행렬 열의 길이가 스케일 (회전 각도와 무관)
        scale = float(np.linalg.norm(trans_scaling[:2, 0]))
        if abs(scale - 1.0) > self.scale_tolerance:
            msg = f"High scaling factor ({scale:.3f}) between map and OSM data. Are you sure they belong together?"
            LOG.warning(msg)
            warnings.warn(msg, ScaleSanityWarning)
        return trans

    def point_transformation_icp(self, src: LineString3d, target: LineString3d) -> np.ndarray:
        src_pts = src.coords[:, :2]
        target_pts = target.coords[:, :2]
        trans = np.eye(3)
        cur = src_pts.copy()
        prev_err = None
        converged = False
        for _ in range(self.icp_max_iterations):
            # brute force 최근접점
            d2 = ((cur[:, None, :] - target_pts[None, :, :]) ** 2).sum(axis=2)
            nn = d2.argmin(axis=1)
            err = float(np.sqrt(d2[np.arange(len(cur)), nn]).mean())
            step = umeyama(cur.T, target_pts[nn].T, with_scaling=False)
            trans = step @ trans
            cur = (step[:2, :2] @ cur.T).T + step[:2, 2]
            if prev_err is not None and abs(prev_err - err) < self.icp_tolerance:
                converged = True
                break
            prev_err = err
        if not converged:
            LOG.warning("ICP has not converged - continuing")
        return trans

    @staticmethod
    def transform_map(lanelet_map: LaneletMap, trans: np.ndarray) -> None:
        """맵의 모든 점에 T^-1 적용 (z 유지)"""
        Aligner.transform_points(lanelet_map.points(), trans)

    @staticmethod
    def transform_points(points: Iterable[Point3d], trans: np.ndarray) -> None:
        inv = np.linalg.inv(trans)
        for pt in points:
            x, y, _ = inv @ np.array([pt.x, pt.y, 1.0])
            pt.x = float(x)
            pt.y = float(y)

    @staticmethod
    def transform_ls(ls: LineString3d, trans: np.ndarray, start_id: int) -> LineString3d:
        """T^-1 을 적용한 새 linestring (z=0). 새 점/linestring id는 start_id부터 부여"""
        inv = np.linalg.inv(trans)
        pts: List[Point3d] = []
        for i, pt in enumerate(ls.points):
            x, y, _ = inv @ np.array([pt.x, pt.y, 1.0])
            pts.append(Point3d(id=start_id + i + 1, x=float(x), y=float(y), z=0.0))
        return LineString3d(id=start_id, points=pts, attributes=dict(ls.attributes))

    @staticmethod
    def get_intersection_nodes(osm_ls: Sequence[LineString3d]) -> List[Point3d]:
        """여러 OSM way에서 두 번 이상 등장하는 점 (교차로 노드)"""
        seen = set()
        nodes: List[Point3d] = []
        for ls in osm_ls:
            for pt in ls.points:
                if pt.id in seen:
                    nodes.append(pt)
                else:
                    seen.add(pt.id)
        return nodes
