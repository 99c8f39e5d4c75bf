"""
융합 결과 시각화 모듈

차선 수 검증 색상 분류에 따라 lanelet 폴리곤을 칠한 PNG 이미지를 생성합니다.
삭제 대상 lanelet은 점선 외곽선으로 표시합니다.
"""

import logging
import os
from typing import Dict, Iterable, List, Optional, Tuple

import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend to avoid GUI issues
import matplotlib.pyplot as plt
import matplotlib.patches as patches
import numpy as np

import DefaultParams
from DataTypes import ColorCode
from MapManager import LaneletMap

LOG = logging.getLogger("visualizer")


class ConflationVisualizer:

    def __init__(self, lanelet_map: LaneletMap, color_map: Optional[Dict[str, str]] = None):
        self.lanelet_map = lanelet_map
        self.color_map = dict(color_map or DefaultParams.COLOR_MAP)

        # Visualization settings
        self.figsize = (12, 12)
        self.margin = 10.0

    def visualize(self, colors: Iterable[Tuple[int, str]], deleted: Iterable[int] = (),
                  save_path: Optional[str] = None) -> Optional[np.ndarray]:
        """Render all lanelets colored by class and return the RGB image"""
        color_of = dict(colors)
        deleted_ids = set(deleted)

        fig, ax = plt.subplots(figsize=self.figsize)
        try:
            self._render_lanelets(ax, color_of, deleted_ids)
            self._render_legend(ax)
            self._configure_axes(ax)
            img = self._convert_to_image(fig)
            if save_path:
                self._save_image(img, save_path)
            return img
        finally:
            plt.close(fig)

    def _render_lanelets(self, ax, color_of: Dict[int, str], deleted_ids: set):
        for ll in self.lanelet_map.lanelet_layer:
            poly = ll.polygon
            if poly.is_empty:
                continue
            code = color_of.get(ll.id, ColorCode.NO_MATCH)
            xy = np.array(poly.exterior.coords)
            ax.add_patch(patches.Polygon(
                xy,
                closed=True,
                facecolor=self.color_map.get(code, "#ffffff"),
                edgecolor="black",
                linestyle="--" if ll.id in deleted_ids else "-",
                linewidth=1.2 if ll.id in deleted_ids else 0.5,
                alpha=0.8,
            ))

    def _render_legend(self, ax):
        handles = [
            patches.Patch(facecolor=color, edgecolor="black", label=code)
            for code, color in self.color_map.items()
        ]
        ax.legend(handles=handles, loc="upper right")

    def _configure_axes(self, ax):
        """Fit axes to all lanelet bounds"""
        pts: List[Tuple[float, float]] = [p.xy for p in self.lanelet_map.points()]
        if pts:
            arr = np.array(pts)
            ax.set_xlim(arr[:, 0].min() - self.margin, arr[:, 0].max() + self.margin)
            ax.set_ylim(arr[:, 1].min() - self.margin, arr[:, 1].max() + self.margin)
        ax.set_aspect('equal', adjustable='box')
        ax.axis("off")
        plt.tight_layout(pad=0)

    def _convert_to_image(self, fig) -> np.ndarray:
        """Convert matplotlib figure to numpy array"""
        fig.canvas.draw()
        buf = fig.canvas.buffer_rgba()
        img = np.asarray(buf)
        return img[:, :, :3].copy()  # RGBA to RGB

    def _save_image(self, img: np.ndarray, save_path: str) -> None:
        """Save RGB image to file"""
        import cv2

        out_dir = os.path.dirname(save_path)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)

        # Convert RGB to BGR for OpenCV
        img_bgr = cv2.cvtColor(img, cv2.COLOR_RGB2BGR)
        if not cv2.imwrite(save_path, img_bgr):
            raise OSError(f"cv2.imwrite failed for {save_path}")
        LOG.info("Saved conflation image to %s", save_path)
