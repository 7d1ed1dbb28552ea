"""Conversions from frames and JPEG payloads to Qt pixmaps."""

from __future__ import annotations

from typing import Optional

import cv2
import numpy as np
from PySide6 import QtCore, QtGui


def frame_to_pixmap(image: np.ndarray, max_width: Optional[int] = None) -> QtGui.QPixmap:
    """Convert numpy array frame to QPixmap.

    Args:
        image: Grayscale or BGR image
        max_width: Downscale wider frames to this width before conversion

    Returns:
        QPixmap ready for display
    """
    if max_width and image.shape[1] > max_width:
        scale = max_width / image.shape[1]
        image = cv2.resize(
            image, (max_width, max(1, int(image.shape[0] * scale))), interpolation=cv2.INTER_AREA
        )

    if image.ndim == 2:
        height, width = image.shape
        gray = np.ascontiguousarray(image)
        qimage = QtGui.QImage(
            gray.data,
            width,
            height,
            gray.strides[0],
            QtGui.QImage.Format_Grayscale8,
        )
    else:
        height, width, _ = image.shape
        rgb = np.ascontiguousarray(image[..., 2::-1])  # BGR to RGB
        qimage = QtGui.QImage(
            rgb.data,
            width,
            height,
            rgb.strides[0],
            QtGui.QImage.Format_RGB888,
        )

    # QImage does not own the numpy buffer, copy before it goes out of scope
    return QtGui.QPixmap.fromImage(qimage.copy())


def pixmap_from_jpeg(payload: bytes, max_width: Optional[int] = None) -> QtGui.QPixmap:
    """Decode JPEG bytes into a pixmap, optionally scaled to ``max_width``."""
    pixmap = QtGui.QPixmap()
    pixmap.loadFromData(payload, "JPG")
    if max_width and not pixmap.isNull() and pixmap.width() > max_width:
        pixmap = pixmap.scaledToWidth(max_width, QtCore.Qt.TransformationMode.SmoothTransformation)
    return pixmap
