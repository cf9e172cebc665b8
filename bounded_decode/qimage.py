"""Convert decoded images into QImage for Qt callers.

QImage creation from raw buffers can be done off the GUI thread; creating a
QPixmap from it must still happen on the main thread.
"""

import numpy as np
from PySide6.QtGui import QImage

from .decoder import DecodedImage, PixelFormat

_QT_FORMATS = {
    PixelFormat.GRAY8: QImage.Format.Format_Grayscale8,
    PixelFormat.RGB888: QImage.Format.Format_RGB888,
    PixelFormat.RGBA8888: QImage.Format.Format_RGBA8888,
}


def to_qimage(image: DecodedImage) -> QImage:
    """Return a QImage holding its own copy of ``image``'s pixels."""
    arr = np.ascontiguousarray(image.pixels)
    bytes_per_line = image.width * image.pixel_format.channels
    # .copy() detaches the QImage from the numpy buffer lifetime
    return QImage(arr.data, image.width, image.height, bytes_per_line, _QT_FORMATS[image.pixel_format]).copy()
