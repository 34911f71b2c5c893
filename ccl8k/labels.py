"""
画素ごとのラベル配列（Label Store）である。

ラベルは int32 の一次元配列で、添字は x + y * width である。
  -1     : 背景
  i >= 0 : 同じ配列への親添字。labels[i] == i なら i は成分の根である。
"""

import logging

import numpy as np

from .errors import PreconditionError

logger = logging.getLogger(__name__)

BACKGROUND = -1
LABEL_DTYPE = np.int32


def foreground_mask(pixels):
    """RGBA 画素グリッド (H, W, 4) から前景（alpha != 0）のマスクを返すである。"""
    pixels = np.asarray(pixels)
    if pixels.ndim != 3 or pixels.shape[2] != 4:
        raise PreconditionError("expected an RGBA pixel grid of shape (height, width, 4), got {}".format(pixels.shape))
    return pixels[:, :, 3] != 0


def initial_labels(pixels):
    """前景画素には自身の線形添字を、背景画素には -1 を与えた配列を返すである。"""
    mask = foreground_mask(pixels)
    if mask.size > np.iinfo(LABEL_DTYPE).max:
        raise PreconditionError("image of {} pixels does not fit in int32 labels".format(mask.size))
    index = np.arange(mask.size, dtype=LABEL_DTYPE)
    return np.where(mask.ravel(), index, LABEL_DTYPE(BACKGROUND)).astype(LABEL_DTYPE)


class LabelStore:
    """
    デバイス上のラベルバッファを所有し、初期化（アップロード）と読み出し（ダウンロード）を行う。

    1 回のラベリング実行の間だけ有効で、relabel 完了後は読み出し専用として扱う。
    """

    def __init__(self, service, width, height):
        self.service = service
        self.width = int(width)
        self.height = int(height)
        self.buffer = service.allocate(LABEL_DTYPE, self.width * self.height)

    def __len__(self):
        return self.width * self.height

    def initialize(self, pixels):
        pixels = np.asarray(pixels)
        if pixels.shape[:2] != (self.height, self.width):
            raise PreconditionError("pixel grid has shape {}, expected ({}, {}, 4)".format(
                pixels.shape, self.height, self.width))
        labels = initial_labels(pixels)

        def fill(host):
            host[:] = labels

        self.service.upload(self.buffer, fill)
        logger.debug("uploaded %d labels (%d foreground)", labels.size, np.count_nonzero(labels != BACKGROUND))
        return labels

    def read(self):
        return self.service.download(self.buffer, lambda host: np.array(host, dtype=LABEL_DTYPE, copy=True))
