"""Pillow による RGBA8 画像の読み書きである。"""

import logging
import os
import tempfile

import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import PreconditionError

logger = logging.getLogger(__name__)


def decode(path):
    """画像を読み込み、形状 (height, width, 4) の uint8 配列を返すである。"""
    try:
        with Image.open(path) as img:
            pixels = np.array(img.convert("RGBA"), dtype=np.uint8)
    except FileNotFoundError as err:
        raise PreconditionError("input image {!r} does not exist".format(path)) from err
    except (UnidentifiedImageError, OSError) as err:
        raise PreconditionError("could not decode {!r}: {}".format(path, err)) from err
    logger.debug("decoded %s: %dx%d", path, pixels.shape[1], pixels.shape[0])
    return pixels


def _default_mode():
    """通常の open() で作られるファイルと同じ、umask を適用したモードである。"""
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def encode(pixels, path):
    """
    RGBA 画素グリッドを path へ書き出すである。

    同じディレクトリの一時ファイルへ書いてから置き換えるため、失敗時に
    書きかけの出力は残らない。形式は path の拡張子で決まる。
    """
    pixels = np.asarray(pixels, dtype=np.uint8)
    directory = os.path.dirname(os.path.abspath(path))
    _, ext = os.path.splitext(path)
    try:
        fd, tmp_path = tempfile.mkstemp(prefix=".ccl8k-", suffix=ext, dir=directory)
    except OSError as err:
        raise PreconditionError("cannot write to {!r}: {}".format(directory, err)) from err
    os.close(fd)
    try:
        Image.fromarray(pixels).save(tmp_path)
        # mkstemp は 0600 で作るため、置き換え前に通常の書き込みと同じモードへ戻す。
        os.chmod(tmp_path, _default_mode())
        os.replace(tmp_path, path)
    except (OSError, ValueError, KeyError) as err:
        os.remove(tmp_path)
        raise PreconditionError("could not write {!r}: {}".format(path, err)) from err
