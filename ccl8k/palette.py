"""
ラベルを表示色へ写すパレットである（検査・デバッグ用の出力のみで使う）。

行優先の走査で初めて現れたラベルから順にパレットの次の色を割り当て、
成分数がパレットより多ければ先頭へ巻き戻す。背景画素は元の画素のまま残す。
"""

import numpy as np

from .labels import BACKGROUND

PALETTE_HEX = (
    0x580000, 0xff4040, 0xfd6a6a,
    0x001d72, 0x0645ff, 0x5681ff,
    0x004d02, 0x09d20f, 0x76ff7a,
    0x816102, 0xffbf00, 0xffd558,
    0x813f00, 0xff8615, 0xffbf83, 0xffd7b2,
    0x130f0b, 0x420056, 0x8a00b4, 0xde74ff,
    0xbababa, 0x7a7a7a, 0x4b4b4b,
)


def hex_to_rgba(value):
    return ((value >> 16) & 0xff, (value >> 8) & 0xff, value & 0xff, 255)


PALETTE = np.array([hex_to_rgba(v) for v in PALETTE_HEX], dtype=np.uint8)


def first_encounter_order(labels):
    """前景ラベルを、行優先の走査で初めて現れた順に並べて返すである。"""
    labels = np.asarray(labels).ravel()
    fg = labels[labels != BACKGROUND]
    unique, first_index = np.unique(fg, return_index=True)
    return unique[np.argsort(first_index, kind="stable")]


def build_color_table(labels, palette=PALETTE):
    """{label: (r, g, b, a)} を初出順に作るである。"""
    table = {}
    for n, label in enumerate(first_encounter_order(labels)):
        table[int(label)] = tuple(int(c) for c in palette[n % len(palette)])
    return table


def colorize(labels, pixels, palette=PALETTE):
    """
    前景画素をラベルの色で塗った RGBA 画素グリッドを返すである。

    Parameters
    ----------
    labels : array_like
        長さ width * height のラベル配列である。
    pixels : np.ndarray
        元画像 (height, width, 4) である。背景画素はこの値がそのまま残る。
    """
    pixels = np.asarray(pixels)
    out = pixels.copy()
    flat = out.reshape(-1, out.shape[-1])
    labels = np.asarray(labels).ravel()
    if labels.size != flat.shape[0]:
        raise ValueError("{} labels for {} pixels".format(labels.size, flat.shape[0]))

    order = first_encounter_order(labels)
    if order.size == 0:
        return out
    fg = np.flatnonzero(labels != BACKGROUND)
    # rank[j] は昇順 j 番目のラベルの初出順位である。searchsorted でラベル→色番号を引く。
    rank = np.argsort(order, kind="stable")
    sorted_labels = order[rank]
    color_index = rank[np.searchsorted(sorted_labels, labels[fg])] % len(palette)
    flat[fg] = palette[color_index]
    return out
