"""ラベル森の不変条件チェックである。違反は InvariantError として送出する。"""

import numpy as np

from .errors import InvariantError
from .labels import BACKGROUND


def _foreground(labels):
    labels = np.asarray(labels).ravel()
    return labels, np.flatnonzero(labels != BACKGROUND)


def check_background(labels, initial):
    """背景（-1）の位置が初期化時から変わっていないことを確かめる。"""
    labels = np.asarray(labels).ravel()
    initial = np.asarray(initial).ravel()
    moved = np.flatnonzero((labels == BACKGROUND) != (initial == BACKGROUND))
    if moved.size:
        raise InvariantError("background changed at {} pixel(s), first at index {}".format(moved.size, moved[0]))


def check_forest(labels):
    """前景の親は前景であり、かつ自身以下の添字を指す（よって閉路がない）。"""
    labels, fg = _foreground(labels)
    parents = labels[fg]
    if np.any(parents < 0) or np.any(parents >= labels.size):
        raise InvariantError("label out of range")
    bad = fg[parents > fg]
    if bad.size:
        raise InvariantError("label {} points above itself to {}".format(bad[0], labels[bad[0]]))
    bad = fg[labels[parents] == BACKGROUND]
    if bad.size:
        raise InvariantError("label {} points at background pixel {}".format(bad[0], labels[bad[0]]))


def check_roots(labels):
    """relabel 後：全前景画素について labels[labels[i]] == labels[i] である。"""
    check_forest(labels)
    labels, fg = _foreground(labels)
    parents = labels[fg]
    bad = fg[labels[parents] != parents]
    if bad.size:
        raise InvariantError("label {} is not flattened ({} -> {})".format(
            bad[0], labels[bad[0]], labels[labels[bad[0]]]))


def check_monotone(before, after):
    """どのラベルも増加していないことを確かめる。"""
    before = np.asarray(before).ravel()
    after = np.asarray(after).ravel()
    grew = np.flatnonzero(after > before)
    if grew.size:
        i = grew[0]
        raise InvariantError("label {} increased from {} to {}".format(i, before[i], after[i]))


def count_components(labels):
    """生き残った根の個数である。"""
    labels, fg = _foreground(labels)
    return int(np.count_nonzero(labels[fg] == fg))
