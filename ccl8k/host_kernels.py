"""
ホスト参照バックエンド用のカーネル群である。

cuda/*.cu の各カーネルと同じ契約を Python で書いたもので、1 回の呼び出しが
1 ユニット（列・境界・画素）を処理する。シグネチャは共通で

    kernel(unit, buffers, constants, push_constants)

unit は (x, y, z) のユニット番号、buffers はバインドされた NumPy 配列、
constants は特殊化定数の dict、push_constants は起動ごとの引数である。

同一フェーズ内のユニット同士は書き込み範囲が交わらない（列ごと、
列グループ対ごと）ため、ここではアトミック操作を使わない。
"""

from .labels import BACKGROUND


def find_root(labels, i):
    """
    i から親を辿って根を求め、通過した節点を根へ直接張り替えるである。

    親は常に自身以下の添字を指すため、張り替えは値を減らす方向にしか働かない。
    """
    root = i
    parent = int(labels[root])
    while parent != root:
        root = parent
        parent = int(labels[root])
    while i != root:
        parent = int(labels[i])
        labels[i] = root
        i = parent
    return root


def union(labels, a, b):
    """最小添字規則で a と b の成分を併合し、勝者の根を返すである。"""
    ra = find_root(labels, a)
    rb = find_root(labels, b)
    if ra < rb:
        labels[rb] = ra
        return ra
    if rb < ra:
        labels[ra] = rb
    return rb


def column(unit, buffers, constants, push_constants):
    """列 x を上から下へ走査し、縦に隣接する前景画素を併合する。"""
    (labels,) = buffers
    width, height = constants["WIDTH"], constants["HEIGHT"]
    x = unit[0]
    for y in range(1, height):
        i = x + y * width
        above = i - width
        if labels[i] != BACKGROUND and labels[above] != BACKGROUND:
            union(labels, above, i)


def merge(unit, buffers, constants, push_constants):
    """
    列グループ境界 1 本を解決するである。

    ステップ s ではグループ幅 2^(s+1) の左半分の右端列と右半分の左端列の
    画素対を、各行について併合する。
    """
    (labels,) = buffers
    width, height = constants["WIDTH"], constants["HEIGHT"]
    (step,) = push_constants
    half = 1 << step
    left = unit[0] * (half << 1) + half - 1
    for y in range(height):
        i = left + y * width
        if labels[i] != BACKGROUND and labels[i + 1] != BACKGROUND:
            union(labels, i, i + 1)


def relabel(unit, buffers, constants, push_constants):
    """画素 i のラベルを根（不動点）へ平坦化する。"""
    (labels,) = buffers
    i = unit[0]
    if labels[i] != BACKGROUND:
        labels[i] = find_root(labels, i)


KERNELS = {
    "column": column,
    "merge": merge,
    "relabel": relabel,
}
