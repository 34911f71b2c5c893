"""
計算ディスパッチサービスの境界である。

ホスト側プログラムは「確保 → アップロード → カーネル起動 → ダウンロード」の
4 操作だけでデバイスと会話する。ここではその抽象インターフェースと、
全バックエンドで共有する実行構成（execution configuration）の計算を置く。

バックエンド：
- "host" : NumPy + スレッドプールによる参照実装（host_dispatch.py）
- "cuda" : PyCUDA による GPU 実装（cuda_utils.py）
"""

import abc
import logging
import math

import numpy as np

from .errors import DispatchError

logger = logging.getLogger(__name__)

# 1D カーネルの典型的なブロック形状である。
DEFAULT_THREADS_PER_BLOCK = (256, 1, 1)


class Buffer:
    """型付きのデバイス側確保領域のハンドルである。"""

    def __init__(self, dtype, count, handle):
        self.dtype = np.dtype(dtype)
        self.count = int(count)
        self.handle = handle

    @property
    def nbytes(self):
        return self.dtype.itemsize * self.count

    def __repr__(self):
        return "Buffer(dtype={}, count={})".format(self.dtype, self.count)


class Pipeline:
    """
    ロード済みカーネル 1 本である。

    Parameters
    ----------
    name : str
        カーネル名（"column", "merge", "relabel"）。
    kernel : callable
        バックエンド固有の実体（Python 関数 or pycuda.driver.Function）。
    constants : dict
        特殊化定数（WIDTH, HEIGHT 等）である。ロード時に固定される。
    buffers : tuple of Buffer
        バインドされたバッファ群である。
    threads_per_block : tuple of int
        1 ワークグループ内のスレッド形状 (Bx, By, Bz) である。
    block_per_unit : bool
        True なら 1 ユニット = 1 ブロック（ブロック内スレッドが協調する）、
        False なら 1 ユニット = 1 スレッドである。
    """

    def __init__(self, name, kernel, constants=None, buffers=(),
                 threads_per_block=DEFAULT_THREADS_PER_BLOCK, block_per_unit=False):
        self.name = name
        self.kernel = kernel
        self.constants = dict(constants or {})
        self.buffers = tuple(buffers)
        self.threads_per_block = tuple(threads_per_block)
        self.block_per_unit = block_per_unit

    def __repr__(self):
        return "Pipeline({!r}, constants={})".format(self.name, self.constants)


def as_workgroups(workgroups):
    """int または 1〜3 要素のタプルを (Gx, Gy, Gz) に正規化するである。"""
    if isinstance(workgroups, (int, np.integer)):
        workgroups = (int(workgroups),)
    workgroups = tuple(int(w) for w in workgroups)
    if not 1 <= len(workgroups) <= 3:
        raise DispatchError("workgroup counts must have 1 to 3 dimensions: {}".format(workgroups))
    workgroups = workgroups + (1,) * (3 - len(workgroups))
    if any(w < 0 for w in workgroups):
        raise DispatchError("negative workgroup count: {}".format(workgroups))
    return workgroups


def execution_configuration(units, threads_per_block=DEFAULT_THREADS_PER_BLOCK):
    """
    全ユニットを覆うのに必要なグリッド形状を切り上げで求めるである。

    端数スレッドはカーネル側の境界チェック（if (i < n)）で越境を防ぐ前提である。

    Returns
    -------
    tuple of int
        blocks_per_grid = (ceil(Ux/Bx), ceil(Uy/By), ceil(Uz/Bz))
    """
    units = as_workgroups(units)
    return tuple(math.ceil(u / b) for u, b in zip(units, threads_per_block))


class DispatchService(abc.ABC):
    """
    同期的な要求／応答の計算ディスパッチ境界である。

    upload は後続の dispatch が読む前に完了し、dispatch は後続の download が
    読む前に完了する。dispatch の戻りはそのフェーズの全ユニット完了を意味する
    （フェーズ間の完全バリア）。
    """

    name = None

    @abc.abstractmethod
    def allocate(self, dtype, count):
        """要素型 dtype の要素を count 個持つバッファを確保する。"""

    @abc.abstractmethod
    def load_kernel(self, name, constants=None, buffers=()):
        """カーネル name を特殊化定数 constants で読み込み、buffers をバインドする。"""

    @abc.abstractmethod
    def dispatch(self, pipeline, workgroups, push_constants=()):
        """workgroups 個のユニットを起動し、全完了まで待つ。"""

    @abc.abstractmethod
    def upload(self, buffer, fill):
        """ホスト側ステージング配列を fill(host) で埋めてから転送する。"""

    @abc.abstractmethod
    def download(self, buffer, read):
        """バッファをホストへ転送し read(host) の戻り値を返す。"""

    def synchronize(self):
        pass

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


def get_service(name, **options):
    """
    名前からバックエンドを生成するである。

    cuda_utils は PyCUDA を import するため、要求されたときにだけ読み込む。
    """
    logger.debug("creating %s dispatch service", name)
    if name == "host":
        from .host_dispatch import HostDispatchService
        return HostDispatchService(**options)
    if name == "cuda":
        try:
            from .cuda_utils import CudaDispatchService
        except ImportError as err:
            raise DispatchError(
                "the cuda backend needs PyCUDA (pip install 'ccl8k[cuda]'): {}".format(err)
            ) from err
        return CudaDispatchService(**options)
    raise DispatchError("unknown dispatch backend {!r} (expected 'host' or 'cuda')".format(name))
