"""
並列連結成分ラベリング（column / merge / relabel）のホスト側オーケストレータである。

A Parallel Approach to Object Identification in Large-scale Images
(https://www.academia.edu/29842500/) の手順に従い、

  1. column  : 各列の内部を独立に連結する（width ユニット）
  2. merge   : 隣接する列グループの境界を log2(width) ラウンドで併合する
               （ラウンドごとにユニット数 n = width >> (step+1) が半減する）
  3. relabel : 全画素のラベルを根へ平坦化する（width * height ユニット）

を順に起動する。各 dispatch は全ユニット完了まで戻らないため、
あるフェーズの結果は次フェーズの全ユニットから見える（完全バリア）。
"""

import logging
import time

from . import invariants
from .errors import PipelineAborted, PreconditionError
from .labels import LabelStore

logger = logging.getLogger(__name__)

PHASES = ("column", "merge", "relabel")


def check_width(width):
    """merge の半減スケジュールのため、幅は 2 の冪でなければならない。"""
    if width <= 0 or width & (width - 1):
        raise PreconditionError("image width must be a power of two, got {}".format(width))


def merge_schedule(width):
    """merge の各ラウンドの (step_index, n) を順に返すである。"""
    check_width(width)
    step_index = 0
    n = width >> 1
    while n != 0:
        yield step_index, n
        n >>= 1
        step_index += 1


class ConnectedComponentLabeler:
    """
    1 枚の画像に対して 3 フェーズを順に起動するである。

    Parameters
    ----------
    service : DispatchService
        計算ディスパッチの境界である。このクラスだけがそれを知っている。
    width, height : int
        画像サイズである。width は 2 の冪。
    check_invariants : bool
        True なら各フェーズ境界で不変条件を検査する（デバッグ用）。
    observer : callable, optional
        observer(phase, step) をバリア直後に呼ぶ。merge ではラウンドごとに呼ぶ。
    abort : threading.Event, optional
        フェーズ境界で確認し、セットされていれば PipelineAborted を送出する。
    progress : callable, optional
        progress(message) を各段階の起動前に呼ぶ。順序は "column", "merge",
        ラウンドごとの "n {n}, si {step}", "relabel", "fetching" である。
    """

    def __init__(self, service, width, height, check_invariants=False, observer=None, abort=None,
                 progress=None):
        check_width(width)
        if height <= 0:
            raise PreconditionError("image height must be positive, got {}".format(height))
        self.service = service
        self.width = int(width)
        self.height = int(height)
        self.check_invariants = check_invariants
        self.observer = observer
        self.abort = abort
        self.progress = progress
        self.timings = {}
        self.store = None
        self._initial = None
        self._previous = None
        self.pipelines = {}

    def _constants(self):
        return {"WIDTH": self.width, "HEIGHT": self.height}

    def setup(self):
        """ラベルバッファを確保し、3 本のカーネルを読み込むである。"""
        self.store = LabelStore(self.service, self.width, self.height)
        buffers = (self.store.buffer,)
        for name in PHASES:
            self.pipelines[name] = self.service.load_kernel(name, self._constants(), buffers)

    def run(self, pixels):
        """
        画素グリッド (height, width, 4) をラベリングし、int32 の一次元ラベル配列を返すである。
        """
        if self.store is None:
            self.setup()
        self.timings = {}

        start = time.time()
        self._initial = self.store.initialize(pixels)
        self._previous = self._initial
        self.timings["upload"] = time.time() - start

        self._report("column")
        start = time.time()
        self.service.dispatch(self.pipelines["column"], self.width)
        self._barrier("column")
        self.timings["column"] = time.time() - start

        self._report("merge")
        start = time.time()
        for step_index, n in merge_schedule(self.width):
            self._report("n {}, si {}".format(n, step_index))
            self.service.dispatch(self.pipelines["merge"], n, push_constants=(step_index,))
            self._barrier("merge", step_index)
        self.timings["merge"] = time.time() - start

        self._report("relabel")
        start = time.time()
        self.service.dispatch(self.pipelines["relabel"], self.width * self.height)
        self._barrier("relabel")
        self.timings["relabel"] = time.time() - start

        self._report("fetching")
        start = time.time()
        labels = self.store.read()
        self.timings["download"] = time.time() - start
        if self.check_invariants:
            invariants.check_roots(labels)
        logger.debug("phase timings: %s", self.timings)
        return labels

    def _report(self, message):
        logger.debug(message)
        if self.progress is not None:
            self.progress(message)

    def _barrier(self, phase, step=None):
        self.service.synchronize()
        if self.check_invariants:
            labels = self.store.read()
            invariants.check_background(labels, self._initial)
            invariants.check_forest(labels)
            invariants.check_monotone(self._previous, labels)
            self._previous = labels
        if self.observer is not None:
            self.observer(phase, step)
        if self.abort is not None and self.abort.is_set():
            raise PipelineAborted(phase, step)


def label_image(pixels, service, **options):
    """画素グリッドを service 上でラベリングする簡便関数である。"""
    height, width = pixels.shape[:2]
    return ConnectedComponentLabeler(service, width, height, **options).run(pixels)
