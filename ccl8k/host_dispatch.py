"""
NumPy とスレッドプールによる参照ディスパッチバックエンドである。

GPU の「グリッド／ブロック」構成をそのまま写し、1 ブロック = 1 タスクとして
ThreadPoolExecutor に投入する。ブロック内のユニットはそのタスク内で順に処理する。
dispatch は全タスクの完了を待ってから戻るため、フェーズ間バリアになる。
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from . import host_kernels
from .dispatch import (
    Buffer, DispatchService, Pipeline, as_workgroups, execution_configuration,
)
from .errors import DispatchError

logger = logging.getLogger(__name__)

# カーネルごとのブロック形状と、1 ユニットを 1 ブロックで受け持つかどうかである。
KERNEL_LAYOUT = {
    "column": ((64, 1, 1), False),
    "merge": ((1, 1, 1), True),
    "relabel": ((1024, 1, 1), False),
}


class HostDispatchService(DispatchService):
    """
    ホスト CPU 上で動く DispatchService である。

    Parameters
    ----------
    max_workers : int, optional
        ワーカースレッド数である。None なら ThreadPoolExecutor の既定値。
    """

    name = "host"

    def __init__(self, max_workers=None):
        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix="ccl8k-host")

    def allocate(self, dtype, count):
        if count <= 0:
            raise DispatchError("cannot allocate {} elements".format(count))
        try:
            handle = np.zeros(count, dtype=dtype)
        except MemoryError as err:
            raise DispatchError("host allocation of {} x {} failed".format(count, dtype)) from err
        return Buffer(dtype, count, handle)

    def load_kernel(self, name, constants=None, buffers=()):
        try:
            kernel = host_kernels.KERNELS[name]
            threads_per_block, block_per_unit = KERNEL_LAYOUT[name]
        except KeyError:
            raise DispatchError("no host kernel named {!r}".format(name)) from None
        return Pipeline(name, kernel, constants, buffers,
                        threads_per_block=threads_per_block, block_per_unit=block_per_unit)

    def dispatch(self, pipeline, workgroups, push_constants=()):
        units = as_workgroups(workgroups)
        if pipeline.block_per_unit:
            blocks_per_grid = units
            threads_per_block = (1, 1, 1)
        else:
            threads_per_block = pipeline.threads_per_block
            blocks_per_grid = execution_configuration(units, threads_per_block)
        logger.debug("dispatch %s units=%s grid=%s block=%s push=%s",
                     pipeline.name, units, blocks_per_grid, threads_per_block, push_constants)

        arrays = tuple(b.handle for b in pipeline.buffers)
        push_constants = tuple(int(c) for c in push_constants)
        start = time.time()
        futures = []
        for bz in range(blocks_per_grid[2]):
            for by in range(blocks_per_grid[1]):
                for bx in range(blocks_per_grid[0]):
                    futures.append(self._executor.submit(
                        self._run_block, pipeline, arrays, push_constants,
                        units, threads_per_block, (bx, by, bz)))

        # 全ブロックの完了を待つ。失敗は最初のものを DispatchError として送出する。
        failure = None
        for future in futures:
            err = future.exception()
            if err is not None and failure is None:
                failure = err
        if failure is not None:
            raise DispatchError("kernel {!r} failed: {}".format(pipeline.name, failure)) from failure
        logger.debug("kernel %s: %.3f [msec]", pipeline.name, 1000 * (time.time() - start))

    @staticmethod
    def _run_block(pipeline, arrays, push_constants, units, threads_per_block, block):
        # ブロック内のスレッド番号を順に回し、範囲外は GPU と同様に捨てる。
        nx, ny, nz = units
        bx, by, bz = threads_per_block
        for tz in range(bz):
            z = block[2] * bz + tz
            if z >= nz:
                break
            for ty in range(by):
                y = block[1] * by + ty
                if y >= ny:
                    break
                for tx in range(bx):
                    x = block[0] * bx + tx
                    if x >= nx:
                        break
                    pipeline.kernel((x, y, z), arrays, pipeline.constants, push_constants)

    def upload(self, buffer, fill):
        host = np.zeros(buffer.count, dtype=buffer.dtype)
        fill(host)
        buffer.handle[:] = host

    def download(self, buffer, read):
        return read(buffer.handle.copy())

    def close(self):
        self._executor.shutdown(wait=True)
