# -*- coding: utf-8 -*-
"""
PyCUDA による DispatchService の実装である。

カーネル本体は ./cuda 以下の .cu に置き、SourceModule に include_dirs を渡して
#include で取り込み NVCC で JIT コンパイルする。特殊化定数（WIDTH, HEIGHT）は
ソース先頭の #define として埋め込むため、カーネルごと・画像サイズごとに
別モジュールとしてビルドされる。

補足：
- pycuda.autoinit は import の副作用でデフォルトコンテキストを作るが、
  ここではサービスの寿命とコンテキストの寿命を揃えるため明示的に
  make_context / pop するである。
- バッファは gpuarray.GPUArray であり、to_gpu / set / get で転送する。
"""

import logging
import os

import numpy as np
import pycuda.driver as drv
import pycuda.gpuarray as gpuarray
from pycuda.compiler import SourceModule
from pycuda.tools import clear_context_caches

from .dispatch import (
    Buffer, DispatchService, Pipeline, as_workgroups, execution_configuration,
)
from .errors import DispatchError

logger = logging.getLogger(__name__)

# CUDA C カーネルの外部ファイルを格納したディレクトリの絶対パスである。
cuda_file_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), "cuda")

# NVCC に渡すホストコンパイラ向けオプションの環境変数である。
# Windows/MSVC の警告 4819 抑制用であり、Linux/GCC 環境では実質影響しないである。
os.environ.setdefault("CL", r'-Xcompiler "/wd 4819')

# カーネルごとのブロック形状と、1 ユニット = 1 ブロックかどうかである。
# merge はブロック内スレッドが境界の行を分担する。
KERNEL_LAYOUT = {
    "column": ((256, 1, 1), False),
    "merge": ((256, 1, 1), True),
    "relabel": ((256, 1, 1), False),
}


def build_source(name, constants):
    """
    特殊化定数を #define として前置し、カーネルファイルをインクルードするソースを作るである。

    Parameters
    ----------
    name : str
        カーネル名である。"{name}.cu" を cuda_file_path から探す。
    constants : dict
        {"WIDTH": 8192, "HEIGHT": 4096} のような整数定数である。
    """
    lines = ["#define {} {}".format(key, int(value)) for key, value in sorted(constants.items())]
    lines.append('#include "{}.cu"'.format(name))
    return "\n".join(lines) + "\n"


class CudaDispatchService(DispatchService):
    """
    GPU 上で動く DispatchService である。

    Parameters
    ----------
    device : int
        使用する CUDA デバイス番号である。
    """

    name = "cuda"

    def __init__(self, device=0):
        try:
            drv.init()
            self.device = drv.Device(device)
            self.context = self.device.make_context()
        except drv.Error as err:
            raise DispatchError("could not open CUDA device {}: {}".format(device, err)) from err
        logger.debug("using %s", self.device.name())
        # カーネル実行時間の計測用イベントである。
        self._kernel_s = drv.Event()
        self._kernel_e = drv.Event()

    def allocate(self, dtype, count):
        if count <= 0:
            raise DispatchError("cannot allocate {} elements".format(count))
        try:
            handle = gpuarray.zeros(int(count), dtype=dtype)
        except drv.Error as err:
            raise DispatchError("device allocation of {} x {} failed: {}".format(count, dtype, err)) from err
        return Buffer(dtype, count, handle)

    def load_kernel(self, name, constants=None, buffers=()):
        try:
            threads_per_block, block_per_unit = KERNEL_LAYOUT[name]
        except KeyError:
            raise DispatchError("no CUDA kernel named {!r}".format(name)) from None
        constants = dict(constants or {})
        try:
            module = SourceModule(build_source(name, constants), include_dirs=[cuda_file_path])
            function = module.get_function(name)
        except (drv.CompileError, drv.Error) as err:
            raise DispatchError("could not load kernel {!r}: {}".format(name, err)) from err
        pipeline = Pipeline(name, function, constants, buffers,
                            threads_per_block=threads_per_block, block_per_unit=block_per_unit)
        # モジュールを関数より先に解放させないため保持しておく。
        pipeline.module = module
        return pipeline

    def dispatch(self, pipeline, workgroups, push_constants=()):
        units = as_workgroups(workgroups)
        if pipeline.block_per_unit:
            blocks_per_grid = units
        else:
            blocks_per_grid = execution_configuration(units, pipeline.threads_per_block)
        if 0 in blocks_per_grid:
            return

        # GPUArray はデバイスポインタとして、プッシュ定数は int32 として渡す。
        args = [b.handle for b in pipeline.buffers]
        args += [np.int32(c) for c in push_constants]
        try:
            self._kernel_s.record()
            pipeline.kernel(*args, block=pipeline.threads_per_block, grid=blocks_per_grid)
            self._kernel_e.record()
            # カーネル起動は非同期なので、ここで完了を待ってバリアとするである。
            self._kernel_e.synchronize()
        except drv.Error as err:
            raise DispatchError("kernel {!r} failed: {}".format(pipeline.name, err)) from err
        logger.debug("kernel %s grid=%s block=%s: %.3f [msec]", pipeline.name, blocks_per_grid,
                     pipeline.threads_per_block, self._kernel_s.time_till(self._kernel_e))

    def upload(self, buffer, fill):
        host = np.zeros(buffer.count, dtype=buffer.dtype)
        fill(host)
        try:
            # set() は cudaMemcpy(HostToDevice) を内部で行い、完了までブロッキングする。
            buffer.handle.set(host)
        except drv.Error as err:
            raise DispatchError("upload failed: {}".format(err)) from err

    def download(self, buffer, read):
        try:
            # get() は cudaMemcpy(DeviceToHost) を内部で行い、完了までブロッキングする。
            host = buffer.handle.get()
        except drv.Error as err:
            raise DispatchError("download failed: {}".format(err)) from err
        return read(host)

    def synchronize(self):
        try:
            drv.Context.synchronize()
        except drv.Error as err:
            raise DispatchError("device synchronization failed: {}".format(err)) from err

    def close(self):
        if self.context is not None:
            self.context.pop()
            self.context = None
            clear_context_caches()
