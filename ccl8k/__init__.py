"""
ccl8k: GPU 計算パイプラインによる並列連結成分ラベリングである。

ホスト側プログラムがラベル配列をデバイスへ転送し、column / merge / relabel の
3 カーネルを順に起動して結果を読み戻す。ディスパッチ先は DispatchService
インターフェースで抽象化してあり、PyCUDA バックエンド（"cuda"）と
ホスト参照バックエンド（"host"）を差し替えられる。
"""
from .ccl import ConnectedComponentLabeler, check_width, label_image, merge_schedule
from .dispatch import Buffer, DispatchService, Pipeline, execution_configuration, get_service
from .errors import (
    CCLError, DispatchError, InvariantError, PipelineAborted, PreconditionError,
)
from .labels import BACKGROUND, LabelStore, initial_labels
from .palette import PALETTE, build_color_table, colorize

__version__ = "0.1.0"
