"""
ccl8k で送出する例外の一覧である。

いずれも再試行せず、エントリポイントまでそのまま伝播させる設計である。
"""


class CCLError(Exception):
    """ccl8k の全例外の基底クラスである。"""


class PreconditionError(CCLError, ValueError):
    """入力・設定の誤り（幅が 2 の冪でない、画像が読めない、出力先に書けない等）である。"""


class DispatchError(CCLError, RuntimeError):
    """デバイス側の失敗（確保・カーネル読み込み・起動）である。"""


class InvariantError(CCLError, AssertionError):
    """ラベル森の不変条件が破れた。バリアか union 規則の不具合を意味する。"""


class PipelineAborted(CCLError):
    """フェーズ境界で中断要求を受けた。"""

    def __init__(self, phase, step=None):
        self.phase = phase
        self.step = step
        where = phase if step is None else "{} (step {})".format(phase, step)
        super().__init__("labeling aborted after {}".format(where))
