"""
8K 画像の連結成分ラベリングを行うエントリポイントである。

入力 res/8k.png を読み込み、alpha != 0 の画素を前景としてラベリングし、
成分ごとにパレット色で塗った画像を output.png へ保存する。

環境変数：
  CCL_BACKEND           "cuda"（既定）または "host"
  CCL_CHECK_INVARIANTS  "1" で各フェーズ境界の不変条件検査を有効にする
"""

import os
import sys
import time

from . import image_io
from .ccl import ConnectedComponentLabeler
from .dispatch import get_service
from .errors import CCLError
from .palette import colorize

INPUT_PATH = "res/8k.png"
OUTPUT_PATH = "output.png"


def main():
    backend = os.environ.get("CCL_BACKEND", "cuda")
    check_invariants = os.environ.get("CCL_CHECK_INVARIANTS", "0") == "1"
    try:
        print("processing input image")
        pixels = image_io.decode(INPUT_PATH)
        height, width = pixels.shape[:2]

        print("shader setup ({} backend)".format(backend))
        with get_service(backend) as service:
            labeler = ConnectedComponentLabeler(service, width, height,
                                                check_invariants=check_invariants,
                                                progress=print)
            labeler.setup()
            print("uploading")
            start = time.time()
            labels = labeler.run(pixels)
            print("done {:.3f} [sec]".format(time.time() - start))
            for phase, seconds in labeler.timings.items():
                print("  {} {:.3f} [msec]".format(phase, 1000 * seconds))

        print("processing output image")
        image_io.encode(colorize(labels, pixels), OUTPUT_PATH)
    except CCLError as err:
        print("ccl-8k: {}".format(err), file=sys.stderr)
        return 1
    print("image saved as {}".format(OUTPUT_PATH))
    return 0


if __name__ == "__main__":
    sys.exit(main())
