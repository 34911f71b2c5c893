import os

import numpy as np
import pytest

from ccl8k import __main__ as entry
from ccl8k import image_io

from helpers import random_mask, rgba


@pytest.fixture
def workdir(tmp_path, monkeypatch):
  monkeypatch.chdir(tmp_path)
  monkeypatch.setenv("CCL_BACKEND", "host")
  os.mkdir("res")
  return tmp_path


def test_main_writes_colorized_output(workdir, capsys):
  mask = random_mask(16, 8, 0.6, seed=5)
  image_io.encode(rgba(mask), "res/8k.png")

  assert entry.main() == 0

  lines = capsys.readouterr().out.splitlines()
  assert lines[:3] == ["processing input image", "shader setup (host backend)", "uploading"]
  assert lines[3:11] == [
    "column", "merge", "n 8, si 0", "n 4, si 1", "n 2, si 2", "n 1, si 3", "relabel", "fetching",
  ]
  assert lines[11].startswith("done ")
  assert lines[-1] == "image saved as output.png"

  result = image_io.decode("output.png")
  assert result.shape == (8, 16, 4)
  # background stays transparent, foreground is opaque
  assert np.all(result[..., 3][~mask] == 0)
  assert np.all(result[..., 3][mask] == 255)


def test_main_with_invariant_checks(workdir, monkeypatch):
  monkeypatch.setenv("CCL_CHECK_INVARIANTS", "1")
  image_io.encode(rgba(random_mask(8, 8, 0.5, seed=2)), "res/8k.png")
  assert entry.main() == 0
  assert os.path.exists("output.png")


def test_main_rejects_width_not_power_of_two(workdir, capsys):
  image_io.encode(rgba(np.ones((4, 6), dtype=bool)), "res/8k.png")
  assert entry.main() == 1
  assert "power of two" in capsys.readouterr().err
  assert not os.path.exists("output.png")


def test_main_missing_input(workdir, capsys):
  assert entry.main() == 1
  assert "ccl-8k:" in capsys.readouterr().err
  assert not os.path.exists("output.png")


def test_main_unknown_backend(workdir, monkeypatch):
  monkeypatch.setenv("CCL_BACKEND", "metal")
  image_io.encode(rgba(np.ones((4, 4), dtype=bool)), "res/8k.png")
  assert entry.main() == 1
