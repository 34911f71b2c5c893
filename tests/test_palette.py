import numpy as np

from ccl8k.palette import PALETTE, build_color_table, colorize, first_encounter_order, hex_to_rgba

from helpers import rgba


def test_palette():
  assert len(PALETTE) == 23
  assert hex_to_rgba(0x580000) == (0x58, 0, 0, 255)
  assert tuple(PALETTE[-1]) == (0x4b, 0x4b, 0x4b, 255)


def test_first_encounter_order():
  labels = np.array([-1, 9, 9, 3, -1, 9, 0, 3], dtype=np.int32)
  assert list(first_encounter_order(labels)) == [9, 3, 0]


def test_build_color_table_wraps():
  labels = np.arange(30, dtype=np.int32)[::-1]
  table = build_color_table(labels)
  assert len(table) == 30
  assert table[29] == tuple(PALETTE[0])
  assert table[29 - 23] == tuple(PALETTE[0])
  assert table[28] == tuple(PALETTE[1])


def test_colorize_paints_every_foreground_pixel():
  mask = np.array([[1, 0, 1, 1]], dtype=bool)
  pixels = rgba(mask)
  labels = np.array([0, -1, 2, 2], dtype=np.int32)
  out = colorize(labels, pixels)
  assert tuple(out[0, 0]) == tuple(PALETTE[0])
  assert tuple(out[0, 2]) == tuple(PALETTE[1])
  assert tuple(out[0, 3]) == tuple(PALETTE[1])
  # background copied from the source
  assert tuple(out[0, 1]) == tuple(pixels[0, 1])
  # the source is not modified
  assert pixels[0, 0, 3] == 255 and pixels[0, 0, 0] == 200


def test_colorize_is_deterministic():
  labels = np.array([4, 4, 0, -1, 0, 7], dtype=np.int32)
  pixels = rgba(labels.reshape(2, 3) != -1)
  assert np.array_equal(colorize(labels, pixels), colorize(labels.copy(), pixels.copy()))


def test_colorize_all_background():
  pixels = rgba(np.zeros((2, 2)))
  labels = np.full(4, -1, dtype=np.int32)
  assert np.array_equal(colorize(labels, pixels), pixels)
