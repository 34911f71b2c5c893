import numpy as np


def rgba(mask):
  """Build an RGBA pixel grid whose alpha channel is 255 where mask is set."""
  mask = np.asarray(mask, dtype=bool)
  pixels = np.zeros(mask.shape + (4,), dtype=np.uint8)
  pixels[..., 0] = 200
  pixels[..., 3] = np.where(mask, 255, 0)
  return pixels


def random_mask(width, height, density, seed):
  rng = np.random.default_rng(seed)
  return rng.random((height, width)) < density


def root_of(labels, i):
  while labels[i] != i:
    i = labels[i]
  return int(i)
