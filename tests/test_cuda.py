"""GPU tests. Run with CCL_TEST_CUDA=1 on a machine with a CUDA device."""
import os

import numpy as np
import pytest
from scipy import ndimage

from ccl8k import invariants
from ccl8k.ccl import label_image

from helpers import random_mask, rgba

pytestmark = pytest.mark.skipif(
  os.environ.get("CCL_TEST_CUDA") != "1", reason="set CCL_TEST_CUDA=1 to run on a GPU"
)


@pytest.fixture
def cuda_service():
  from ccl8k.cuda_utils import CudaDispatchService
  service = CudaDispatchService()
  yield service
  service.close()


def test_build_source():
  from ccl8k.cuda_utils import build_source
  source = build_source("merge", {"WIDTH": 8, "HEIGHT": 2})
  assert source == '#define HEIGHT 2\n#define WIDTH 8\n#include "merge.cu"\n'


@pytest.mark.parametrize('width,height', [(1, 7), (64, 64), (512, 300)])
def test_cuda_matches_host(cuda_service, service, width, height):
  mask = random_mask(width, height, 0.58, seed=width + height)
  gpu = label_image(rgba(mask), cuda_service)
  cpu = label_image(rgba(mask), service)
  assert np.array_equal(gpu, cpu)
  invariants.check_roots(gpu)


def test_cuda_all_foreground(cuda_service):
  labels = label_image(rgba(np.ones((256, 1024), dtype=bool)), cuda_service)
  assert np.all(labels == 0)


def test_cuda_component_count(cuda_service):
  mask = random_mask(1024, 512, 0.55, seed=99)
  labels = label_image(rgba(mask), cuda_service)
  _, n = ndimage.label(mask, structure=ndimage.generate_binary_structure(2, 1))
  assert invariants.count_components(labels) == n


def test_cuda_merge_keeps_forest_monotone(cuda_service):
  # invariant checks run at every phase boundary, including each merge round
  mask = random_mask(256, 128, 0.6, seed=4)
  labels = label_image(rgba(mask), cuda_service, check_invariants=True)
  invariants.check_roots(labels)
