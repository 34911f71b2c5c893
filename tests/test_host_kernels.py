import numpy as np

from ccl8k import host_kernels


def test_find_root_compresses_path():
  labels = np.array([0, 0, 1, 2, 3], dtype=np.int32)
  assert host_kernels.find_root(labels, 4) == 0
  assert list(labels) == [0, 0, 0, 0, 0]


def test_union_by_minimum_index():
  labels = np.arange(6, dtype=np.int32)
  assert host_kernels.union(labels, 5, 2) == 2
  assert labels[5] == 2
  assert host_kernels.union(labels, 1, 5) == 1
  assert labels[2] == 1
  assert host_kernels.union(labels, 5, 1) == 1
  assert host_kernels.find_root(labels, 5) == 1


def test_column_kernel_ignores_background_gaps():
  # one column of height 5: fg, fg, bg, fg, fg
  labels = np.array([0, 1, -1, 3, 4], dtype=np.int32)
  host_kernels.column((0, 0, 0), (labels,), {"WIDTH": 1, "HEIGHT": 5}, ())
  assert list(labels) == [0, 0, -1, 3, 3]


def test_merge_kernel_owns_one_boundary():
  # 4x1 row, step 1 joins columns 1 and 2 only
  labels = np.array([0, 0, 2, 2], dtype=np.int32)
  host_kernels.merge((0, 0, 0), (labels,), {"WIDTH": 4, "HEIGHT": 1}, (1,))
  assert list(labels) == [0, 0, 0, 2]
  host_kernels.relabel((3, 0, 0), (labels,), {"WIDTH": 4, "HEIGHT": 1}, ())
  assert list(labels) == [0, 0, 0, 0]


def test_merge_kernel_boundary_geometry():
  # width 8, step 0, unit 2 owns the boundary between columns 4 and 5
  labels = np.arange(8, dtype=np.int32)
  host_kernels.merge((2, 0, 0), (labels,), {"WIDTH": 8, "HEIGHT": 1}, (0,))
  assert list(labels) == [0, 1, 2, 3, 4, 4, 6, 7]


def test_relabel_leaves_background():
  labels = np.array([-1, 0, 1], dtype=np.int32)
  host_kernels.relabel((0, 0, 0), (labels,), {}, ())
  assert labels[0] == -1


def test_background_marker_is_shared():
  from ccl8k import labels, palette
  assert host_kernels.BACKGROUND is labels.BACKGROUND
  assert palette.BACKGROUND is labels.BACKGROUND
