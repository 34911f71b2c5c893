import pytest

from ccl8k.host_dispatch import HostDispatchService


@pytest.fixture
def service():
  svc = HostDispatchService(max_workers=4)
  yield svc
  svc.close()
