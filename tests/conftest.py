import pytest

from fakes import FakeProtocol, RecordingListener, make_record


@pytest.fixture
def record():
    return make_record()


@pytest.fixture
def protocol():
    return FakeProtocol()


@pytest.fixture
def listener():
    return RecordingListener()
