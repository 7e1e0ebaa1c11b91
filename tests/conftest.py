import pytest


@pytest.fixture
def output_dir(tmp_path):
    return str(tmp_path / 'mirror')
