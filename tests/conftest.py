import pytest

from helpers import make_cfg, make_rows
from mixpipe.conf import PipelineConf


@pytest.fixture
def rows():
    return make_rows()


@pytest.fixture
def conf():
    return PipelineConf.from_dict(make_cfg())
