# (C) Datadog, Inc. 2018
# All rights reserved
# Licensed under a 3-clause BSD style license (see LICENSE)

import copy
from unittest.mock import MagicMock

import pytest

from .common import INIT_CONFIG, INSTANCE, make_vcenter


@pytest.fixture
def vcenter():
    return make_vcenter()


@pytest.fixture
def sink():
    sink = MagicMock()
    sink.database = 'vsphere'
    sink.write.return_value = True
    return sink


@pytest.fixture
def init_config():
    return copy.deepcopy(INIT_CONFIG)


@pytest.fixture
def instance():
    return copy.deepcopy(INSTANCE)
