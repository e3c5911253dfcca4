# (C) Datadog, Inc. 2018
# All rights reserved
# Licensed under a 3-clause BSD style license (see LICENSE)

import time

import pytest

from vsphere_influxdb.errors import CheckException
from vsphere_influxdb.timeout import TimeoutException, call_with_deadline, timeout


def test_returns_result():
    @timeout(1)
    def add(a, b):
        return a + b

    assert add(1, 2) == 3


def test_raises_when_too_slow():
    @timeout(0.05)
    def slow():
        time.sleep(1)

    with pytest.raises(TimeoutException):
        slow()


def test_propagates_exceptions():
    @timeout(1)
    def broken():
        raise CheckException("broken")

    with pytest.raises(CheckException, match="broken"):
        broken()


def test_every_call_runs_again_after_a_timeout():
    calls = []

    @timeout(0.05)
    def slow(source):
        calls.append(source)
        time.sleep(0.2)
        return source

    with pytest.raises(TimeoutException):
        slow('vcenter')
    # Let the first worker finish in the background
    time.sleep(0.3)
    with pytest.raises(TimeoutException):
        slow('vcenter')

    assert calls == ['vcenter', 'vcenter']


def test_call_with_deadline():
    assert call_with_deadline(1, max, 3, 7) == 7
    with pytest.raises(TimeoutException, match="within 0.05s"):
        call_with_deadline(0.05, time.sleep, 1)
