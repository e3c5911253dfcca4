# (C) Datadog, Inc. 2018
# All rights reserved
# Licensed under a 3-clause BSD style license (see LICENSE)

from vsphere_influxdb.config import declared_metrics
from vsphere_influxdb.metrics import (
    CounterInfo,
    DeclaredMetric,
    MetricDefinition,
    MetricGroup,
    counter_names,
    resolve_metric_groups,
)

from .common import CATALOG, CPU_USAGE_AVERAGE, DISK_USAGE_AVERAGE, MEM_USAGE_AVERAGE


def test_counter_identifier():
    assert CounterInfo('cpu', 'usage', 'average', 6).identifier == 'cpu.usage.average'
    assert MetricDefinition('net.bytesRx.average', '*', 12).rollup == 'average'


def test_resolution_groups_by_object_type():
    declared = [
        DeclaredMetric('cpu.usage.average', '', ('VirtualMachine', 'HostSystem')),
        DeclaredMetric('disk.usage.average', '*', ('VirtualMachine',)),
        DeclaredMetric('mem.usage.average', '', ('HostSystem',)),
    ]
    groups = resolve_metric_groups(CATALOG, declared)

    assert sorted(groups) == ['HostSystem', 'VirtualMachine']
    assert groups['VirtualMachine'].metric_ids() == [(CPU_USAGE_AVERAGE, ''), (DISK_USAGE_AVERAGE, '*')]
    assert groups['HostSystem'].metric_ids() == [(CPU_USAGE_AVERAGE, ''), (MEM_USAGE_AVERAGE, '')]

    # Every (object type, counter) pair comes from exactly one declared metric
    pairs = [(object_type, d.counter_id) for object_type, g in groups.items() for d in g.definitions]
    expected = [(t, c.counter_id) for c in CATALOG for m in declared if m.name == c.identifier for t in m.object_types]
    assert sorted(pairs) == sorted(expected)


def test_unknown_metric_is_dropped():
    declared = [
        DeclaredMetric('cpu.usage.average', '', ('VirtualMachine',)),
        DeclaredMetric('net.bytesRx.average', '*', ('VirtualMachine',)),
        DeclaredMetric('gpu.usage.average', '', ('HostSystem',)),
    ]
    groups = resolve_metric_groups(CATALOG, declared)

    assert list(groups) == ['VirtualMachine']
    assert [d.name for d in groups['VirtualMachine'].definitions] == ['cpu.usage.average']


def test_match_is_exact():
    declared = [DeclaredMetric('CPU.usage.average', '', ('VirtualMachine',)),
                DeclaredMetric('cpu.usage', '', ('VirtualMachine',))]
    assert resolve_metric_groups(CATALOG, declared) == {}


def test_duplicates_are_kept():
    declared = [
        DeclaredMetric('cpu.usage.average', '', ('VirtualMachine',)),
        DeclaredMetric('cpu.usage.average', '*', ('VirtualMachine',)),
    ]
    groups = resolve_metric_groups(CATALOG, declared)

    assert groups['VirtualMachine'].metric_ids() == [(CPU_USAGE_AVERAGE, ''), (CPU_USAGE_AVERAGE, '*')]


def test_counter_names():
    groups = {
        'VirtualMachine': MetricGroup('VirtualMachine', [MetricDefinition('cpu.usage.average', '', 6)]),
        'HostSystem': MetricGroup('HostSystem', [
            MetricDefinition('cpu.usage.average', '', 6),
            MetricDefinition('mem.usage.average', '', 24),
        ]),
    }
    assert counter_names(groups) == {6: 'cpu.usage.average', 24: 'mem.usage.average'}


def test_declared_metrics_from_config():
    init_config = {
        'metrics': [
            {'object_type': ['VirtualMachine', 'HostSystem'],
             'definition': [{'metric': 'cpu.usage.average'}, {'instances': '*'}]},
            {'object_type': ['VirtualMachine'],
             'definition': [{'metric': 'disk.usage.average', 'instances': '*'}]},
        ]
    }
    assert declared_metrics(init_config) == [
        DeclaredMetric('cpu.usage.average', '', ('VirtualMachine', 'HostSystem')),
        DeclaredMetric('disk.usage.average', '*', ('VirtualMachine',)),
    ]
    assert declared_metrics({}) == []
