# (C) Datadog, Inc. 2018
# All rights reserved
# Licensed under a 3-clause BSD style license (see LICENSE)

import time
from unittest.mock import MagicMock

from pyVmomi import vim

from vsphere_influxdb.inventory import MorRef
from vsphere_influxdb.metrics import ALL_INSTANCES, CounterInfo

VCENTER_HOST = 'vcenter.lab.local'
DOMAIN = '.lab.local'

CPU_USAGE_AVERAGE = 6
MEM_USAGE_AVERAGE = 24
DISK_USAGE_AVERAGE = 125
DATASTORE_READ_LATENCY = 300

CATALOG = [
    CounterInfo('cpu', 'usage', 'average', CPU_USAGE_AVERAGE),
    CounterInfo('cpu', 'usage', 'maximum', 7),
    CounterInfo('mem', 'usage', 'average', MEM_USAGE_AVERAGE),
    CounterInfo('disk', 'usage', 'average', DISK_USAGE_AVERAGE),
    CounterInfo('datastore', 'totalReadLatency', 'average', DATASTORE_READ_LATENCY),
]

INIT_CONFIG = {
    'interval': 60,
    'domain': DOMAIN,
    'influxdb': {'host': 'localhost', 'database': 'vsphere'},
    'metrics': [
        {
            'object_type': ['VirtualMachine'],
            'definition': [
                {'metric': 'cpu.usage.average', 'instances': ''},
                {'metric': 'disk.usage.average', 'instances': '*'},
            ],
        },
    ],
}

INSTANCE = {
    'name': 'vcenter',
    'host': VCENTER_HOST,
    'username': 'monitoring',
    'password': 'secret',
}


class EntityMetric:
    _wsdlName = 'PerfEntityMetric'

    def __init__(self, entity, value):
        self.entity = entity
        self.value = value


class EntityMetricCSV:
    _wsdlName = 'PerfEntityMetricCSV'

    def __init__(self, entity):
        self.entity = entity
        self.value = []


class IntSeries:
    _wsdlName = 'PerfMetricIntSeries'

    def __init__(self, counter_id, instance, value):
        self.id = MagicMock(counterId=counter_id, instance=instance)
        self.value = list(value)


class SeriesCSV:
    _wsdlName = 'PerfMetricSeriesCSV'

    def __init__(self, counter_id, instance, value):
        self.id = MagicMock(counterId=counter_id, instance=instance)
        self.value = value


def ref(obj):
    return MorRef.from_object(obj)


class FakeSession:
    """ In memory vCenter answering the calls of VCenterSession """

    def __init__(self, host=VCENTER_HOST, counters=None, objects=None, properties=None, series=None,
                 query_delay=0):
        self.host = host
        self.counters = CATALOG if counters is None else counters
        self.objects = objects or []
        # MorRef -> {property path: value}
        self.properties = properties or {}
        # (MorRef, counter id) -> {instance: samples}
        self.series = series or {}
        self.query_delay = query_delay
        self.datacenter = vim.Datacenter('datacenter-1')
        self.connected = False
        self.perf_counters_calls = 0
        self.queries = []

    def login(self):
        self.connected = True

    def logout(self):
        self.connected = False

    def perf_counters(self):
        self.perf_counters_calls += 1
        return list(self.counters)

    def datacenters(self):
        return [self.datacenter]

    def container_view(self, scope, types, recursive=True):
        return [obj for obj in self.objects if obj._wsdlName in types]

    def retrieve_properties(self, objects, obj_type, path_set):
        result = []
        for obj in objects:
            props = self.properties.get(ref(obj), {})
            result.append((obj, {path: props[path] for path in path_set if path in props}))
        return result

    def query_perf(self, queries):
        if self.query_delay:
            time.sleep(self.query_delay)
        self.queries.extend(queries)
        results = []
        for query in queries:
            values = []
            for counter_id, selector in query.metric_ids:
                for instance, samples in sorted(self.series.get((query.ref, counter_id), {}).items()):
                    if selector == ALL_INSTANCES or selector == instance:
                        values.append(IntSeries(counter_id, instance, samples))
            results.append(EntityMetric(query.entity, values))
        return results


def make_vcenter(**kwargs):
    """ One cluster `prod` with one ESX host running two VMs:
    `web01` in the cluster HA configuration, `web02` outside of it and
    without the `datastore` property.
    """
    vm1 = vim.VirtualMachine('vm-1')
    vm2 = vim.VirtualMachine('vm-2')
    host = vim.HostSystem('host-1')
    cluster = vim.ClusterComputeResource('domain-c1')
    datastore = vim.Datastore('datastore-1')

    properties = {
        ref(vm1): {
            'name': 'Web01.lab.local',
            'summary.runtime.host': host,
            'summary.config.vmPathName': '[ds-old] web01/web01.vmx',
            'datastore': [datastore],
        },
        ref(vm2): {
            'name': 'web02.lab.local',
            'summary.runtime.host': host,
            'summary.config.vmPathName': '[ds-slow] web02/web02.vmx',
        },
        ref(host): {
            'name': 'esx01',
            'summary.config.name': 'esx01.lab.local',
            'summary.hardware.numCpuThreads': 32,
        },
        ref(cluster): {
            'name': 'prod',
            'configurationEx': MagicMock(dasVmConfig=[MagicMock(key=vm1)]),
        },
        ref(datastore): {'name': 'ds-fast'},
    }
    series = {
        (ref(vm1), CPU_USAGE_AVERAGE): {'': [40, 60]},
        (ref(vm1), DISK_USAGE_AVERAGE): {'scsi0': [20, 30], 'scsi1': [5, 15]},
    }
    kwargs.setdefault('objects', [vm1, vm2, host, cluster])
    kwargs.setdefault('properties', properties)
    kwargs.setdefault('series', series)
    session = FakeSession(**kwargs)
    session.vm1, session.vm2, session.host_system, session.cluster = vm1, vm2, host, cluster
    return session
