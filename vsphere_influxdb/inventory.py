# (C) Datadog, Inc. 2018
# All rights reserved
# Licensed under a 3-clause BSD style license (see LICENSE)

"""
Discovery of the monitored objects of a vCenter and of the context used to
tag their points.

Usual hierarchy:
    rootFolder
        - datacenter1
            - cluster1
                - host1
                    - vm1
                    - vm2
            - host2
                - vm3

Clusters are only collected to know which VM belongs to which cluster, they
are never queried for performance metrics.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pprint import pformat
from typing import Dict, List, Optional

from .errors import InventoryException

log = logging.getLogger(__name__)

# The legacy way to find a VM datastore: the first `[...]` of its vmx path,
# e.g. `[datastore1] vm-01/vm-01.vmx`
DATASTORE_PATH_PATTERN = re.compile(r'\[(.*?)\]')

VM_PROPERTIES = ['summary.runtime.host', 'summary.config.vmPathName', 'datastore']
HOST_PROPERTIES = ['summary.config.name', 'summary.hardware.numCpuThreads']
CLUSTER_PROPERTIES = ['name', 'configurationEx']

HOST_CPU_THREADS_FIELD = 'cpu_corecount_total'


class ObjectType(Enum):
    VIRTUAL_MACHINE = 'VirtualMachine'
    HOST_SYSTEM = 'HostSystem'
    CLUSTER = 'ClusterComputeResource'

    @classmethod
    def classify(cls, ref):
        try:
            return cls(ref.type)
        except ValueError:
            return None


@dataclass(frozen=True)
class MorRef:
    """ Identity of a managed object, usable as a dict key """
    type: str
    id: str

    @classmethod
    def from_object(cls, obj):
        return cls(obj._wsdlName, obj._moId)

    def __str__(self):
        return "{0}:{1}".format(self.type, self.id)


@dataclass
class EntityContext:
    display_name: str
    cluster_name: Optional[str] = None
    host_name: Optional[str] = None
    datastore_name: Optional[str] = None

    def tags(self):
        """ Extra tags of the entity, absent values are omitted """
        tags = {}
        if self.cluster_name:
            tags['cluster'] = self.cluster_name
        if self.host_name:
            tags['esx'] = self.host_name
        if self.datastore_name:
            tags['datastore'] = self.datastore_name
        return tags


@dataclass
class Inventory:
    """ What one polling cycle knows about the objects of a vCenter """
    objects: Dict[MorRef, object] = field(default_factory=dict)
    scored_refs: List[MorRef] = field(default_factory=list)
    mor_to_name: Dict[MorRef, str] = field(default_factory=dict)
    contexts: Dict[MorRef, EntityContext] = field(default_factory=dict)
    extra_metrics: Dict[MorRef, Dict[str, int]] = field(default_factory=dict)
    vm_to_cluster: Dict[MorRef, str] = field(default_factory=dict)

    def name(self, ref):
        """ Display name of the entity: its context name if any, its inventory name otherwise """
        context = self.contexts.get(ref)
        if context is not None and context.display_name:
            return context.display_name
        return self.mor_to_name.get(ref, '')

    def context_tags(self, ref):
        context = self.contexts.get(ref)
        if context is None:
            return {}
        return context.tags()


def datastore_from_path(vm_path_name):
    """ `[datastore1] vm/vm.vmx` -> `datastore1` """
    match = DATASTORE_PATH_PATTERN.search(vm_path_name or '')
    if match is None:
        return ''
    return match.group(1)


def _interesting_types(object_types):
    types = list(object_types)
    if ObjectType.CLUSTER.value not in types:
        types.append(ObjectType.CLUSTER.value)
    return types


def discover_objects(session, object_types):
    """ Collect the objects of `object_types` (plus clusters) under every datacenter """
    types = _interesting_types(object_types)
    mors = []
    for datacenter in session.datacenters():
        try:
            mors.extend(session.container_view(datacenter, types, recursive=True))
        except InventoryException as e:
            log.error("Skipping datacenter %s: %s", datacenter, e)
    return mors


def map_vms_to_clusters(cluster_properties, debug=False):
    """ VM -> cluster name, from the HA configuration of every cluster.

    A cluster without configuration or without `dasVmConfig` simply does not
    contribute any VM.
    """
    vm_to_cluster = {}
    for cluster, props in cluster_properties:
        name = props.get('name')
        configuration = props.get('configurationEx')
        das_vm_config = getattr(configuration, 'dasVmConfig', None) or []
        if debug:
            log.debug("Cluster %s configuration:\n%s", name, pformat(configuration))
        for vm_config in das_vm_config:
            vm_to_cluster[MorRef.from_object(vm_config.key)] = name
    return vm_to_cluster


def collect_inventory(session, object_types, debug=False):
    """ Enumerate the monitored objects of a vCenter and build their context.

    Raises InventoryException when a property cannot be fetched: the cycle of
    this source must stop there, nothing is written.
    """
    mors = discover_objects(session, object_types)
    if debug:
        log.debug("Discovered objects:\n%s", pformat(mors))

    inventory = Inventory()
    vms, hosts, clusters = [], [], []
    for mor in mors:
        ref = MorRef.from_object(mor)
        kind = ObjectType.classify(ref)
        if kind is ObjectType.VIRTUAL_MACHINE:
            vms.append(mor)
        elif kind is ObjectType.HOST_SYSTEM:
            hosts.append(mor)
        elif kind is ObjectType.CLUSTER:
            clusters.append(mor)
            continue
        else:
            log.debug("No property fetch nor query for %s objects, ignoring %s", ref.type, ref)
            continue
        if ref not in inventory.objects:
            inventory.objects[ref] = mor
            inventory.scored_refs.append(ref)

    vm_properties = session.retrieve_properties(vms, ObjectType.VIRTUAL_MACHINE.value, VM_PROPERTIES)
    host_properties = session.retrieve_properties(hosts, ObjectType.HOST_SYSTEM.value, HOST_PROPERTIES)
    cluster_properties = session.retrieve_properties(clusters, ObjectType.CLUSTER.value, CLUSTER_PROPERTIES)

    inventory.vm_to_cluster = map_vms_to_clusters(cluster_properties, debug=debug)

    names = session.retrieve_properties(list(inventory.objects.values()), 'ManagedEntity', ['name'])
    for obj, props in names:
        inventory.mor_to_name[MorRef.from_object(obj)] = props.get('name', '')

    host_names = {}
    for host, props in host_properties:
        ref = MorRef.from_object(host)
        # The `name` tag of a host is its inventory name, the ESX name only tags its VMs
        host_names[ref] = props.get('summary.config.name') or inventory.mor_to_name.get(ref, '')
        inventory.contexts[ref] = EntityContext(display_name=inventory.mor_to_name.get(ref, ''))
        threads = props.get('summary.hardware.numCpuThreads')
        if threads is not None:
            inventory.extra_metrics[ref] = {HOST_CPU_THREADS_FIELD: int(threads)}

    host_names.update(_runtime_host_names(session, vm_properties, host_names))
    datastore_names = _datastore_names(session, vm_properties)

    for vm, props in vm_properties:
        ref = MorRef.from_object(vm)
        runtime_host = props.get('summary.runtime.host')
        datastores = props.get('datastore') or []
        if datastores:
            datastore = datastore_names.get(MorRef.from_object(datastores[0]), '')
        else:
            datastore = datastore_from_path(props.get('summary.config.vmPathName'))
        inventory.contexts[ref] = EntityContext(
            display_name=inventory.mor_to_name.get(ref, ''),
            cluster_name=inventory.vm_to_cluster.get(ref),
            host_name=host_names.get(MorRef.from_object(runtime_host)) if runtime_host is not None else None,
            datastore_name=datastore or None,
        )

    if debug:
        log.debug("Entity contexts:\n%s", pformat(inventory.contexts))

    return inventory


def _datastore_names(session, vm_properties):
    datastores = {}
    for _, props in vm_properties:
        for datastore in (props.get('datastore') or [])[:1]:
            datastores.setdefault(MorRef.from_object(datastore), datastore)
    names = session.retrieve_properties(list(datastores.values()), 'Datastore', ['name'])
    return {MorRef.from_object(obj): props.get('name', '') for obj, props in names}


def _runtime_host_names(session, vm_properties, known):
    """ Names of the ESX hosts running the VMs, for the hosts that are not
    monitored themselves.
    """
    hosts = {}
    for _, props in vm_properties:
        runtime_host = props.get('summary.runtime.host')
        if runtime_host is None:
            continue
        host_ref = MorRef.from_object(runtime_host)
        if host_ref not in known:
            hosts.setdefault(host_ref, runtime_host)
    names = session.retrieve_properties(list(hosts.values()), ObjectType.HOST_SYSTEM.value, ['summary.config.name'])
    return {MorRef.from_object(obj): props.get('summary.config.name', '') for obj, props in names}
