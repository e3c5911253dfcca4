# (C) Datadog, Inc. 2018
# All rights reserved
# Licensed under a 3-clause BSD style license (see LICENSE)

"""
Resolution of the metrics declared in the configuration against the
performance counter catalog of a vCenter.

A declared metric is named `group.counter.rollup` (e.g. `cpu.usage.average`),
which is how the performance manager identifies a counter once its group key,
name key and rollup type are joined.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

log = logging.getLogger(__name__)

# Instance selectors understood by the performance manager
AGGREGATE_ONLY = ''
ALL_INSTANCES = '*'


@dataclass(frozen=True)
class CounterInfo:
    """ One entry of the performance manager counter catalog """
    group_key: str
    counter_name: str
    rollup_type: str
    counter_id: int

    @property
    def identifier(self):
        return "{0}.{1}.{2}".format(self.group_key, self.counter_name, self.rollup_type)


@dataclass(frozen=True)
class DeclaredMetric:
    """ A metric as written in the configuration, before resolution """
    name: str
    instances: str = AGGREGATE_ONLY
    object_types: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MetricDefinition:
    name: str
    instances: str = AGGREGATE_ONLY
    counter_id: Optional[int] = None

    @property
    def rollup(self):
        return self.name.rsplit('.', 1)[-1]


@dataclass
class MetricGroup:
    object_type: str
    definitions: List[MetricDefinition] = field(default_factory=list)

    def metric_ids(self):
        """ (counter id, instance selector) pairs to put in a query """
        return [(d.counter_id, d.instances) for d in self.definitions]


def resolve_metric_groups(catalog, declared_metrics):
    """ Match every counter of the catalog with the declared metrics and group
    the resulting definitions by object type.

    A declared metric that matches no counter is dropped: the counter does not
    exist on this vCenter version, it is not an error.
    Returns a dict objectType -> MetricGroup, in discovery order.
    """
    groups = {}
    matched = set()
    for counter in catalog:
        identifier = counter.identifier
        for metric in declared_metrics:
            if metric.name != identifier:
                continue
            matched.add(metric.name)
            definition = MetricDefinition(metric.name, metric.instances, counter.counter_id)
            for object_type in metric.object_types:
                group = groups.get(object_type)
                if group is None:
                    group = groups[object_type] = MetricGroup(object_type)
                group.definitions.append(definition)

    for metric in declared_metrics:
        if metric.name not in matched:
            log.debug("Metric %s is not available on this vCenter, skipping it", metric.name)

    return groups


def counter_names(groups):
    """ counterId -> declared metric name, across all the groups """
    names = {}
    for group in groups.values():
        for definition in group.definitions:
            names[definition.counter_id] = definition.name
    return names
