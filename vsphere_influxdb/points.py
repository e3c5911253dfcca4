# (C) Datadog, Inc. 2018
# All rights reserved
# Licensed under a 3-clause BSD style license (see LICENSE)

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict

from .util import strip_domain

log = logging.getLogger(__name__)


def _utcnow():
    return datetime.now(timezone.utc)


@dataclass
class Point:
    measurement: str
    tags: Dict[str, str] = field(default_factory=dict)
    fields: Dict[str, int] = field(default_factory=dict)
    time: datetime = None

    def as_dict(self):
        """ The point as expected by InfluxDBClient.write_points """
        return {
            'measurement': self.measurement,
            'tags': dict(self.tags),
            'fields': dict(self.fields),
            'time': self.time,
        }


def entity_tags(inventory, ref, source_host, domain):
    """ `host` (the vCenter) and `name` (the entity), both without the domain,
    plus whatever context we know about the entity.
    """
    tags = {
        'host': strip_domain(source_host, domain),
        'name': strip_domain(inventory.name(ref), domain).lower(),
    }
    tags.update(inventory.context_tags(ref))
    return tags


def _by_entity(values):
    grouped = {}
    for value in values:
        grouped.setdefault(value.entity, []).append(value)
    return grouped


def assemble_points(inventory, values, source_host, domain='', refs=None, clock=_utcnow):
    """ Build the points of one cycle from the aggregated values.

    Every entity gets one point named after its type holding its
    entity-level fields. Values reported for an instance (a disk, a NIC...)
    go to their own point per (measurement, entity, instance), tagged with
    `instance`.

    `refs` are the queried entities, in query order. An entity without any
    value still gets its extra metrics (e.g. the host CPU thread count).
    """
    by_entity = _by_entity(values)
    if refs is None:
        refs = list(by_entity)

    points = []
    for ref in refs:
        entity_values = by_entity.get(ref, [])
        tags = entity_tags(inventory, ref, source_host, domain)

        entity_time = clock()
        fields = {}
        instances = {}
        for value in entity_values:
            if not value.instance:
                fields[value.field_name] = value.value
                continue
            key = (value.measurement, tags['name'], value.instance)
            instances.setdefault(key, {})[value.field_name] = value.value

        fields.update(inventory.extra_metrics.get(ref, {}))

        if fields:
            points.append(Point(ref.type.lower(), dict(tags), fields, entity_time))
        else:
            log.debug("No entity level field for %s, skipping its point", ref)

        instance_time = clock()
        for (measurement, _, instance), instance_fields in instances.items():
            instance_tags = dict(tags)
            instance_tags['instance'] = instance
            points.append(Point(measurement, instance_tags, instance_fields, instance_time))

    return points
