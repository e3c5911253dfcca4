# (C) Datadog, Inc. 2018
# All rights reserved
# Licensed under a 3-clause BSD style license (see LICENSE)

"""
Reduction of the samples of one performance series to a single value.

vCenter reports -1 for an interval without data. These samples are left out
of every reduction except `latest`, which reports the last sample as is.
"""

import logging
import math
from dataclasses import dataclass

from .inventory import MorRef

log = logging.getLogger(__name__)

NO_DATA = -1


@dataclass(frozen=True)
class AggregatedValue:
    measurement: str
    entity: MorRef
    instance: str
    field_name: str
    value: int


def average(samples):
    """ Mean of the valid samples, half rounded away from zero.
    -1 if there is no valid sample.
    """
    valid = [s for s in samples if s >= 0]
    if not valid:
        return NO_DATA
    return int(math.floor(float(sum(valid)) / len(valid) + 0.5))


def maximum(samples):
    return max((s for s in samples if s >= 0), default=NO_DATA)


def minimum(samples):
    return min((s for s in samples if s >= 0), default=NO_DATA)


def latest(samples):
    if not samples:
        return NO_DATA
    return samples[-1]


def summation(samples):
    return sum(s for s in samples if s > 0)


ROLLUPS = {
    'average': average,
    'maximum': maximum,
    'minimum': minimum,
    'latest': latest,
    'summation': summation,
}


def reduce_series(metric_name, samples):
    """ Reduce `samples` with the rollup named by the suffix of `metric_name` """
    rollup = ROLLUPS.get(metric_name.lower().rsplit('.', 1)[-1])
    if rollup is None:
        log.debug("Unsupported rollup for %s, reporting no data", metric_name)
        return NO_DATA
    return rollup(list(samples))


def aggregate(series, names):
    """ One AggregatedValue per RawSeries.

    `names` maps the counter ids to the declared metric names. Datastore
    counters are never split by instance.
    """
    values = []
    for serie in series:
        metric_name = names.get(serie.counter_id)
        if metric_name is None:
            log.debug("Skipping counter %s of %s, it was not requested", serie.counter_id, serie.entity)
            continue
        metric_name = metric_name.lower()
        field_name = metric_name.replace('.', '_')
        instance = serie.instance.replace('.', '_').lower()
        if 'datastore' in field_name:
            instance = ''
        values.append(AggregatedValue(
            measurement=metric_name.split('.')[0],
            entity=serie.entity,
            instance=instance,
            field_name=field_name,
            value=reduce_series(metric_name, serie.samples),
        ))
    return values
