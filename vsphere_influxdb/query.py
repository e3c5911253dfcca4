# (C) Datadog, Inc. 2018
# All rights reserved
# Licensed under a 3-clause BSD style license (see LICENSE)

import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import List, Tuple

from .errors import UnknownSeriesException
from .inventory import MorRef
from .util import chunks

log = logging.getLogger(__name__)

# Default vCenter sampling interval, the shortest retention bucket
REAL_TIME_INTERVAL = 20
# The last second may not be flushed by vCenter yet
FLUSH_DELAY = timedelta(seconds=1)


@dataclass(frozen=True)
class PerfQuery:
    ref: MorRef
    entity: object
    metric_ids: List[Tuple[int, str]]
    start_time: object
    end_time: object
    interval_id: int = REAL_TIME_INTERVAL


@dataclass(frozen=True)
class RawSeries:
    entity: MorRef
    counter_id: int
    instance: str
    samples: Tuple[int, ...]


class ResultKind(Enum):
    """ The result variants QueryPerf can answer with, by WSDL name """
    ENTITY_METRIC = 'PerfEntityMetric'
    ENTITY_METRIC_CSV = 'PerfEntityMetricCSV'
    INT_SERIES = 'PerfMetricIntSeries'
    SERIES_CSV = 'PerfMetricSeriesCSV'

    @classmethod
    def of(cls, obj):
        wsdl_name = getattr(type(obj), '_wsdlName', type(obj).__name__)
        try:
            return cls(wsdl_name)
        except ValueError:
            raise UnknownSeriesException(wsdl_name)


def query_window(now, interval):
    """ [now - interval - 1s, now - 1s] """
    end_time = now - FLUSH_DELAY
    start_time = end_time - timedelta(seconds=interval)
    return start_time, end_time


def build_queries(inventory, groups, start_time, end_time):
    """ One query per scored object, carrying every counter of the metric
    group of its type. Objects without a metric group are not queried.
    """
    queries = []
    for ref in inventory.scored_refs:
        group = groups.get(ref.type)
        if group is None or not group.definitions:
            log.debug("No metric declared for %s objects, not querying %s", ref.type, ref)
            continue
        queries.append(PerfQuery(
            ref=ref,
            entity=inventory.objects[ref],
            metric_ids=group.metric_ids(),
            start_time=start_time,
            end_time=end_time,
        ))
    return queries


def run_queries(session, queries, batch_size=0):
    """ Send the queries, in one call or in batches of `batch_size` """
    if not queries:
        return []
    if not batch_size:
        return list(session.query_perf(queries))
    results = []
    for batch in chunks(queries, batch_size):
        results.extend(session.query_perf(batch))
    return results


def decode_results(results):
    """ Flatten the QueryPerf answer into RawSeries.

    Series are correlated with their entity and counter by the identifiers
    they carry, never by their position in the answer.
    """
    series = []
    for entity_metric in results:
        kind = ResultKind.of(entity_metric)
        if kind is not ResultKind.ENTITY_METRIC:
            raise UnknownSeriesException(kind.value)

        entity = MorRef.from_object(entity_metric.entity)
        for value in entity_metric.value or []:
            value_kind = ResultKind.of(value)
            if value_kind is not ResultKind.INT_SERIES:
                raise UnknownSeriesException(value_kind.value)
            series.append(RawSeries(
                entity=entity,
                counter_id=value.id.counterId,
                instance=value.id.instance or '',
                samples=tuple(value.value or ()),
            ))
    return series
