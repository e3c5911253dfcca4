# (C) Datadog, Inc. 2018
# All rights reserved
# Licensed under a 3-clause BSD style license (see LICENSE)

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

from .aggregation import aggregate
from .config import (
    DEFAULT_INTERVAL,
    DEFAULT_VCENTER_PORT,
    RUN_MODE_CONCURRENT,
    RUN_MODE_SEQUENTIAL,
    _is_affirmative,
    declared_metrics,
    load_config,
    parse_config,
)
from .errors import CheckException
from .inventory import collect_inventory
from .metrics import counter_names, resolve_metric_groups
from .points import assemble_points
from .query import build_queries, decode_results, query_window, run_queries
from .session import VCenterSession
from .sink import InfluxSink
from .timeout import TimeoutException, timeout
from .util import Timer

# The size of the thread pool used in concurrent mode
DEFAULT_SIZE_POOL = 4


class VSphereInfluxCheck:
    """ Get performance metrics from vCenter servers and write them to InfluxDB.

    Every run does one pass over the configured vCenters (the instances):
    connect, resolve the declared metrics (once per vCenter), enumerate the
    inventory, query the last interval of samples, aggregate them and write
    the resulting points in a single batch.

    By default the vCenters are processed one after the other with no
    deadline. `run_mode: concurrent` processes them in a bounded thread pool
    and `source_timeout` puts a deadline on every vCenter, in both modes.
    """

    OK, WARNING, CRITICAL = (0, 1, 2)

    def __init__(self, name, init_config, instances, sink=None, session_factory=VCenterSession):
        self.name = name
        # Raises ConfigException before any vCenter is polled
        config = parse_config({'init_config': init_config or {}, 'instances': instances or []})
        self.init_config = config['init_config']
        self.instances = config['instances']
        self.log = logging.getLogger('%s.%s' % (__name__, self.name))

        self.interval = int(self.init_config.get('interval', DEFAULT_INTERVAL))
        self.domain = self.init_config.get('domain') or ''
        self.debug = _is_affirmative(self.init_config.get('debug', False))
        self.run_mode = self.init_config.get('run_mode', RUN_MODE_SEQUENTIAL)
        self.pool_size = int(self.init_config.get('threads_count', DEFAULT_SIZE_POOL))
        self.source_timeout = float(self.init_config.get('source_timeout', 0) or 0)
        self.batch_query_size = int(self.init_config.get('batch_query_size', 0) or 0)

        self.declared_metrics = declared_metrics(self.init_config)
        # Metric groups resolved for every vCenter, objectType -> MetricGroup
        self.metric_groups = {}

        self._sink = sink
        self._session_factory = session_factory
        self._write_lock = threading.Lock()
        self._timed_check = None
        if self.source_timeout > 0:
            self._timed_check = timeout(self.source_timeout)(self.check)

    @classmethod
    def from_yaml(cls, path, name='vsphere_influxdb', **kwargs):
        config = load_config(path)
        check = cls(name, config['init_config'], config['instances'], **kwargs)
        return check, check.instances

    @property
    def sink(self):
        if self._sink is None:
            self._sink = InfluxSink.from_config(self.init_config.get('influxdb') or {})
        return self._sink

    def _instance_key(self, instance):
        # Always set and unique once the configuration is parsed
        return instance['name']

    def _get_server_instance(self, instance):
        session = self._session_factory(
            instance.get('host'),
            instance.get('username'),
            instance.get('password'),
            port=int(instance.get('port', DEFAULT_VCENTER_PORT)),
            ssl_verify=_is_affirmative(instance.get('ssl_verify', False)),
            log=self.log,
        )
        session.login()
        return session

    def _cache_metric_groups(self, instance, session):
        """ Resolve the declared metrics against the counters of this vCenter,
        only the first time we see it.
        """
        i_key = self._instance_key(instance)
        if i_key not in self.metric_groups:
            self.log.info("Resolving metrics for vCenter %s", i_key)
            catalog = session.perf_counters()
            self.metric_groups[i_key] = resolve_metric_groups(catalog, self.declared_metrics)
        return self.metric_groups[i_key]

    def collect(self, instance, session):
        """ Enumerate, query and aggregate, returns the points of the cycle """
        i_key = self._instance_key(instance)
        t = Timer()

        groups = self._cache_metric_groups(instance, session)
        if not groups:
            self.log.warning("None of the configured metrics is available on %s", i_key)
            return []

        inventory = collect_inventory(session, list(groups), debug=self.debug)
        self.log.debug("Inventory of %s: %d objects, took %.3fs", i_key, len(inventory.scored_refs), t.step())

        start_time, end_time = query_window(datetime.now(timezone.utc), self.interval)
        queries = build_queries(inventory, groups, start_time, end_time)
        results = run_queries(session, queries, self.batch_query_size)
        self.log.debug("Queried %d objects of %s, took %.3fs", len(queries), i_key, t.step())

        values = aggregate(decode_results(results), counter_names(groups))
        points = assemble_points(inventory, values, instance.get('host'), self.domain,
                                 refs=[query.ref for query in queries])
        self.log.debug("Built %d points for %s, took %.3fs", len(points), i_key, t.step())
        return points

    def check(self, instance):
        """ One full cycle for one vCenter. Returns True when the points were written. """
        i_key = self._instance_key(instance)
        self.log.info("Querying vCenter %s", i_key)
        t = Timer()

        session = self._get_server_instance(instance)
        try:
            points = self.collect(instance, session)
        finally:
            session.logout()

        with self._write_lock:
            written = self.sink.write(points)
        self.log.debug("Finished vCenter %s, took %.3fs", i_key, t.total())
        return written

    def _run_instance(self, instance):
        i_key = self._instance_key(instance)
        run = self._timed_check or self.check
        try:
            written = run(instance)
        except TimeoutException as e:
            self.log.error("vCenter %s timed out: %s", i_key, e)
            return self.CRITICAL
        except CheckException as e:
            self.log.error("Aborting the collection of vCenter %s: %s", i_key, e)
            return self.CRITICAL
        except Exception:
            # One broken vCenter must not stop the others
            self.log.exception("Unexpected error while collecting vCenter %s", i_key)
            return self.CRITICAL
        return self.OK if written else self.WARNING

    def run(self):
        """ Process every configured vCenter once.
        Returns a mapping instance key -> OK / WARNING / CRITICAL.
        """
        if not self.instances:
            self.log.warning("No vCenter configured, nothing to do")
            return {}
        try:
            sink = self.sink
        except CheckException as e:
            self.log.error("Cannot send metrics anywhere: %s", e)
            return {self._instance_key(instance): self.CRITICAL for instance in self.instances}
        self.log.debug("Writing to InfluxDB database %s", sink.database)

        if self.run_mode == RUN_MODE_CONCURRENT:
            self.log.debug("Processing %d vCenters with %d threads", len(self.instances), self.pool_size)
            with ThreadPoolExecutor(max_workers=self.pool_size) as pool:
                statuses = list(pool.map(self._run_instance, self.instances))
        else:
            statuses = [self._run_instance(instance) for instance in self.instances]

        return {self._instance_key(instance): status for instance, status in zip(self.instances, statuses)}
