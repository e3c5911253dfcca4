# (C) Datadog, Inc. 2018
# All rights reserved
# Licensed under a 3-clause BSD style license (see LICENSE)

import logging

from pyVim import connect
from pyVmomi import vim, vmodl

from .config import DEFAULT_VCENTER_PORT
from .errors import ConnectionException, InventoryException, QueryException
from .metrics import CounterInfo


class VCenterSession:
    """ Thin wrapper around a pyVmomi service instance, exposing only the calls
    the collection pipeline needs. Every failure is re-raised as one of our
    classified exceptions.
    """

    def __init__(self, host, username, password, port=DEFAULT_VCENTER_PORT, ssl_verify=False, log=None):
        self.host = host
        self.username = username
        self.password = password
        self.port = port
        self.ssl_verify = ssl_verify
        self.service_instance = None
        self._content = None
        if log:
            self.log = log
        else:
            self.log = logging.getLogger(__name__)

    def __enter__(self):
        self.login()
        return self

    def __exit__(self, *exc_info):
        self.logout()

    def login(self):
        self.log.info("Connecting to vCenter %s", self.host)
        try:
            self.service_instance = connect.SmartConnect(
                host=self.host,
                user=self.username,
                pwd=self.password,
                port=self.port,
                disableSslCertValidation=not self.ssl_verify,
            )
            self._content = self.service_instance.RetrieveContent()
        except Exception as e:
            raise ConnectionException("Connection to {0} failed: {1}".format(self.host, e)) from e

    def logout(self):
        if self.service_instance is None:
            return
        try:
            connect.Disconnect(self.service_instance)
        except Exception as e:
            # The session is thrown away anyway
            self.log.warning("Error while disconnecting from %s: %s", self.host, e)
        self.service_instance = None
        self._content = None

    @property
    def content(self):
        if self._content is None:
            raise ConnectionException("Not connected to {0}".format(self.host))
        return self._content

    def perf_counters(self):
        """ The whole counter catalog of the performance manager """
        try:
            counters = self.content.perfManager.perfCounter
        except Exception as e:
            raise InventoryException("Could not get performance manager counters: {0}".format(e)) from e
        return [
            CounterInfo(
                group_key=counter.groupInfo.key,
                counter_name=counter.nameInfo.key,
                rollup_type=str(counter.rollupType),
                counter_id=counter.key,
            )
            for counter in counters
        ]

    def datacenters(self):
        try:
            children = self.content.rootFolder.childEntity
        except Exception as e:
            raise InventoryException("Could not get root folder: {0}".format(e)) from e
        return [child for child in children if isinstance(child, vim.Datacenter)]

    def container_view(self, scope, types, recursive=True):
        """ Every managed object of one of the `types` (type names) under `scope` """
        vim_types = []
        for type_name in types:
            vim_type = getattr(vim, type_name, None)
            if vim_type is None:
                self.log.warning("Unknown managed object type %s, ignoring it", type_name)
                continue
            vim_types.append(vim_type)
        if not vim_types:
            return []

        try:
            view = self.content.viewManager.CreateContainerView(container=scope, type=vim_types, recursive=recursive)
        except Exception as e:
            raise InventoryException("Could not create container view: {0}".format(e)) from e
        try:
            return list(view.view)
        finally:
            view.Destroy()

    def retrieve_properties(self, objects, obj_type, path_set):
        """ Fetch `path_set` for every object of `objects` in a single property
        collector request. Returns a list of (object, {path: value}).
        """
        if not objects:
            return []
        collector = vmodl.query.PropertyCollector
        filter_spec = collector.FilterSpec(
            objectSet=[collector.ObjectSpec(obj=obj, skip=False) for obj in objects],
            propSet=[collector.PropertySpec(type=getattr(vim, obj_type), pathSet=list(path_set), all=False)],
        )
        try:
            pc = self.content.propertyCollector
            result = pc.RetrievePropertiesEx(specSet=[filter_spec], options=collector.RetrieveOptions())
            contents = []
            while result is not None:
                contents.extend(result.objects or [])
                if not result.token:
                    break
                result = pc.ContinueRetrievePropertiesEx(token=result.token)
        except Exception as e:
            raise InventoryException(
                "Could not retrieve {0} properties from {1}: {2}".format(obj_type, self.host, e)) from e

        return [(oc.obj, {prop.name: prop.val for prop in (oc.propSet or [])}) for oc in contents]

    def query_perf(self, queries):
        """ Run the PerfQuery values through the performance manager """
        specs = [
            vim.PerformanceManager.QuerySpec(
                entity=query.entity,
                startTime=query.start_time,
                endTime=query.end_time,
                intervalId=query.interval_id,
                metricId=[
                    vim.PerformanceManager.MetricId(counterId=counter_id, instance=instance)
                    for counter_id, instance in query.metric_ids
                ],
            )
            for query in queries
        ]
        try:
            return self.content.perfManager.QueryPerf(querySpec=specs) or []
        except Exception as e:
            raise QueryException("Could not request perfs from {0}: {1}".format(self.host, e)) from e
