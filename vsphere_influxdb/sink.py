# (C) Datadog, Inc. 2018
# All rights reserved
# Licensed under a 3-clause BSD style license (see LICENSE)

import logging

import requests
from influxdb import InfluxDBClient
from influxdb.exceptions import InfluxDBClientError, InfluxDBServerError

from .config import DEFAULT_INFLUXDB_PORT, _is_affirmative
from .errors import SinkException

log = logging.getLogger(__name__)

TIME_PRECISION = 's'


class InfluxSink:
    """ Writes the points of a cycle to one InfluxDB database, in a single call.
    A failed write is logged and the batch is dropped, there is no retry.
    """

    def __init__(self, client, database):
        self.client = client
        self.database = database

    @classmethod
    def from_config(cls, influxdb_config):
        host = influxdb_config.get('host')
        database = influxdb_config.get('database')
        if not host or not database:
            raise SinkException("The influxdb section needs a 'host' and a 'database'")

        client = InfluxDBClient(
            host=host,
            port=int(influxdb_config.get('port', DEFAULT_INFLUXDB_PORT)),
            username=influxdb_config.get('username') or 'root',
            password=influxdb_config.get('password') or 'root',
            database=database,
            ssl=_is_affirmative(influxdb_config.get('ssl', False)),
            verify_ssl=_is_affirmative(influxdb_config.get('verify_ssl', False)),
            timeout=influxdb_config.get('timeout'),
        )
        return cls(client, database)

    def write(self, points):
        if not points:
            log.debug("Nothing to send to InfluxDB")
            return True
        try:
            self.client.write_points(
                [point.as_dict() for point in points],
                database=self.database,
                time_precision=TIME_PRECISION,
            )
        except (InfluxDBClientError, InfluxDBServerError, requests.exceptions.RequestException) as e:
            log.error("Could not write %d points to InfluxDB database %s: %s", len(points), self.database, e)
            return False
        log.info("Sent %d points to InfluxDB", len(points))
        return True

    def close(self):
        self.client.close()
