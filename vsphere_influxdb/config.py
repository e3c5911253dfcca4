# (C) Datadog, Inc. 2018
# All rights reserved
# Licensed under a 3-clause BSD style license (see LICENSE)

import logging
from urllib.parse import urlparse

import yaml

from .errors import ConfigException
from .metrics import AGGREGATE_ONLY, DeclaredMetric

log = logging.getLogger(__name__)

DEFAULT_INTERVAL = 60
DEFAULT_INFLUXDB_PORT = 8086
DEFAULT_VCENTER_PORT = 443

RUN_MODE_SEQUENTIAL = 'sequential'
RUN_MODE_CONCURRENT = 'concurrent'
RUN_MODES = (RUN_MODE_SEQUENTIAL, RUN_MODE_CONCURRENT)

# init_config key, type, smallest accepted value
NUMERIC_SETTINGS = (
    ('interval', int, 1),
    ('threads_count', int, 1),
    ('source_timeout', float, 0),
    ('batch_query_size', int, 0),
)

log_level_map = {
    'CRIT': logging.CRITICAL,
    'CRITICAL': logging.CRITICAL,
    'ERR': logging.ERROR,
    'ERROR': logging.ERROR,
    'WARN': logging.WARNING,
    'WARNING': logging.WARNING,
    'INFO': logging.INFO,
    'DEBUG': logging.DEBUG,
    'TRACE': logging.DEBUG,
}


def _is_affirmative(s):
    if s is None:
        return False
    # int or real bool
    if isinstance(s, int):
        return bool(s)
    # try string cast
    return str(s).lower() in ('yes', 'true', '1')


def _get_py_loglevel(l):
    if not l:
        l = 'INFO'
    return log_level_map.get(l.upper(), logging.DEBUG)


def _get_ci(d, key, default=None):
    """ Case insensitive lookup, the legacy JSON configuration was decoded that way """
    if not isinstance(d, dict):
        return default
    for k, v in d.items():
        if k.lower() == key.lower():
            return v
    return default


def legacy_config(document):
    """ Translate the legacy JSON configuration of vsphere-influxdb
    (`VCenters`, `Metrics`, `Interval`, `Domain`, `InfluxDB`) into the
    `init_config` / `instances` layout.
    """
    influx = _get_ci(document, 'InfluxDB') or {}
    influx_hostname = str(_get_ci(influx, 'Hostname') or '')
    influx_url = urlparse(influx_hostname)
    if not influx_url.hostname:
        # Bare hostname without scheme
        influx_url = urlparse('http://' + influx_hostname)

    metrics = []
    for metric in _get_ci(document, 'Metrics') or []:
        metrics.append({
            'object_type': _get_ci(metric, 'ObjectType') or [],
            'definition': [
                {
                    'metric': _get_ci(d, 'Metric'),
                    'instances': _get_ci(d, 'Instances', AGGREGATE_ONLY),
                }
                for d in _get_ci(metric, 'Definition') or []
            ],
        })

    init_config = {
        'interval': _get_ci(document, 'Interval', DEFAULT_INTERVAL),
        'domain': _get_ci(document, 'Domain', ''),
        'metrics': metrics,
        'influxdb': {
            'host': influx_url.hostname,
            'port': influx_url.port or DEFAULT_INFLUXDB_PORT,
            'ssl': influx_url.scheme == 'https',
            'username': _get_ci(influx, 'Username'),
            'password': _get_ci(influx, 'Password'),
            'database': _get_ci(influx, 'Database'),
        },
    }

    instances = []
    for vcenter in _get_ci(document, 'VCenters') or []:
        hostname = _get_ci(vcenter, 'Hostname')
        instances.append({
            'name': hostname,
            'host': hostname,
            'username': _get_ci(vcenter, 'Username'),
            'password': _get_ci(vcenter, 'Password'),
        })

    return {'init_config': init_config, 'instances': instances}


def _check_number(section, key, cast, minimum):
    value = section.get(key)
    if value is None:
        return
    try:
        value = cast(value)
    except (TypeError, ValueError):
        raise ConfigException("'{0}' must be a number, got {1!r}".format(key, value))
    if value < minimum:
        raise ConfigException("'{0}' must be at least {1}, got {2}".format(key, minimum, value))
    section[key] = value


def _check_metrics(metrics):
    if not isinstance(metrics, list):
        raise ConfigException("'metrics' must be a list")
    for metric in metrics:
        if not isinstance(metric, dict):
            raise ConfigException("Every entry of 'metrics' must be a mapping, got {0!r}".format(metric))
        if not isinstance(metric.get('object_type') or [], list):
            raise ConfigException("'object_type' must be a list of object types")
        definitions = metric.get('definition') or []
        if not isinstance(definitions, list) or not all(isinstance(d, dict) for d in definitions):
            raise ConfigException("'definition' must be a list of mappings")


def parse_config(document):
    """ Validate the configuration and fill in the defaults that depend on other keys.
    Raises ConfigException on anything the check could not run with.
    """
    if not isinstance(document, dict):
        raise ConfigException("The configuration must be a mapping, got {0}".format(type(document).__name__))

    if _get_ci(document, 'VCenters') is not None:
        log.debug("Legacy configuration detected, translating it")
        document = legacy_config(document)

    init_config = document.get('init_config') or {}
    instances = document.get('instances') or []
    if not isinstance(init_config, dict):
        raise ConfigException("'init_config' must be a mapping")
    if not isinstance(instances, list):
        raise ConfigException("'instances' must be a list")

    for instance in instances:
        if not isinstance(instance, dict):
            raise ConfigException("Every vCenter instance must be a mapping, got {0!r}".format(instance))
        if not instance.get('host') or not isinstance(instance['host'], str):
            raise ConfigException("Every vCenter instance needs a 'host'")
        if not instance.get('name'):
            instance['name'] = instance['host']
        if not isinstance(instance['name'], str):
            raise ConfigException("Invalid vCenter name {0!r}".format(instance['name']))
        _check_number(instance, 'port', int, 1)

    names = [instance['name'] for instance in instances]
    if len(set(names)) != len(names):
        raise ConfigException("vCenter instance names must be unique, got {0}".format(', '.join(map(str, names))))

    for key, cast, minimum in NUMERIC_SETTINGS:
        _check_number(init_config, key, cast, minimum)
    _check_metrics(init_config.get('metrics') or [])
    influxdb = init_config.get('influxdb') or {}
    if not isinstance(influxdb, dict):
        raise ConfigException("'influxdb' must be a mapping")
    _check_number(influxdb, 'port', int, 1)
    if not isinstance(init_config.get('domain') or '', str):
        raise ConfigException("'domain' must be a string")

    run_mode = init_config.get('run_mode', RUN_MODE_SEQUENTIAL)
    if run_mode not in RUN_MODES:
        raise ConfigException("Unknown run_mode '{0}', expected one of {1}".format(run_mode, ', '.join(RUN_MODES)))

    return {'init_config': init_config, 'instances': instances}


def load_config(path):
    """ Load a YAML (or JSON) configuration file.

    A missing or broken file is not fatal: the run goes on with zero sources.
    """
    try:
        with open(path, 'r') as f:
            document = yaml.safe_load(f)
        return parse_config(document or {})
    except (IOError, yaml.YAMLError, ConfigException) as e:
        log.error("Could not load configuration file %s: %s", path, e)
        return {'init_config': {}, 'instances': []}


def declared_metrics(init_config):
    """ Turn the `metrics` section into DeclaredMetric values """
    declared = []
    for metric in init_config.get('metrics') or []:
        object_types = tuple(metric.get('object_type') or [])
        for definition in metric.get('definition') or []:
            if not definition.get('metric'):
                log.warning("Skipping a metric definition without a name: %s", definition)
                continue
            declared.append(DeclaredMetric(
                name=definition['metric'],
                instances=definition.get('instances') or AGGREGATE_ONLY,
                object_types=object_types,
            ))
    return declared
