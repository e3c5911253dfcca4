# (C) Datadog, Inc. 2018
# All rights reserved
# Licensed under a 3-clause BSD style license (see LICENSE)

import argparse
import logging
import os
import sys

from .__about__ import __version__
from .check import VSphereInfluxCheck
from .config import RUN_MODES, _get_py_loglevel

NAME = 'vsphere-influxdb'
DEFAULT_CONFIG_PATH = '/etc/{0}.yaml'.format(NAME)
LEGACY_CONFIG_PATH = '/etc/{0}.json'.format(NAME)

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(name)s (%(filename)s:%(lineno)d) | %(message)s'


class MaxLevelFilter(logging.Filter):
    """ Let through the records strictly below `level` """

    def __init__(self, level):
        super().__init__()
        self.level = level

    def filter(self, record):
        return record.levelno < self.level


def setup_logging(level):
    """ Everything below ERROR goes to stdout, errors go to stderr """
    formatter = logging.Formatter(LOG_FORMAT)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    stdout_handler.addFilter(MaxLevelFilter(logging.ERROR))

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    stderr_handler.setLevel(logging.ERROR)

    logging.basicConfig(level=level, handlers=[stdout_handler, stderr_handler])
    # Keep the third party libraries quiet unless asked for
    for name in ('urllib3', 'influxdb'):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def default_config_path():
    if not os.path.exists(DEFAULT_CONFIG_PATH) and os.path.exists(LEGACY_CONFIG_PATH):
        return LEGACY_CONFIG_PATH
    return DEFAULT_CONFIG_PATH


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog=NAME, description='Send vSphere performance metrics to InfluxDB')
    parser.add_argument('-c', '--config', default=None,
                        help='Configuration file (default: {0}, or {1} if only it exists)'.format(
                            DEFAULT_CONFIG_PATH, LEGACY_CONFIG_PATH))
    parser.add_argument('--debug', action='store_true',
                        help='Debug mode, dumps the inventory and cluster structures')
    parser.add_argument('--log-level', default='INFO', help='Log level (default: INFO)')
    parser.add_argument('--run-mode', choices=RUN_MODES, default=None,
                        help='Process the vCenters one after the other or concurrently')
    parser.add_argument('--version', action='version', version='%(prog)s {0}'.format(__version__))
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.debug else _get_py_loglevel(args.log_level))
    log = logging.getLogger(NAME)

    config_path = args.config or default_config_path()
    log.info("Starting %s %s with %s", NAME, __version__, config_path)

    check, instances = VSphereInfluxCheck.from_yaml(config_path)
    if args.debug:
        check.debug = True
    if args.run_mode:
        check.run_mode = args.run_mode

    statuses = check.run()
    failed = [i_key for i_key, status in statuses.items() if status != check.OK]
    if failed:
        log.warning("%d of %d vCenters were not fully collected: %s", len(failed), len(instances), ', '.join(failed))
    else:
        log.info("Processed %d vCenters", len(instances))
    return 0
