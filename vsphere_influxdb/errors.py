# (C) Datadog, Inc. 2018
# All rights reserved
# Licensed under a 3-clause BSD style license (see LICENSE)


class CheckException(Exception):
    pass


class ConfigException(CheckException):
    pass


class ConnectionException(CheckException):
    """
    Raised when a session to a vCenter cannot be opened or died.
    """
    pass


class InventoryException(CheckException):
    """
    Raised when the inventory or the properties of the monitored objects
    cannot be retrieved. Aborts the cycle of the source.
    """
    pass


class QueryException(CheckException):
    pass


class UnknownSeriesException(QueryException):
    """
    Raised when the performance manager returns a result variant we do
    not know how to decode (e.g. CSV formatted series).
    """
    def __init__(self, kind):
        super().__init__("Unsupported performance result type: {0}".format(kind))
        self.kind = kind


class SinkException(CheckException):
    pass
