# (C) Datadog, Inc. 2018
# All rights reserved
# Licensed under a 3-clause BSD style license (see LICENSE)

import functools
from threading import Thread

from .errors import CheckException


class TimeoutException(CheckException):
    """
    Raised when a vCenter cycle does not complete within its deadline.
    """
    pass


class DeadlineWorker(Thread):
    """
    Daemon thread running one call, keeping its result or its exception
    for the caller waiting on it.
    """
    def __init__(self, target, args, kwargs):
        super().__init__(name='deadline-{0}'.format(getattr(target, '__name__', 'call')), daemon=True)
        self.target, self.args, self.kwargs = target, args, kwargs
        self.result = None
        self.exception = None

    def run(self):
        try:
            self.result = self.target(*self.args, **self.kwargs)
        except Exception as e:
            self.exception = e


def call_with_deadline(seconds, func, *args, **kwargs):
    """
    Run `func` in a new worker and wait at most `seconds` for it.

    Every call gets its own worker. A worker that misses its deadline cannot
    be killed: it is abandoned and finishes in the background, its outcome
    is never reported.
    """
    worker = DeadlineWorker(func, args, kwargs)
    worker.start()
    worker.join(seconds)
    if worker.is_alive():
        raise TimeoutException("{0} did not return within {1}s".format(worker.name, seconds))
    if worker.exception is not None:
        raise worker.exception
    return worker.result


def timeout(seconds):
    """ Decorator form of `call_with_deadline` """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            return call_with_deadline(seconds, func, *args, **kwargs)
        return wrapper
    return decorator
