# (C) Datadog, Inc. 2018
# All rights reserved
# Licensed under a 3-clause BSD style license (see LICENSE)

import time


class Timer:
    """ Helper class """

    def __init__(self):
        self.start()

    def _now(self):
        return time.time()

    def start(self):
        self.started = self._now()
        self.last = self.started
        return self

    def step(self):
        now = self._now()
        step = now - self.last
        self.last = now
        return step

    def total(self):
        return self._now() - self.started


def chunks(iterable, chunk_size):
    """Generate sequences of `chunk_size` elements from `iterable`."""
    iterable = iter(iterable)
    while True:
        chunk = []
        for _ in range(chunk_size):
            try:
                chunk.append(next(iterable))
            except StopIteration:
                if chunk:
                    yield chunk
                return
        yield chunk


def strip_domain(name, domain):
    """
    Remove every occurrence of the configured domain suffix from `name`,
    e.g. `esx01.lab.local` -> `esx01` with domain `.lab.local`.
    """
    if not name:
        return ''
    if not domain:
        return name
    return name.replace(domain, '')
