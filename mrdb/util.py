import collections
import collections.abc
import functools
import operator
import time


NestedCounter = functools.partial(collections.defaultdict, collections.Counter)

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619


class MRCounter(collections.abc.Iterable):
    """Two-story counter
    """
    def __init__(self):
        self.counter = NestedCounter()

    def __iter__(self):
        return self.counter.__iter__()

    def items(self):
        return self.counter.items()

    def incr(self, key, sub_key, incr=1):
        self.counter[key][sub_key] += incr

    def __iadd__(self, d):
        """Add another counter (allows += operator)

        >>> c = MRCounter()
        >>> c.incr("a", "b", 2)
        >>> c.incr("b", "c", 3)
        >>> d = MRCounter()
        >>> d.incr("c", "b", 2)
        >>> d.incr("b", "c", 30)
        >>> d += c
        >>> d.counter['b']['c']
        33

        """
        counter = self.counter
        for key, val in d.items():
            counter[key].update(val)
        return self

    def show(self):
        """Display counter content in a human-friendly way"""
        output = []
        for key, sub_dict in sorted(self.items()):
            output.append('  %s:' % key)
            for sub_key, count in sorted(sub_dict.items()):
                output.append('    %s: %d' % (sub_key, count))
        return '\n'.join(output)

    @classmethod
    def sum(cls, iterable):
        """Sum a series of instances of cls

        >>> c = MRCounter()
        >>> c.incr("mapper", "seen", 2)
        >>> d = MRCounter()
        >>> d.incr("mapper", "seen", 30)
        >>> e = MRCounter.sum([c, d])
        >>> e.counter['mapper']['seen']
        32

        """
        return functools.reduce(operator.__iadd__, iterable, cls())


class MRTimer(object):
    """Context class for benchmarking"""
    def __enter__(self):
        self.clock_start = time.process_time()
        self.wall_start = time.time()
        return self

    def __exit__(self, *args):
        clock_end = time.process_time()
        wall_end = time.time()
        self.clock_interval = clock_end - self.clock_start
        self.wall_interval = wall_end - self.wall_start

    def __str__(self):
        return "clock: %0.03f sec, wall: %0.03f sec." \
            % (self.clock_interval, self.wall_interval)


def fnv1a_32(data):
    """32-bit FNV-1a hash of a byte string.

    Unlike the builtin hash(), the result does not depend on the process.

    >>> fnv1a_32(b'')
    2166136261
    >>> hex(fnv1a_32(b'a'))
    '0xe40c292c'

    """
    h = FNV_OFFSET_BASIS
    for byte in data:
        h ^= byte
        h = (h * FNV_PRIME) & 0xffffffff
    return h


def partition(key, n_partitions):
    """Index of the reduce task owning `key`.

    >>> partition('the', 1)
    0
    >>> partition('the', 7) == partition('the', 7)
    True

    """
    return fnv1a_32(key.encode('utf-8')) % n_partitions


# names of the artifacts a run publishes through the data exchange. every
# name carries the index of the task that writes it.

def map_source_name(m):
    return 'map.src.%d.db' % m


def map_input_name(m):
    return 'map.in.%d.db' % m


def map_output_name(m, r):
    return 'map.out.%d.%d.db' % (m, r)


def reduce_input_name(r):
    return 'reduce.in.%d.db' % r


def reduce_output_name(r):
    return 'reduce.out.%d.db' % r


def fetched_name(prefix, n):
    return '%s.fetch.%d.db' % (prefix, n)


if __name__ == "__main__":
    import doctest
    doctest.testmod()
