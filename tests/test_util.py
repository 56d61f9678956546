import doctest
import multiprocessing

import pytest

from mrdb import reduce_one_shard, step, util, wordcount
from mrdb.util import MRCounter, partition


@pytest.mark.parametrize('module', [util, wordcount, step, reduce_one_shard])
def test_doctests(module):
    failures, _ = doctest.testmod(module)
    assert failures == 0


KEYS = ['the', 'cat', 'sat', 'dog', 'ran', '', u'caf\xe9', 'x' * 1000]


def test_partition_is_in_range():
    for n in (1, 2, 7, 64):
        for key in KEYS:
            assert 0 <= partition(key, n) < n


def test_partition_is_stable_across_processes():
    # a freshly spawned interpreter gets a different salt for hash(), so
    # this catches any dependence on the builtin.
    expected = [partition(key, 7) for key in KEYS]
    ctx = multiprocessing.get_context('spawn')
    with ctx.Pool(1) as pool:
        got = pool.starmap(partition, [(key, 7) for key in KEYS])
    assert got == expected


def test_partition_spreads_keys():
    buckets = set(partition('key%d' % i, 4) for i in range(100))
    assert buckets == {0, 1, 2, 3}


def test_counter_show():
    c = MRCounter()
    c.incr('reducer', 'seen', 3)
    c.incr('mapper', 'seen')
    assert c.show() == '\n'.join([
        '  mapper:',
        '    seen: 1',
        '  reducer:',
        '    seen: 3',
    ])
