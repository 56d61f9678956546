import os
from collections import Counter

import pytest

from mrdb.errors import StorageError
from mrdb.merge import merge
from mrdb.split import split


RECORDS = [('doc%d' % (i % 7), 'value %d' % i) for i in range(50)]


@pytest.mark.parametrize('n', [1, 3, 4, 50, 64])
def test_split_then_merge_round_trip(tmp_path, make_store, records_of, n):
    source = make_store(str(tmp_path / 'source.db'), RECORDS)
    paths = [str(tmp_path / ('shard.%d.db' % i)) for i in range(n)]
    assert split(source, paths) == paths

    counts = [len(records_of(path)) for path in paths]
    assert sum(counts) == len(RECORDS)
    assert max(counts) - min(counts) <= 1

    merged = str(tmp_path / 'merged.db')
    merge(paths, merged, str(tmp_path))
    assert Counter(records_of(merged)) == Counter(RECORDS)


def test_split_empty_source(tmp_path, make_store, records_of):
    source = make_store(str(tmp_path / 'source.db'), [])
    paths = [str(tmp_path / ('shard.%d.db' % i)) for i in range(3)]
    split(source, paths)
    assert [records_of(path) for path in paths] == [[], [], []]


def test_split_missing_source_creates_nothing(tmp_path):
    paths = [str(tmp_path / ('shard.%d.db' % i)) for i in range(3)]
    with pytest.raises(StorageError):
        split(str(tmp_path / 'missing.db'), paths)
    assert os.listdir(str(tmp_path)) == []


def test_split_removes_created_stores_on_failure(tmp_path, make_store):
    source = make_store(str(tmp_path / 'source.db'), RECORDS)
    paths = [str(tmp_path / 'shard.0.db'),
             str(tmp_path / 'shard.1.db'),
             str(tmp_path / 'missing' / 'shard.2.db')]
    with pytest.raises(StorageError):
        split(source, paths)
    assert sorted(os.listdir(str(tmp_path))) == ['source.db']


def test_split_missing_source_keeps_existing_stores(tmp_path, make_store,
                                                    records_of):
    keep = make_store(str(tmp_path / 'shard.0.db'), [('k', 'v')])
    with pytest.raises(StorageError):
        split(str(tmp_path / 'missing.db'), [keep])
    assert records_of(keep) == [('k', 'v')]
