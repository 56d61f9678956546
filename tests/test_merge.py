import os
from collections import Counter

import pytest

from mrdb.errors import NetworkError, StorageError
from mrdb.merge import merge


def test_merge_local_and_remote(server, work_dir, tmp_path, make_store,
                                records_of):
    make_store(os.path.join(work_dir, 'remote.db'), [('a', '1'), ('b', '2')])
    local = make_store(str(tmp_path / 'local.db'), [('a', '1'), ('c', '3')])
    dest = str(tmp_path / 'dest.db')
    fetch_dir = str(tmp_path / 'fetch')
    os.mkdir(fetch_dir)

    merge([server.url('remote.db'), local], dest, fetch_dir)

    assert Counter(records_of(dest)) == Counter(
        [('a', '1'), ('a', '1'), ('b', '2'), ('c', '3')])
    # fetched copies are gone, the sources are untouched
    assert os.listdir(fetch_dir) == []
    assert len(records_of(local)) == 2


def test_merge_into_existing_store(tmp_path, make_store, records_of):
    dest = make_store(str(tmp_path / 'dest.db'), [('a', '0')])
    src = make_store(str(tmp_path / 'src.db'), [('a', '1')])
    merge([src], dest, str(tmp_path))
    assert sorted(records_of(dest)) == [('a', '0'), ('a', '1')]


def test_merge_nothing_creates_empty_store(tmp_path, records_of):
    dest = str(tmp_path / 'dest.db')
    merge([], dest, str(tmp_path))
    assert records_of(dest) == []


def test_failed_fetch_aborts_merge(server, work_dir, tmp_path, make_store):
    make_store(os.path.join(work_dir, 'remote.db'), [('a', '1')])
    dest = str(tmp_path / 'dest.db')
    fetch_dir = str(tmp_path / 'fetch')
    os.mkdir(fetch_dir)

    with pytest.raises(NetworkError):
        merge([server.url('remote.db'), server.url('missing.db')], dest,
              fetch_dir, retries=0)
    assert not os.path.exists(dest)
    assert os.listdir(fetch_dir) == []


def test_failed_merge_leaves_existing_destination_alone(tmp_path, make_store,
                                                        records_of):
    dest = make_store(str(tmp_path / 'dest.db'), [('a', '0')])
    src = make_store(str(tmp_path / 'src.db'), [('a', '1')])
    with pytest.raises(StorageError):
        merge([src, str(tmp_path / 'missing.db')], dest, str(tmp_path))
    assert records_of(dest) == [('a', '0')]
