import os

import pytest

from mrdb.exchange import ExchangeServer
from mrdb.store import create_store, open_store


def write_store(path, records):
    with create_store(path) as store:
        store.insert_many(records)
    return path


def read_store(path, ordered=False):
    with open_store(path) as store:
        return list(store.scan(ordered=ordered))


@pytest.fixture
def make_store():
    return write_store


@pytest.fixture
def records_of():
    return read_store


@pytest.fixture
def work_dir(tmp_path):
    path = os.path.join(str(tmp_path), 'work')
    os.mkdir(path)
    return path


@pytest.fixture
def server(work_dir):
    with ExchangeServer(work_dir) as server:
        yield server
