import os

import pytest
import requests

from mrdb.errors import NetworkError
from mrdb.exchange import ExchangeServer, fetch, make_url, split_address


def test_make_url():
    assert make_url('10.0.0.1:8080', 'map.out.0.1.db') == \
        'http://10.0.0.1:8080/data/map.out.0.1.db'


def test_split_address():
    assert split_address('localhost:8080') == ('localhost', 8080)
    with pytest.raises(ValueError):
        split_address('localhost')


def test_server_reports_bound_port(server):
    host, port = split_address(server.address)
    assert host == '127.0.0.1'
    assert port > 0


def test_fetch(server, work_dir, tmp_path, make_store, records_of):
    make_store(os.path.join(work_dir, 'a.db'), [('k', 'v')])
    local = str(tmp_path / 'copy.db')
    assert fetch(server.url('a.db'), local) == local
    assert records_of(local) == [('k', 'v')]
    # no temporary files left next to the copy
    assert sorted(os.listdir(str(tmp_path))) == ['copy.db', 'work']


def test_fetch_missing_is_an_error(server, tmp_path):
    local = str(tmp_path / 'copy.db')
    with pytest.raises(NetworkError) as e:
        fetch(server.url('missing.db'), local, retries=0)
    assert e.value.status == 404
    assert not os.path.exists(local)


def test_failed_fetch_leaves_existing_file_alone(server, tmp_path):
    local = tmp_path / 'copy.db'
    local.write_text('old')
    with pytest.raises(NetworkError):
        fetch(server.url('missing.db'), str(local), retries=0)
    assert local.read_text() == 'old'
    assert sorted(os.listdir(str(tmp_path))) == ['copy.db', 'work']


def test_fetch_replaces_existing_file(server, work_dir, tmp_path):
    with open(os.path.join(work_dir, 'a.txt'), 'w') as fh:
        fh.write('new')
    local = tmp_path / 'copy.txt'
    local.write_text('old and longer')
    fetch(server.url('a.txt'), str(local))
    assert local.read_text() == 'new'


def test_fetch_connection_refused(work_dir, tmp_path):
    server = ExchangeServer(work_dir)
    url = server.url('a.db')
    server.stop()
    with pytest.raises(NetworkError) as e:
        fetch(url, str(tmp_path / 'copy.db'), retries=0, timeout=5)
    assert e.value.status is None


def test_only_the_data_prefix_is_served(server, work_dir):
    with open(os.path.join(work_dir, 'a.txt'), 'w') as fh:
        fh.write('x')
    host = 'http://%s' % server.address
    assert requests.get(host + '/data/a.txt').status_code == 200
    assert requests.get(host + '/a.txt').status_code == 404
    assert requests.get(host + '/data/').status_code == 404
