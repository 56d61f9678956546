"""Data exchange: publish a worker's stores over HTTP and fetch remote ones.

Every worker serves its work directory under the /data/ prefix; stores are
addressed as http://<host:port>/data/<name>.
"""
import functools
import os
import tempfile
import threading
import urllib.parse
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from mrdb import logger
from mrdb.errors import NetworkError, StorageError


PREFIX = '/data/'
CHUNK_SIZE = 64 * 1024


def make_url(address, name):
    return 'http://%s%s%s' % (address, PREFIX, urllib.parse.quote(name))


def split_address(address):
    host, _, port = address.rpartition(':')
    if not host or not port.isdigit():
        raise ValueError('address must look like host:port, got %r'
                         % address)
    return host, int(port)


class DataRequestHandler(SimpleHTTPRequestHandler):
    """Serve plain files below PREFIX; everything else is a 404."""

    def do_GET(self):
        if self._strip_prefix():
            super(DataRequestHandler, self).do_GET()

    def do_HEAD(self):
        if self._strip_prefix():
            super(DataRequestHandler, self).do_HEAD()

    def _strip_prefix(self):
        if not self.path.startswith(PREFIX):
            self.send_error(404, 'File not found')
            return False
        self.path = self.path[len(PREFIX) - 1:]
        return True

    def list_directory(self, path):
        self.send_error(404, 'File not found')
        return None

    def log_message(self, format, *args):
        logger.debug('exchange %s: %s' % (self.address_string(),
                                          format % args))


class ExchangeServer(object):
    """Threaded HTTP server publishing the stores of one directory."""

    def __init__(self, directory, address='127.0.0.1:0'):
        self.directory = directory
        host, port = split_address(address)
        handler = functools.partial(DataRequestHandler, directory=directory)
        try:
            self._httpd = ThreadingHTTPServer((host, port), handler)
        except OSError as e:
            raise NetworkError('cannot listen on %s: %s' % (address, e)) from e
        self._httpd.daemon_threads = True
        self._thread = None

    @property
    def address(self):
        host, port = self._httpd.server_address[:2]
        return '%s:%d' % (host, port)

    def url(self, name):
        return make_url(self.address, name)

    def start(self):
        self._thread = threading.Thread(target=self._httpd.serve_forever,
                                        name='exchange-server', daemon=True)
        self._thread.start()
        logger.info('serving {} at http://{}{}'.format(
            self.directory, self.address, PREFIX))
        return self

    def stop(self):
        if self._thread is not None:
            self._httpd.shutdown()
            self._thread.join()
            self._thread = None
        self._httpd.server_close()

    def __enter__(self):
        return self.start()

    def __exit__(self, *args):
        self.stop()


def serve(directory, address='127.0.0.1:0'):
    return ExchangeServer(directory, address).start()


def _session(retries):
    retry = Retry(total=retries, connect=retries, read=retries,
                  status=retries, backoff_factor=0.1,
                  status_forcelist=[500, 502, 503, 504],
                  allowed_methods=['GET'], raise_on_status=False)
    session = requests.Session()
    session.mount('http://', HTTPAdapter(max_retries=retry))
    return session


def fetch(url, local_path, retries=3, timeout=60):
    """Download `url` to `local_path`.

    The body is streamed into a fresh file beside `local_path` which is
    renamed into place only once the whole body has arrived, so a failed
    fetch never leaves a truncated store behind.
    """
    directory = os.path.dirname(os.path.abspath(local_path))
    fd, tmp_path = tempfile.mkstemp(
        dir=directory, prefix=os.path.basename(local_path) + '.',
        suffix='.part')
    try:
        with os.fdopen(fd, 'wb') as out_fh, _session(retries) as session:
            with session.get(url, stream=True, timeout=timeout) as r:
                r.raise_for_status()
                expected = r.headers.get('Content-Length')
                received = 0
                for chunk in r.iter_content(CHUNK_SIZE):
                    out_fh.write(chunk)
                    received += len(chunk)
        if expected is not None and int(expected) != received:
            raise NetworkError('short read from %s: got %d of %s bytes'
                               % (url, received, expected))
        os.replace(tmp_path, local_path)
    except requests.RequestException as e:
        os.remove(tmp_path)
        status = None
        if e.response is not None:
            status = e.response.status_code
        raise NetworkError('cannot fetch %s: %s' % (url, e),
                           status=status) from e
    except OSError as e:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise StorageError('cannot write %s: %s' % (local_path, e)) from e
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
    logger.info('fetched {} -> {} ({} bytes)'.format(url, local_path,
                                                      received))
    return local_path
