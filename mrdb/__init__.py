import sys
import logging
import tempfile
from abc import abstractmethod


logger = logging.getLogger('mrdb')
logger.setLevel(logging.INFO)
handler = logging.StreamHandler(sys.stderr)
formatter = logging.Formatter('%(asctime)s: %(levelname)s: %(message)s')
handler.setFormatter(formatter)
logger.addHandler(handler)


class MRSettings(object):
    def __init__(self, n_mappers=None, n_reducers=None,
                 target_shard_size=10000, n_processes=2, tmp_dir=None,
                 address='127.0.0.1:0', fetch_retries=3, fetch_timeout=60,
                 keep_tmp=False):

        # None means: derive from the size of the input.
        assert n_mappers is None or (isinstance(n_mappers, int) and
                                     n_mappers >= 1)
        self.n_mappers = n_mappers
        assert n_reducers is None or (isinstance(n_reducers, int) and
                                      n_reducers >= 1)
        self.n_reducers = n_reducers
        assert isinstance(target_shard_size, int) and target_shard_size >= 1
        self.target_shard_size = target_shard_size
        assert isinstance(n_processes, int) and n_processes >= 1
        self.n_processes = n_processes
        if tmp_dir is None:
            tmp_dir = tempfile.gettempdir()
        assert isinstance(tmp_dir, str)
        self.tmp_dir = tmp_dir
        assert isinstance(address, str)
        self.address = address
        assert isinstance(fetch_retries, int) and fetch_retries >= 0
        self.fetch_retries = fetch_retries
        assert fetch_timeout > 0
        self.fetch_timeout = fetch_timeout
        assert isinstance(keep_tmp, bool)
        self.keep_tmp = keep_tmp


class MRJob(object):
    """A map function and a reduce function over (key, value) strings.

    Subclasses must live at module level so that pool workers can unpickle
    them.
    """

    def __init__(self):
        self._settings = self.settings()

    @classmethod
    def run(cls, source, target):
        from mrdb.step import mapreduce
        return mapreduce(cls(), source, target)

    @abstractmethod
    def mapper(self, key, value, emit):
        """call emit(key, value) zero or more times for one input record"""

    @abstractmethod
    def reducer(self, key, values, emit):
        """aggregate the one-shot iterator `values` of one key"""

    def settings(self):
        """define settings"""
        return MRSettings()
