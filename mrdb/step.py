from argparse import ArgumentParser
import importlib
import math
import os
import shutil
import sys
from tempfile import mkdtemp

from mrdb import logger, MRSettings
from mrdb.errors import MRError
from mrdb.exchange import make_url, serve
from mrdb.machine import run_shards, do_map, do_reduce
from mrdb.merge import merge
from mrdb.split import split
from mrdb.store import open_store
from mrdb.tasks import MapTask, ReduceTask
from mrdb.util import MRCounter, MRTimer, map_source_name, \
    reduce_output_name


def choose_task_counts(n_records, settings):
    """Number of map and reduce tasks for an input of `n_records`.

    >>> choose_task_counts(25000, MRSettings(target_shard_size=10000))
    (3, 2)
    >>> choose_task_counts(0, MRSettings())
    (1, 1)
    >>> choose_task_counts(0, MRSettings(n_mappers=4, n_reducers=3))
    (4, 3)

    """
    n_mappers = settings.n_mappers
    if n_mappers is None:
        n_mappers = max(1, int(math.ceil(
            n_records / float(settings.target_shard_size))))
    n_reducers = settings.n_reducers
    if n_reducers is None:
        n_reducers = max(1, int(math.ceil(n_mappers / 2.0)))
    return n_mappers, n_reducers


def build_tasks(n_mappers, n_reducers, source_address, map_addresses):
    """Create every task descriptor of a run up front.

    `map_addresses[m]` is where map task m publishes, so it is where every
    reduce task fetches its partition of map task m from.
    """
    assert len(map_addresses) == n_mappers
    map_tasks = [MapTask(n_mappers, n_reducers, m, source_address)
                 for m in range(n_mappers)]
    reduce_tasks = [ReduceTask(n_mappers, n_reducers, r, map_addresses)
                    for r in range(n_reducers)]
    return map_tasks, reduce_tasks


class Coordinator(object):
    """Runs one job from a source store to a target store on this host.

    This host splits the source, serves it through the data exchange, and
    runs the map tasks and then (once every map task is done) the reduce
    tasks in its process pool.
    """

    def __init__(self, job, source, target, settings=None):
        self.job = job
        self.source = source
        self.target = target
        if settings is None:
            settings = job.settings()
        self.settings = settings
        self.work_dir = None
        self.server = None
        self.map_tasks = []
        self.reduce_tasks = []
        self.map_runs = []
        self.reduce_runs = []

    def run(self):
        with MRTimer() as timer:
            try:
                self.start()
                self.split_input()
                self.run_maps()
                self.run_reduces()
                self.gather()
            finally:
                self.stop()
        logger.info('Mapreduce done: {}'.format(str(timer)))
        return self.target

    def start(self):
        tmp_root = self.settings.tmp_dir
        if not os.path.exists(tmp_root):
            os.makedirs(tmp_root)
        self.work_dir = mkdtemp(dir=tmp_root, prefix='mrdb.')
        logger.info('Working directory: %s' % self.work_dir)
        self.server = serve(self.work_dir, self.settings.address)

    def stop(self):
        if self.server is not None:
            self.server.stop()
            self.server = None
        if self.work_dir is not None and not self.settings.keep_tmp:
            shutil.rmtree(self.work_dir, ignore_errors=True)

    def split_input(self):
        with open_store(self.source) as source:
            n_records = source.count()
        n_mappers, n_reducers = choose_task_counts(n_records, self.settings)
        logger.info('%d input records, %d mappers, %d reducers.'
                    % (n_records, n_mappers, n_reducers))

        # this host runs every map task, so it publishes all their output.
        address = self.server.address
        self.map_tasks, self.reduce_tasks = build_tasks(
            n_mappers, n_reducers, address, [address] * n_mappers)

        paths = [os.path.join(self.work_dir, map_source_name(m))
                 for m in range(n_mappers)]
        split(self.source, paths)

    def _run_phase(self, do_shard, tasks):
        runs = run_shards(do_shard, tasks, self.job, self.work_dir,
                          n_processes=self.settings.n_processes,
                          retries=self.settings.fetch_retries,
                          timeout=self.settings.fetch_timeout)
        counter = MRCounter.sum(run.counters for run in runs)
        logger.info('Counters:\n%s' % counter.show())
        return runs

    def run_maps(self):
        logger.info('Starting %d mappers.' % len(self.map_tasks))
        self.map_runs = self._run_phase(do_map, self.map_tasks)

    def run_reduces(self):
        # every reduce task reads from every map task.
        assert len(self.map_runs) == len(self.map_tasks)
        logger.info('Starting %d reducers.' % len(self.reduce_tasks))
        self.reduce_runs = self._run_phase(do_reduce, self.reduce_tasks)

    def gather(self):
        logger.info('Joining reduce outputs')
        address = self.server.address
        urls = [make_url(address, reduce_output_name(task.index))
                for task in self.reduce_tasks]
        # merged beside the other artifacts first, so that the target only
        # ever holds a complete result.
        tmp_target = os.path.join(self.work_dir, 'target.db')
        merge(urls, tmp_target, self.work_dir,
              retries=self.settings.fetch_retries,
              timeout=self.settings.fetch_timeout)
        shutil.move(tmp_target, self.target)
        logger.info('Output: %s' % self.target)


def mapreduce(job, source, target, settings=None):
    return Coordinator(job, source, target, settings).run()


def get_instance(args):
    job_module = importlib.import_module(args.job_module)
    job_class = getattr(job_module, args.job_class)
    return job_class()


def parse_args(argv=None):
    ap = ArgumentParser()
    ap.add_argument('--source', type=str, required=True,
                    help='store holding the input records')
    ap.add_argument('--target', type=str, required=True,
                    help='store to write the output records to')
    ap.add_argument('--job_module', type=str, default='mrdb.wordcount')
    ap.add_argument('--job_class', type=str, default='WordCount')
    ap.add_argument('--n_mappers', type=int, default=None,
                    help='number of map tasks (default: by input size)')
    ap.add_argument('--n_reducers', type=int, default=None,
                    help='number of reduce tasks (default: by map count)')
    ap.add_argument('--n_processes', type=int, default=2,
                    help='number of tasks to run at once')
    ap.add_argument('--target_shard_size', type=int, default=10000,
                    help='records per map task when --n_mappers is unset')
    ap.add_argument('--tmp_dir', type=str, default=None,
                    help='directory to create the working directory in')
    ap.add_argument('--address', type=str, default='127.0.0.1:0',
                    help='host:port to publish intermediate data on')
    ap.add_argument('--fetch_retries', type=int, default=3,
                    help='attempts per fetch on connection errors and 5xx')
    ap.add_argument('--fetch_timeout', type=float, default=60,
                    help='seconds to wait on a fetch before giving up')
    ap.add_argument('--keep_tmp', action='store_true',
                    help='do not remove the working directory')
    return ap.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logger.info('Mapreduce: %s' % args)

    job = get_instance(args)
    settings = MRSettings(
        n_mappers=args.n_mappers, n_reducers=args.n_reducers,
        target_shard_size=args.target_shard_size,
        n_processes=args.n_processes, tmp_dir=args.tmp_dir,
        address=args.address, fetch_retries=args.fetch_retries,
        fetch_timeout=args.fetch_timeout, keep_tmp=args.keep_tmp)
    try:
        mapreduce(job, args.source, args.target, settings)
    except MRError as e:
        logger.error('Mapreduce failed: %s' % e)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
