import os
import queue
import threading

from mrdb import logger
from mrdb.errors import ProtocolError, UserFunctionError
from mrdb.exchange import fetch, make_url
from mrdb.store import open_store, create_store, delete_store
from mrdb.tasks import TaskState, map_run
from mrdb.util import partition, map_source_name, map_input_name, \
    map_output_name


# bound on records emitted but not yet partitioned.
HANDOFF_SIZE = 1024

_END = None


class Partitioner(threading.Thread):
    """Moves emitted records from the handoff queue into partition buffers.

    This thread is the only writer of `buffers`. After a failure it keeps
    draining the queue so that the emitting side never blocks.
    """

    def __init__(self, n_partitions, handoff):
        super(Partitioner, self).__init__(name='partitioner', daemon=True)
        self.handoff = handoff
        self.buffers = [[] for _ in range(n_partitions)]
        self.error = None

    def run(self):
        n_partitions = len(self.buffers)
        while True:
            record = self.handoff.get()
            if record is _END:
                return
            if self.error is not None:
                continue
            try:
                self.buffers[partition(record[0], n_partitions)].append(
                    record)
            except Exception as e:
                self.error = e


def make_emit(handoff, counters):
    def emit(key, value):
        if not isinstance(key, str) or not isinstance(value, str):
            raise TypeError('records are (str, str), got (%r, %r)'
                            % (key, value))
        handoff.put((key, value))
        counters.incr('mapper', 'written')
    return emit


def map_records(job, store, emit, counters):
    for key, value in store.scan():
        counters.incr('mapper', 'seen')
        try:
            job.mapper(key, value, emit)
        except Exception as e:
            raise UserFunctionError(
                'mapper failed on key %r: %s: %s'
                % (key, type(e).__name__, e)) from e


def map(task, job, work_dir, retries=3, timeout=60):
    """Run one map task; returns its TaskRun once every output is published.

    The input shard is always fetched through the data exchange, also when
    it happens to live on this host.
    """
    run = map_run(task)
    shard = task.index
    in_fn = os.path.join(work_dir, map_input_name(shard))
    out_fns = [os.path.join(work_dir, map_output_name(shard, r))
               for r in range(task.n_reducers)]
    try:
        run.advance(TaskState.FETCHING_INPUT)
        url = make_url(task.source_address, map_source_name(shard))
        logger.info('mapper {}: input <- {}'.format(shard, url))
        fetch(url, in_fn, retries=retries, timeout=timeout)

        run.advance(TaskState.MAPPING)
        handoff = queue.Queue(maxsize=HANDOFF_SIZE)
        partitioner = Partitioner(task.n_reducers, handoff)
        partitioner.start()
        try:
            with open_store(in_fn) as store:
                emit = make_emit(handoff, run.counters)
                map_records(job, store, emit, run.counters)
            run.advance(TaskState.PARTITIONING)
        finally:
            handoff.put(_END)
            partitioner.join()
        if partitioner.error is not None:
            raise ProtocolError('mapper {}: partitioning failed: {}'.format(
                shard, partitioner.error))

        # every partition gets a store, even an empty one.
        run.advance(TaskState.PUBLISHING)
        for out_fn, records in zip(out_fns, partitioner.buffers):
            with create_store(out_fn) as out:
                out.insert_many(records)
            if not records:
                run.counters.incr('mapper', 'empty partitions')
            logger.info('mapper {}: {} records -> {}'.format(
                shard, len(records), out_fn))
        delete_store(in_fn)
        run.advance(TaskState.DONE)
    except Exception:
        run.fail()
        for out_fn in out_fns:
            delete_store(out_fn)
        delete_store(in_fn)
        raise
    return run
