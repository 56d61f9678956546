import itertools
import operator
import os

from mrdb import logger
from mrdb.errors import MRError, NetworkError, ProtocolError, \
    UserFunctionError
from mrdb.exchange import fetch, make_url
from mrdb.merge import merge
from mrdb.store import open_store, create_store, delete_store
from mrdb.tasks import TaskState, reduce_run
from mrdb.util import map_output_name, reduce_input_name, \
    reduce_output_name, fetched_name


def check_sorted(records, counters=None):
    """Pass records through, failing as soon as a key goes backwards."""
    last_key = None
    for i, (key, value) in enumerate(records):
        if i and key < last_key:
            raise ProtocolError('key %r follows %r: input is not sorted'
                                % (key, last_key))
        if counters is not None:
            counters.incr('reducer', 'seen')
        last_key = key
        yield key, value


def each_group(records, counters=None):
    """Yield (key, values) for each run of equal keys in sorted `records`.

    `values` is a one-shot iterator: it can be consumed once, and only
    until the next group is requested.

    >>> [(k, list(vv)) for k, vv in each_group([('a', '1'), ('a', '2'),
    ...                                         ('b', '3')])]
    [('a', ['1', '2']), ('b', ['3'])]

    """
    groups = itertools.groupby(check_sorted(records, counters),
                               key=operator.itemgetter(0))
    for key, run in groups:
        yield key, (value for _, value in run)


def each_reduced(job, groups, counters):
    emitted = []

    def emit(key, value):
        if not isinstance(key, str) or not isinstance(value, str):
            raise TypeError('records are (str, str), got (%r, %r)'
                            % (key, value))
        emitted.append((key, value))

    for key, values in groups:
        counters.incr('reducer', 'groups')
        try:
            job.reducer(key, values, emit)
        except MRError:
            # raised by the scan underneath `values`, not by the job.
            raise
        except Exception as e:
            raise UserFunctionError(
                'reducer failed on key %r: %s: %s'
                % (key, type(e).__name__, e)) from e
        for record in emitted:
            counters.incr('reducer', 'written')
            yield record
        del emitted[:]


def reduce(task, job, work_dir, retries=3, timeout=60):
    """Run one reduce task; returns its TaskRun once the output is
    published."""
    run = reduce_run(task)
    shard = task.index
    in_fn = os.path.join(work_dir, reduce_input_name(shard))
    out_fn = os.path.join(work_dir, reduce_output_name(shard))
    fetched = []
    try:
        # partition `shard` of every map task; a missing one is fatal.
        run.advance(TaskState.FETCHING_INPUTS)
        for m, address in enumerate(task.source_addresses):
            url = make_url(address, map_output_name(m, shard))
            path = os.path.join(
                work_dir, fetched_name(reduce_input_name(shard), m))
            logger.info('reducer {}: input <- {}'.format(shard, url))
            try:
                fetch(url, path, retries=retries, timeout=timeout)
            except NetworkError as e:
                if e.status != 404:
                    raise
                raise ProtocolError(
                    'reduce {}: partition store {} of map task {} is missing'
                    .format(shard, map_output_name(m, shard), m)) from e
            fetched.append(path)

        run.advance(TaskState.MERGING)
        delete_store(in_fn)
        merge(fetched, in_fn, work_dir, retries=retries, timeout=timeout)

        run.advance(TaskState.GROUPING)
        with open_store(in_fn) as store:
            groups = each_group(store.scan(ordered=True), run.counters)

            run.advance(TaskState.REDUCING)
            with create_store(out_fn) as out:
                out.insert_many(each_reduced(job, groups, run.counters))
                count = out.count()

        run.advance(TaskState.PUBLISHING)
        logger.info('reducer {}: {} records -> {}'.format(
            shard, count, out_fn))
        delete_store(in_fn)
        run.advance(TaskState.DONE)
    except Exception:
        run.fail()
        delete_store(out_fn)
        delete_store(in_fn)
        raise
    finally:
        for path in fetched:
            delete_store(path)
    return run
