"""Run all tasks of one phase on this machine, in a process pool."""
import traceback
from multiprocessing import Pool

from mrdb import logger, map_one_shard, reduce_one_shard
from mrdb.errors import TaskFailed
from mrdb.util import MRTimer


def do_map(t):
    # arguments come wrapped in one tuple since Pool.imap passes only one.
    task, job, work_dir, retries, timeout = t
    try:
        with MRTimer() as timer:
            run = map_one_shard.map(task, job, work_dir, retries, timeout)
        logger.info("Shard {} mapped: {}".format(task.index, str(timer)))
        return run
    except Exception as e:
        logger.error('Uncaught exception while mapping shard {}. {}'
                     .format(task.index, traceback.format_exc()))
        raise TaskFailed('map', task.index, e) from e


def do_reduce(t):
    task, job, work_dir, retries, timeout = t
    try:
        with MRTimer() as timer:
            run = reduce_one_shard.reduce(task, job, work_dir, retries,
                                          timeout)
        logger.info("Shard {} reduced: {}".format(task.index, str(timer)))
        return run
    except Exception as e:
        logger.error('Uncaught exception while reducing shard {}. {}'
                     .format(task.index, traceback.format_exc()))
        raise TaskFailed('reduce', task.index, e) from e


def run_shards(do_shard, tasks, job, work_dir, n_processes=1, retries=3,
               timeout=60):
    """Run every task to completion and return their TaskRuns in task order.

    The first failure terminates the pool, abandoning tasks in flight, and
    propagates as TaskFailed. With one process the tasks run inline.
    """
    args = [(task, job, work_dir, retries, timeout) for task in tasks]
    if n_processes == 1 or len(tasks) == 1:
        return [do_shard(t) for t in args]

    runs = {}
    with Pool(processes=min(n_processes, len(tasks))) as pool:
        for run in pool.imap_unordered(do_shard, args):
            runs[run.index] = run
    return [runs[task.index] for task in tasks]
