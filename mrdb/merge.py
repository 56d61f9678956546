import os

from mrdb import logger
from mrdb.exchange import fetch
from mrdb.store import open_store, create_store, delete_store
from mrdb.util import fetched_name


def is_remote(source):
    return source.startswith('http://') or source.startswith('https://')


def each_record(paths):
    """Yield the records of every store in `paths`, one store at a time."""
    for path in paths:
        with open_store(path) as store:
            for record in store.scan():
                yield record


def merge(sources, destination_path, work_dir, retries=3, timeout=60):
    """Insert the union of `sources` into the store at `destination_path`.

    A source is either a local store path or an http:// URL, which is
    fetched into `work_dir` first. The insert happens in one transaction:
    if anything fails, nothing is added to the destination (and a
    destination created here is removed again).
    """
    created = not os.path.exists(destination_path)
    prefix = os.path.basename(destination_path)
    fetched = []
    try:
        paths = []
        for i, source in enumerate(sources):
            if is_remote(source):
                path = os.path.join(work_dir, fetched_name(prefix, i))
                fetch(source, path, retries=retries, timeout=timeout)
                fetched.append(path)
                paths.append(path)
            else:
                paths.append(source)

        if created:
            destination = create_store(destination_path)
        else:
            destination = open_store(destination_path)
        with destination:
            destination.insert_many(each_record(paths))
            count = destination.count()
    except Exception:
        if created:
            delete_store(destination_path)
        raise
    finally:
        for path in fetched:
            delete_store(path)

    logger.info('merged {} stores -> {} ({} records)'.format(
        len(sources), destination_path, count))
    return destination_path
