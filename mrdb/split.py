import itertools

from mrdb import logger
from mrdb.store import open_store, create_store, delete_store


BATCH_SIZE = 1000


def split(source_path, paths):
    """Deal the records of a store round-robin into len(paths) new stores.

    If anything fails, the stores already created are removed before the
    error propagates.
    """
    assert paths, 'need at least one output store'
    outputs = []
    created = []
    try:
        with open_store(source_path) as source:
            for path in paths:
                # recorded first: a failed create may leave a file behind.
                created.append(path)
                outputs.append(create_store(path))
            buffers = [[] for _ in outputs]
            counts = [0] * len(outputs)
            for i, record in zip(itertools.cycle(range(len(outputs))),
                                 source.scan()):
                buffers[i].append(record)
                counts[i] += 1
                if len(buffers[i]) >= BATCH_SIZE:
                    outputs[i].insert_many(buffers[i])
                    buffers[i] = []
            for output, records in zip(outputs, buffers):
                output.insert_many(records)
    except Exception:
        for output in outputs:
            output.close()
        for path in created:
            delete_store(path)
        raise

    for output, count in zip(outputs, counts):
        output.close()
        logger.info('split {}: {} records -> {}'.format(
            source_path, count, output.path))
    return list(paths)
