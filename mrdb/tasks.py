"""Task descriptors and per-task progress.

Descriptors are built once by the coordinator and never change; whatever a
task learns while running lives in its own TaskRun.
"""
import collections

from mrdb import logger
from mrdb.util import MRCounter


class MapTask(collections.namedtuple(
        'MapTask', ['n_mappers', 'n_reducers', 'index', 'source_address'])):
    __slots__ = ()

    def __new__(cls, n_mappers, n_reducers, index, source_address):
        assert n_mappers >= 1 and n_reducers >= 1
        assert 0 <= index < n_mappers
        return super(MapTask, cls).__new__(
            cls, n_mappers, n_reducers, index, source_address)


class ReduceTask(collections.namedtuple(
        'ReduceTask', ['n_mappers', 'n_reducers', 'index',
                       'source_addresses'])):
    __slots__ = ()

    def __new__(cls, n_mappers, n_reducers, index, source_addresses):
        assert n_mappers >= 1 and n_reducers >= 1
        assert 0 <= index < n_reducers
        source_addresses = tuple(source_addresses)
        assert len(source_addresses) == n_mappers
        return super(ReduceTask, cls).__new__(
            cls, n_mappers, n_reducers, index, source_addresses)


class TaskState(object):
    PENDING = 'pending'
    FETCHING_INPUT = 'fetching-input'
    FETCHING_INPUTS = 'fetching-inputs'
    MAPPING = 'mapping'
    PARTITIONING = 'partitioning'
    MERGING = 'merging'
    GROUPING = 'grouping'
    REDUCING = 'reducing'
    PUBLISHING = 'publishing'
    DONE = 'done'
    FAILED = 'failed'


MAP_STATES = (
    TaskState.PENDING,
    TaskState.FETCHING_INPUT,
    TaskState.MAPPING,
    TaskState.PARTITIONING,
    TaskState.PUBLISHING,
    TaskState.DONE,
)

REDUCE_STATES = (
    TaskState.PENDING,
    TaskState.FETCHING_INPUTS,
    TaskState.MERGING,
    TaskState.GROUPING,
    TaskState.REDUCING,
    TaskState.PUBLISHING,
    TaskState.DONE,
)


class TaskRun(object):
    """State machine and counters of one running task."""

    def __init__(self, phase, index, states):
        self.phase = phase
        self.index = index
        self.states = states
        self.state = TaskState.PENDING
        self.history = [TaskState.PENDING]
        self.counters = MRCounter()

    @property
    def finished(self):
        return self.state in (TaskState.DONE, TaskState.FAILED)

    def advance(self, state):
        """Move to `state`, which must be the one after the current state."""
        assert not self.finished, \
            '%s %d already %s' % (self.phase, self.index, self.state)
        expected = self.states[self.states.index(self.state) + 1]
        assert state == expected, \
            '%s %d: %s cannot follow %s' % (self.phase, self.index, state,
                                            self.state)
        self._enter(state)

    def fail(self):
        if not self.finished:
            self._enter(TaskState.FAILED)

    def _enter(self, state):
        self.state = state
        self.history.append(state)
        logger.debug('{} {}: {}'.format(self.phase, self.index, state))

    def entered(self, state):
        return state in self.history


def map_run(task):
    return TaskRun('map', task.index, MAP_STATES)


def reduce_run(task):
    return TaskRun('reduce', task.index, REDUCE_STATES)
