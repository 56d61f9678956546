class MRError(Exception):
    """Base class for every error raised by mrdb."""


class StorageError(MRError):
    """A record store could not be opened, created, scanned or written."""


class NetworkError(MRError):
    """A fetch failed: connection error, non-success status or short body.

    `status` holds the HTTP status when the server answered at all.
    """

    def __init__(self, message, status=None):
        super(NetworkError, self).__init__(message)
        self.status = status


class UserFunctionError(MRError):
    """A job's mapper or reducer raised or emitted a malformed record."""


class ProtocolError(MRError):
    """An expected store is absent or a grouping precondition is broken."""


class TaskFailed(MRError):
    """A map or reduce task failed; aborts the whole run.

    The constructor arguments are passed on to Exception so that instances
    survive the trip back from a pool worker.
    """

    def __init__(self, phase, index, cause):
        super(TaskFailed, self).__init__(phase, index, cause)
        self.phase = phase
        self.index = index
        self.cause = cause

    def __str__(self):
        return '%s task %d failed: %s: %s' % (
            self.phase, self.index, type(self.cause).__name__, self.cause)
