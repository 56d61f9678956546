import glob
import json
import re
import sys

from mrdb import MRJob, MRSettings
from mrdb.store import create_store


def get_tld(domain):
    return re.match(r'^.*\b([^\.]+\.[^\.]+)$', domain).group(1)


class MRSummary(MRJob):
    """Count posts per top-level domain of the posting user."""

    def mapper(self, key, value, emit):
        j = json.loads(value)
        uname, domain = j[u'object'][u'user_id'].split("@")
        emit(get_tld(domain), '1')

    def reducer(self, key, values, emit):
        emit(key, str(sum(int(v) for v in values)))

    def settings(self):
        return MRSettings(n_mappers=6, n_reducers=4, n_processes=4)


def load(pattern, path):
    """One record per input line, keyed by file name and line number."""
    with create_store(path) as store:
        for fn in sorted(glob.glob(pattern)):
            with open(fn) as fh:
                store.insert_many(('%s:%d' % (fn, i), line)
                                  for i, line in enumerate(fh))


if __name__ == '__main__':
    load(sys.argv[1], 'source.db')
    MRSummary.run('source.db', 'summary.db')
