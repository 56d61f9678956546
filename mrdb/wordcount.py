from mrdb import MRJob


def normalize(token):
    """Lower-case `token` and drop everything but letters and digits.

    >>> normalize('DOG!')
    'dog'
    >>> normalize('--')
    ''

    """
    return ''.join(c.lower() for c in token if c.isalpha() or c.isdigit())


class WordCount(MRJob):
    """Count the words in the values of the source store."""

    def mapper(self, key, value, emit):
        for token in value.split():
            word = normalize(token)
            if word:
                emit(word, '1')

    def reducer(self, key, values, emit):
        total = sum(int(v) for v in values)
        emit(key, str(total))


if __name__ == '__main__':
    import doctest
    doctest.testmod()
