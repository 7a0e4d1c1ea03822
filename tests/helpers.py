class FailingSource:
    name = 'failing'

    def acquire(self):
        raise OSError('No resources left.')

    def release(self, handle) -> None:
        raise AssertionError('Nothing was acquired, so nothing should be released.')


class ExplodingSource:
    """Acquires fine, fails to give back."""
    name = 'exploding'

    def acquire(self) -> int:
        return 7

    def release(self, handle) -> None:
        raise OSError('Device went away.')
