from twisted.logger import Logger


def _discard(event):
    pass


def quietLogger(namespace=None):
    """A L{Logger} whose events are discarded."""
    return Logger(namespace=namespace, observer=_discard)
