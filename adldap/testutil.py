"""Utilities for writing Twistedy unit tests against adldap."""

from twisted.internet import defer
from twisted.trial import unittest
from zope.interface import implementer

from adldap import errors
from adldap.client import ADClient
from adldap.config import ADConfig
from adldap.interfaces import IDirectoryTransport


BASE_DN = "dc=domain,dc=com"
SEARCH_USER = "auth@domain.com"
SEARCH_PASSWORD = "password"


def mustRaise(dummy):
    raise unittest.FailTest("Should have raised an exception.")


def testConfig(**kw):
    values = {
        "searchUser": SEARCH_USER,
        "searchUserPass": SEARCH_PASSWORD,
        "searchBase": BASE_DN,
        "url": "ldap://ldap.domain.com",
    }
    values.update(kw)
    return ADConfig(**values)


class FakeDirectory:
    """
    In-memory directory shared by the L{FakeTransport}s it creates.

    Searches are answered by exact filter text: L{addResult} registers
    the entries returned for a filter, L{addEvents} the raw sequence of
    events. Unknown filters find nothing. Binds succeed when the
    password matches the one registered with L{addCredentials} (DNs
    compare without case) and fail with invalidCredentials otherwise.
    """

    def __init__(self):
        self.results = {}
        self.credentials = {}
        self.bindErrors = {}
        self.connectError = None
        self.unbindError = None
        self.modifyError = None
        self.modifications = []
        self.transports = []

    def addCredentials(self, dn, password):
        self.credentials[dn.lower()] = password

    def addResult(self, filterText, *entries):
        events = [("entry", entry) for entry in entries]
        events.append(("end", 0))
        self.results[filterText] = events

    def addEvents(self, filterText, *events):
        """
        Register raw events: C{('entry', dict)}, C{('referral', [url])},
        C{('error', exception)} and C{('end', status)}.
        """
        self.results[filterText] = list(events)

    def transportFactory(self, config):
        return FakeTransport(self, config)

    def createClient(self, config=None, **kw):
        if config is None:
            config = testConfig()
        return ADClient(config, transportFactory=self.transportFactory, **kw)

    def userBinds(self):
        """DNs bound by anyone but the search user, in order."""
        binds = []
        for t in self.transports:
            for op in t.sent:
                if op[0] == "bind" and op[1] != t.config.searchUser:
                    binds.append(op[1])
        return binds


@implementer(IDirectoryTransport)
class FakeTransport:
    """
    A transport that looks somewhat like L{adldap.transport.LDAPTransport}.

    Every operation is recorded in C{self.sent} so tests can assert what
    was sent.
    """

    def __init__(self, directory, config):
        self.directory = directory
        self.config = config
        self.connected = False
        self.boundAs = None
        self.sent = []
        directory.transports.append(self)

    def connect(self):
        self.sent.append(("connect",))
        if self.directory.connectError is not None:
            return defer.fail(self.directory.connectError)
        self.connected = True
        return defer.succeed(self)

    def bind(self, dn, credential):
        self.sent.append(("bind", dn))
        if not self.connected:
            return defer.fail(errors.NotConnectedError())
        error = self.directory.bindErrors.get(dn.lower())
        if error is not None:
            return defer.fail(error)
        if self.directory.credentials.get(dn.lower()) != credential:
            return defer.fail(errors.fromResultCode(errors.INVALID_CREDENTIALS))
        self.boundAs = dn
        return defer.succeed(None)

    def unbind(self):
        self.sent.append(("unbind",))
        wasConnected = self.connected
        self.connected = False
        self.boundAs = None
        if wasConnected and self.directory.unbindError is not None:
            return defer.fail(self.directory.unbindError)
        return defer.succeed(None)

    def close(self):
        self.sent.append(("close",))
        self.connected = False
        self.boundAs = None

    def search(self, base, options, controls, response):
        self.sent.append(("search", base, dict(options), controls))
        if not self.connected:
            raise errors.NotConnectedError()
        events = self.directory.results.get(options["filter"], [("end", 0)])
        for kind, value in events:
            if kind == "entry":
                response.entryReceived(dict(value))
            elif kind == "referral":
                response.referralReceived(list(value))
            elif kind == "error":
                response.errorReceived(value)
            elif kind == "end":
                response.endReceived(value)
            else:
                raise AssertionError(f"unknown search event {kind!r}")

    def modify(self, dn, changes):
        self.sent.append(("modify", dn, list(changes)))
        if not self.connected:
            return defer.fail(errors.NotConnectedError())
        if self.directory.modifyError is not None:
            return defer.fail(self.directory.modifyError)
        self.directory.modifications.append((dn, list(changes)))
        return defer.succeed(None)

    def assertSent(self, *shouldBeSent):
        shouldBeSent = list(shouldBeSent)
        msg = "{} expected to send {!r} but sent {!r}".format(
            self.__class__.__name__, shouldBeSent, self.sent
        )
        assert self.sent == shouldBeSent, msg
