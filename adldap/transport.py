"""
L{IDirectoryTransport} implemented with ldaptor's LDAP client protocol.
"""

from urllib.parse import urlsplit

from twisted.internet import defer, ssl
from twisted.internet.endpoints import (
    clientFromString,
    connectProtocol,
    quoteStringArgument,
)
from twisted.python.filepath import FilePath
from zope.interface import implementer

from ldaptor import delta, ldapfilter
from ldaptor.protocols import pureldap
from ldaptor.protocols.ldap import ldapclient

from adldap import errors
from adldap.interfaces import IDirectoryTransport


SCOPES = {
    "base": pureldap.LDAP_SCOPE_baseObject,
    "one": pureldap.LDAP_SCOPE_singleLevel,
    "sub": pureldap.LDAP_SCOPE_wholeSubtree,
}

LDAP_PORT = 389
LDAPS_PORT = 636


def endpointDescription(config):
    """
    Twisted client endpoint description for the server in C{config},
    e.g. C{'tls:dc1.example.com:636'} for C{ldaps://dc1.example.com}.
    """
    if config.socketPath:
        return "unix:path=" + quoteStringArgument(config.socketPath)

    parts = urlsplit(config.url)
    host = quoteStringArgument(parts.hostname)
    tls = config.tlsOptions or {}
    if parts.scheme == "ldaps":
        desc = "tls:{}:{}".format(host, parts.port or LDAPS_PORT)
        for key in ("trustRoots", "certificate", "privateKey"):
            if tls.get(key):
                desc += ":{}={}".format(key, quoteStringArgument(tls[key]))
        return desc
    return "tcp:host={}:port={}".format(host, parts.port or LDAP_PORT)


def startTLSOptions(config):
    """Client TLS options used for StartTLS on an C{ldap://} connection."""
    tls = config.tlsOptions or {}
    trustRoot = None
    if tls.get("trustRoots"):
        pem = FilePath(tls["trustRoots"]).getContent()
        trustRoot = ssl.Certificate.loadPEM(pem)
    return ssl.optionsForClientTLS(urlsplit(config.url).hostname, trustRoot=trustRoot)


def _value(x):
    return getattr(x, "value", x)


def _text(x):
    x = _value(x)
    if isinstance(x, bytes):
        try:
            return x.decode("utf-8")
        except UnicodeDecodeError:
            return x
    return x


def entryFromMessage(msg):
    """
    Convert an C{LDAPSearchResultEntry} to a plain dict.

    The DN is stored under C{'dn'}. Attributes with a single value map
    to that value, others to a list of values.
    """
    entry = {}
    attributes = msg.attributes
    if hasattr(attributes, "items"):
        attributes = attributes.items()
    for key, values in attributes:
        values = [_text(v) for v in values]
        if len(values) == 1:
            entry[_text(key)] = values[0]
        else:
            entry[_text(key)] = values
    entry["dn"] = _text(msg.objectName)
    return entry


@implementer(IDirectoryTransport)
class LDAPTransport:
    """
    Directory transport over one ldaptor L{ldapclient.LDAPClient}.
    """

    protocolFactory = ldapclient.LDAPClient

    def __init__(self, config, reactor=None):
        if reactor is None:
            from twisted.internet import reactor
        self.reactor = reactor
        self.config = config
        self.client = None

    @property
    def connected(self):
        return self.client is not None and bool(self.client.connected)

    def _protocol(self):
        if not self.connected:
            raise errors.NotConnectedError()
        return self.client

    def connect(self):
        if self.connected:
            return defer.succeed(self)
        endpoint = clientFromString(self.reactor, endpointDescription(self.config))
        d = connectProtocol(endpoint, self.protocolFactory())
        d.addCallback(self._cbConnected)
        if (self.config.tlsOptions or {}).get("startTLS"):
            d.addCallback(self._startTLS)
        d.addCallback(lambda _: self)
        d.addErrback(errors.translateFailure)
        return d

    def _cbConnected(self, client):
        self.client = client
        return client

    def _startTLS(self, client):
        d = client.startTLS(startTLSOptions(self.config))

        def _eb(reason):
            self.close()
            return reason

        d.addErrback(_eb)
        return d

    def _send(self, op):
        return self._protocol().send(op)

    def _checkResult(self, msg, responseClass):
        if not isinstance(msg, responseClass):
            raise errors.TransportError(f"unexpected response: {msg!r}")
        if msg.resultCode != 0:
            raise errors.fromResultCode(msg.resultCode, msg.errorMessage)

    def _cbBind(self, msg):
        self._checkResult(msg, pureldap.LDAPBindResponse)

    def bind(self, dn, credential):
        op = pureldap.LDAPBindRequest(dn=dn, auth=credential)
        d = defer.maybeDeferred(self._send, op)
        d.addCallback(self._cbBind)
        d.addErrback(errors.translateFailure)
        return d

    def unbind(self):
        if not self.connected:
            self.client = None
            return defer.succeed(None)
        client, self.client = self.client, None
        d = defer.maybeDeferred(client.unbind)
        d.addCallback(lambda _: None)
        d.addErrback(errors.translateFailure)
        return d

    def close(self):
        client, self.client = self.client, None
        if client is not None and client.connected:
            client.transport.loseConnection()

    def _cbSearchMsg(self, msg, response):
        if isinstance(msg, pureldap.LDAPSearchResultEntry):
            response.entryReceived(entryFromMessage(msg))
        elif isinstance(msg, pureldap.LDAPSearchResultReference):
            response.referralReceived([_text(uri) for uri in msg.uris])
        elif isinstance(msg, pureldap.LDAPSearchResultDone):
            response.endReceived(msg.resultCode, _text(msg.errorMessage))
        else:
            response.errorReceived(
                errors.TransportError(f"bad search response: {msg!r}")
            )
        return response.settled

    def _cbSearchMsgWithControls(self, msg, controls, response):
        return self._cbSearchMsg(msg, response)

    def search(self, base, options, controls, response):
        kw = {}
        if base:
            kw["baseObject"] = base
        for key in ("sizeLimit", "timeLimit"):
            if options.get(key) is not None:
                kw[key] = options[key]
        try:
            searchFilter = ldapfilter.parseFilter(options["filter"])
        except ldapfilter.InvalidLDAPFilter as e:
            raise errors.SearchError(f"invalid filter {options['filter']!r}: {e.msg}")
        scope = options.get("scope", "sub")
        if scope not in SCOPES:
            raise errors.SearchError(f"bad scope {scope!r}")
        op = pureldap.LDAPSearchRequest(
            scope=SCOPES[scope],
            derefAliases=pureldap.LDAP_DEREF_neverDerefAliases,
            filter=searchFilter,
            attributes=list(options.get("attributes") or ()),
            **kw,
        )
        client = self._protocol()
        if controls:
            d = client.send_multiResponse_ex(
                op, controls, self._cbSearchMsgWithControls, response
            )
        else:
            d = client.send_multiResponse(op, self._cbSearchMsg, response)
        d.addErrback(response.errorReceived)

    def _cbModify(self, msg):
        self._checkResult(msg, pureldap.LDAPModifyResponse)

    def modify(self, dn, changes):
        op = delta.ModifyOp(dn, list(changes)).asLDAP()
        d = defer.maybeDeferred(self._send, op)
        d.addCallback(self._cbModify)
        d.addErrback(errors.translateFailure)
        return d
