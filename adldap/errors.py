"""Exceptions raised by adldap."""

from ldaptor.protocols.ldap import ldapclient, ldaperrors


INVALID_CREDENTIALS = ldaperrors.LDAPInvalidCredentials.resultCode


def _text(value):
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    return value


class ADLDAPError(Exception):
    """Base class for all adldap errors."""

    def __init__(self, message=None):
        Exception.__init__(self, message)
        self.message = _text(message)

    def __str__(self):
        if self.message:
            return self.message
        return self.__class__.__name__


class ConfigurationError(ADLDAPError):
    """The connection configuration is not usable."""


class TransportError(ADLDAPError):
    """
    Connection level failure: refused, dropped, malformed response or
    an exception raised by the transport itself.
    """


class NotConnectedError(TransportError):
    def __str__(self):
        return "Not connected"


class LDAPProtocolError(ADLDAPError):
    """
    The server finished an operation with a nonzero result code.

    @ivar code: the numeric result code.
    @ivar kind: the symbolic name of C{code} as listed in RFC 4511,
        e.g. C{'invalidCredentials'}, or C{code} itself when the code
        is not a standard one.
    """

    def __init__(self, code, kind, message=None):
        ADLDAPError.__init__(self, message)
        self.code = code
        self.kind = kind

    def __str__(self):
        if self.message:
            return f"{self.kind}: {self.message}"
        return str(self.kind)


class SearchError(ADLDAPError):
    """A search request was malformed before reaching the transport."""


class UserNotFoundError(ADLDAPError):
    """No directory entry matched a user that had to exist."""


class MultiplicityError(ADLDAPError):
    """A lookup that must match exactly one object matched zero or many."""


class AttributeValueError(ADLDAPError):
    """An attribute did not hold the kind of value the operation needs."""


class ResolutionDepthError(ADLDAPError):
    """Resolving a username to a DN recursed more than allowed."""


def fromResultCode(resultCode, errorMessage=None):
    """Get an L{LDAPProtocolError} for a nonzero result code."""
    e = ldaperrors.get(resultCode, errorMessage)
    assert not isinstance(e, ldaperrors.Success), "result code 0 is not an error"
    if isinstance(e, ldaperrors.LDAPUnknownError):
        kind = resultCode
    else:
        kind = _text(e.name)
    return LDAPProtocolError(resultCode, kind, errorMessage or None)


def translate(exc):
    """
    Map an exception coming out of ldaptor or Twisted to an adldap error.

    Errors that already are L{ADLDAPError} are returned unchanged.
    """
    if isinstance(exc, ADLDAPError):
        return exc
    if isinstance(exc, ldapclient.LDAPClientConnectionLostException):
        return TransportError("Connection lost")
    message = getattr(exc, "message", None)
    if isinstance(exc, ldaperrors.LDAPUnknownError):
        return fromResultCode(exc.code, message)
    resultCode = getattr(exc, "resultCode", None)
    if isinstance(exc, ldaperrors.LDAPException) and resultCode:
        return fromResultCode(resultCode, message)
    return TransportError(str(exc) or exc.__class__.__name__)


def translateFailure(reason):
    """Errback that re-raises C{reason} as an adldap error."""
    raise translate(reason.value)
