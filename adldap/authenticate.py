"""
Password verification for the username formats Active Directory users
type into login forms.

A username is classified into one of five formats. A DN is verified
directly by binding as it on a separate connection; every other format
is first resolved to a DN with a search and then verified as a DN.
"""

from twisted.internet import defer

from adldap import errors
from adldap.search import principalFilter


DISTINGUISHED_NAME = "distinguishedName"
DOMAIN_USER = "domainUser"
FILTER = "filter"
USER_PRINCIPAL_NAME = "userPrincipalName"
SIMPLE_NAME = "simpleName"

# Resolving any format takes one step; the limit only guards against
# formats that fail to resolve to a DN.
MAX_RESOLUTION_DEPTH = 3

DN_PREFIX = "dn="


def classify(identifier):
    """
    Return the format of C{identifier}, checked in this order: DN
    (starts with C{cn=} or C{dn=}), C{DOMAIN\\user}, LDAP filter, user
    principal name, simple name.
    """
    lowered = identifier.lower()
    if lowered.startswith("cn=") or lowered.startswith(DN_PREFIX):
        return DISTINGUISHED_NAME
    if "\\" in identifier:
        return DOMAIN_USER
    if identifier.startswith("("):
        return FILTER
    if "@" in identifier:
        return USER_PRINCIPAL_NAME
    return SIMPLE_NAME


def stripDNPrefix(identifier):
    if identifier[: len(DN_PREFIX)].lower() == DN_PREFIX:
        return identifier[len(DN_PREFIX) :]
    return identifier


def resolutionQuery(kind, identifier):
    """
    Arguments for L{adldap.client.ADClient.findUser} resolving
    C{identifier} of format C{kind} to the entry holding its DN.
    """
    if kind == DOMAIN_USER:
        return identifier.partition("\\")[2], {"attributes": ["dn"]}
    if kind == FILTER:
        return {"filter": identifier, "attributes": ["dn"]}, None
    if kind == USER_PRINCIPAL_NAME:
        return {"filter": principalFilter(identifier), "attributes": ["dn"]}, None
    if kind == SIMPLE_NAME:
        return identifier, {"attributes": ["dn"]}
    raise ValueError(f"{kind!r} is not resolved by searching")


def _ebInnerUnbind(reason, log):
    log.debug("ignoring inner unbind error: {error}", error=reason.value)


@defer.inlineCallbacks
def verifyBind(client, dn, credential):
    """
    Bind as C{dn} on a new connection opened from C{client}'s
    configuration, leaving C{client}'s own session alone.

    The new connection is unbound on every path.

    @return: a Deferred firing with True, or False when the server
        answers invalidCredentials.
    """
    log = client.log
    log.debug("processing inner auth")
    inner = client.secondary()
    try:
        yield inner.bind()
        try:
            yield inner.transport.bind(dn, credential)
        except errors.LDAPProtocolError as e:
            log.debug("inner auth failed: {error}", error=e)
            if e.code == errors.INVALID_CREDENTIALS:
                log.debug("failure due to invalid credentials")
                return False
            raise
    finally:
        yield inner.unbind().addErrback(_ebInnerUnbind, log)
    log.debug("inner auth succeeded")
    return True


@defer.inlineCallbacks
def authenticate(client, identifier, credential, _depth=0):
    """
    Verify C{credential} for the user named by C{identifier}.

    @return: a Deferred firing with a bool.
    """
    if _depth > MAX_RESOLUTION_DEPTH:
        raise errors.ResolutionDepthError(
            f"could not resolve {identifier!r} to a distinguished name"
        )
    log = client.log
    log.debug("authenticating user: {user}", user=identifier)

    if not credential:
        # An empty password makes an unauthenticated bind, which
        # servers accept for any DN.
        log.debug("refusing empty credential for: {user}", user=identifier)
        return False

    kind = classify(identifier)
    if kind == DISTINGUISHED_NAME:
        log.debug("authenticating via dn")
        result = yield verifyBind(client, stripDNPrefix(identifier), credential)
        return result

    log.debug("authenticating via {kind}", kind=kind)
    user = yield client.findUser(*resolutionQuery(kind, identifier))
    if user is None:
        log.debug("no user found for: {user}", user=identifier)
        return False
    result = yield authenticate(
        client, DN_PREFIX + user["dn"], credential, _depth + 1
    )
    return result
