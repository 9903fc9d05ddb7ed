"""
Correlation of search result events into a single outcome.
"""

from twisted.internet import defer
from twisted.python import failure
from zope.interface import implementer

from adldap import errors
from adldap._logger import quietLogger
from adldap.interfaces import ISearchResponse


PENDING = "pending"
COMPLETE = "complete"
LDAP_ERROR = "ldapError"
TRANSPORT_ERROR = "transportError"


@implementer(ISearchResponse)
class SearchResponse:
    """
    Collect the entries and referrals of one search.

    The transport calls L{entryReceived} and L{referralReceived} while
    the search runs and finishes it with either L{endReceived} or
    L{errorReceived}. C{deferred} then fires with the list of entries,
    or fails with L{errors.LDAPProtocolError} or
    L{errors.TransportError}.

    Exactly one terminal event is honoured; anything arriving after it
    is dropped.
    """

    def __init__(self, log=None):
        if log is None:
            log = quietLogger()
        self.log = log
        self.entries = []
        self.referrals = []
        self.status = None
        self.outcome = PENDING
        self.deferred = defer.Deferred()

    @property
    def settled(self):
        return self.outcome != PENDING

    def _late(self, event):
        self.log.debug(
            "ignoring {event} received after the search ended ({outcome})",
            event=event,
            outcome=self.outcome,
        )

    def entryReceived(self, entry):
        if self.settled:
            self._late("entry")
            return
        self.log.debug("received entry: {dn}", dn=entry.get("dn"))
        self.entries.append(entry)

    def referralReceived(self, uris):
        if self.settled:
            self._late("referral")
            return
        self.log.debug("received referrals: {uris!r}", uris=uris)
        self.referrals.extend(uris)

    def errorReceived(self, reason):
        if self.settled:
            self._late("error")
            return
        if isinstance(reason, failure.Failure):
            reason = reason.value
        error = reason
        if not isinstance(error, errors.TransportError):
            error = errors.TransportError(str(reason) or reason.__class__.__name__)
        self.log.error("ldap search failed with transport error: {error}", error=error)
        self.outcome = TRANSPORT_ERROR
        self.deferred.errback(error)

    def endReceived(self, status, message=None):
        if self.settled:
            self._late("end")
            return
        self.log.debug("received end result: {status}", status=status)
        self.status = status
        if status != 0:
            error = errors.fromResultCode(status, message)
            self.log.error("ldap search failed: {error}", error=error)
            self.outcome = LDAP_ERROR
            self.deferred.errback(error)
            return
        self.log.debug(
            "ldap search completed: {count} results found", count=len(self.entries)
        )
        self.outcome = COMPLETE
        self.deferred.callback(self.entries)
