"""
Deferred based Active Directory client.
"""

from collections.abc import Mapping

from twisted.internet import defer
from ldaptor import delta

from adldap import authenticate, errors
from adldap._logger import quietLogger
from adldap.config import ADConfig
from adldap.response import SearchResponse
from adldap.search import buildRequest, cnFilter, userFilter
from adldap.transport import LDAPTransport


def getAttribute(entry, name, default=None):
    """Look up an attribute of an entry ignoring the case of its name."""
    if name in entry:
        return entry[name]
    name = name.lower()
    for key, value in entry.items():
        if key.lower() == name:
            return value
    return default


def _values(value):
    if isinstance(value, (list, tuple)):
        return [v if isinstance(v, bytes) else str(v) for v in value]
    if isinstance(value, bytes):
        return [value]
    return [str(value)]


class ADClient:
    """
    A simple Deferred based interface to Active Directory.

    Call L{bind} before any other method; it authenticates the
    connection as the configured search user.

    @ivar isBound: whether the search user is currently bound.
    @ivar Change: the ldaptor modification class used by
        L{replaceAttribute}, available to build changes for L{replace}.
    """

    Change = delta.Replace

    def __init__(self, config, log=None, transportFactory=None):
        """
        @param config: an L{ADConfig}, or a mapping accepted by
            L{ADConfig.fromDict}.
        @param log: a L{twisted.logger.Logger}; events are discarded when
            it is not given.
        @param transportFactory: callable building an
            L{adldap.interfaces.IDirectoryTransport} from C{config}.
        @raise adldap.errors.ConfigurationError: when C{config} is invalid.
        """
        if isinstance(config, Mapping):
            config = ADConfig.fromDict(config)
        if log is None:
            log = quietLogger("adldap.client")
        if transportFactory is None:
            transportFactory = LDAPTransport
        self.config = config
        self.log = log
        self.transportFactory = transportFactory
        self.transport = transportFactory(config)
        self.isBound = False

    def secondary(self):
        """A new, unconnected client sharing this client's configuration."""
        return self.__class__(
            self.config, log=self.log, transportFactory=self.transportFactory
        )

    # Bind/unbind

    def bind(self):
        """
        Bind to the directory with the search user's credentials.

        A failed bind closes the connection.

        @return: a Deferred firing with None.
        """
        d = self.transport.connect()
        d.addCallback(
            lambda _: self.transport.bind(
                self.config.searchUser, self.config.searchUserPass
            )
        )
        d.addCallbacks(self._cbBound, self._ebBind)
        return d

    def _cbBound(self, _):
        self.log.debug("bind successful for user: {user}", user=self.config.searchUser)
        self.isBound = True

    def _ebBind(self, reason):
        self.log.debug("bind error: {error}", error=reason.value)
        self.isBound = False
        self.transport.close()
        return reason

    def unbind(self):
        """
        Close the connection to the directory.

        C{isBound} is False afterwards even when the unbind fails.
        """
        self.log.debug("issuing unbind")
        d = defer.maybeDeferred(self.transport.unbind)

        def _unbound(_):
            self.isBound = False

        def _eb(reason):
            self.isBound = False
            self.log.debug("unbind error: {error}", error=reason.value)
            return reason

        d.addCallbacks(_unbound, _eb)
        return d

    # Searching

    def search(self, base=None, options=None, controls=None):
        """
        Perform a generic LDAP query against the directory.

        @param base: the search root; defaults to the configured
            C{searchBase}. A mapping passed here alone is taken as
            C{options}.
        @param options: mapping with C{filter} and optionally C{base},
            C{scope} and C{attributes}; overrides the configured
            defaults key by key.
        @param controls: a list of LDAP controls.
        @return: a Deferred firing with the list of entries.
        """
        try:
            base, options, controls = buildRequest(
                self.config.searchBase,
                self.config.getSearchDefaults(),
                base,
                options,
                controls,
            )
        except errors.SearchError:
            return defer.fail()

        self.log.debug(
            "doing ldap search: base={base!r} options={options!r}",
            base=base,
            options=options,
        )
        response = SearchResponse(self.log)
        try:
            self.transport.search(base, options, controls, response)
        except errors.SearchError:
            return defer.fail()
        except Exception as e:
            self.log.debug("ldap search failed: {error}", error=e)
            response.errorReceived(errors.translate(e))
        return response.deferred

    def findUser(self, identifier=None, options=None):
        """
        Find the user identified by C{identifier}.

        @param identifier: a simple account name, e.g. C{'juser'}, or an
            LDAP filter. A mapping is taken as the search options and
            must hold a C{filter}.
        @param options: search options, see L{search}.
        @return: a Deferred firing with the first matching entry, or
            None when nothing matched.
        """
        if isinstance(identifier, Mapping):
            if options is not None:
                return defer.fail(errors.SearchError("options given twice"))
            options = dict(identifier)
            if not options.get("filter"):
                return defer.fail(errors.SearchError("options must contain a filter"))
        elif identifier is not None and not isinstance(identifier, str):
            return defer.fail(
                errors.SearchError(f"identifier must be a string: {identifier!r}")
            )
        else:
            options = dict(options or {})
            if identifier is not None:
                if options.get("filter"):
                    return defer.fail(
                        errors.SearchError("filter given both as username and option")
                    )
                if identifier.startswith("("):
                    self.log.debug("finding user via custom filter: {f}", f=identifier)
                else:
                    self.log.debug("finding user via default filter")
                options["filter"] = userFilter(identifier)

        d = self.search(options)
        d.addCallback(self._cbFirst)
        return d

    def _cbFirst(self, results):
        if results:
            return results[0]
        return None

    def authenticate(self, identifier, credential):
        """
        Verify a user's password by binding as that user.

        C{identifier} may be a simple name (C{juser}), an LDAP filter, a
        DN (C{cn=juser,ou=users,dc=example,dc=com}), a domain name
        (C{DOMAIN\\juser}) or a user principal name
        (C{juser@example.com}).

        @return: a Deferred firing with True or False. It fails only
            for errors other than invalid credentials.
        """
        return authenticate.authenticate(self, identifier, credential)

    def userInGroup(self, identifier, groupName):
        """
        Check whether a user is a member of a group.

        C{groupName} matches any C{memberOf} value containing it,
        ignoring case, so C{'budget'} matches
        C{'CN=Budget Users,OU=Groups,DC=example,DC=com'}.

        @return: a Deferred firing with a bool.
        @raise adldap.errors.UserNotFoundError: (as a failure) when the
            user does not exist.
        """
        self.log.debug(
            'determining if user "{user}" is in group: {group}',
            user=identifier,
            group=groupName,
        )
        d = self.findUser(identifier, {"attributes": ["memberOf"]})
        d.addCallback(self._cbMembership, identifier, groupName.lower())
        return d

    def _cbMembership(self, user, identifier, groupName):
        if user is None:
            raise errors.UserNotFoundError(f"user not found: {identifier}")
        groups = getAttribute(user, "memberOf", [])
        if not isinstance(groups, list):
            groups = [groups]
        return any(groupName in group.lower() for group in groups)

    # Modifications

    def replace(self, dn, change):
        """
        Apply a change to the object at C{dn}.

        @param change: an L{ldaptor.delta.Modification}, e.g.
            C{client.Change('description', ['text'])}, or a list of them.
        @return: a Deferred firing with None.
        """
        if isinstance(change, delta.Modification):
            changes = [change]
        else:
            changes = list(change)
        self.log.debug("replacing values at DN: {dn}", dn=dn)
        d = defer.maybeDeferred(self.transport.modify, dn, changes)

        def _eb(reason):
            self.log.debug("replacement failed: {error}", error=reason.value)
            return reason

        d.addErrback(_eb)
        d.addErrback(errors.translateFailure)
        return d

    def _findOne(self, cn, attributes):
        d = self.search({"filter": cnFilter(cn), "attributes": attributes})
        d.addCallback(self._cbOne)
        return d

    def _cbOne(self, results):
        if not results:
            raise errors.MultiplicityError("zero objects found")
        if len(results) > 1:
            raise errors.MultiplicityError("too many objects found")
        self.log.debug("got object to modify: {dn}", dn=results[0]["dn"])
        return results[0]

    def replaceAttribute(self, cn, attribute, value):
        """
        Replace the values of C{attribute} on the object named C{cn}.

        @param value: a value or a list of values.
        @return: a Deferred firing with None.
        """
        self.log.debug(
            "replacing `{attribute}` for CN `{cn}` with value: {value!r}",
            attribute=attribute,
            cn=cn,
            value=value,
        )
        d = self._findOne(cn, ["dn"])
        d.addCallback(
            lambda obj: self.replace(obj["dn"], self.Change(attribute, _values(value)))
        )
        return d

    def incrementAttribute(self, cn, attribute):
        """
        Add one to the numeric C{attribute} of the object named C{cn}.

        @return: a Deferred firing with None.
        """
        self.log.debug("incrementing `{attribute}` for CN: {cn}", attribute=attribute, cn=cn)
        d = self._findOne(cn, ["dn", attribute])
        d.addCallback(self._cbIncrement, attribute)
        return d

    def _cbIncrement(self, obj, attribute):
        value = getAttribute(obj, attribute)
        if isinstance(value, bytes):
            value = value.decode("ascii", "replace")
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise errors.AttributeValueError("attribute is not a number")
        return self.replace(obj["dn"], self.Change(attribute, [str(number + 1)]))
