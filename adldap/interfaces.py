from zope.interface import Interface, Attribute


class IDirectoryTransport(Interface):
    """
    The operations adldap needs from an LDAP protocol connection.

    All methods returning Deferreds fail with
    L{adldap.errors.TransportError} for connection level problems and
    with L{adldap.errors.LDAPProtocolError} for nonzero result codes.
    """

    connected = Attribute("True while a protocol connection is open.")

    def connect():
        """
        Open the connection to the directory.

        @return: a Deferred firing with the transport once connected.
        """

    def bind(dn, credential):
        """
        Authenticate the connection as C{dn}.

        @return: a Deferred firing with None on success.
        """

    def unbind():
        """
        Send an unbind request and close the connection.

        Unbinding a transport that is not connected succeeds without
        doing anything.

        @return: a Deferred firing with None.
        """

    def close():
        """Drop the connection without telling the server."""

    def search(base, options, controls, response):
        """
        Start a search and report its progress to C{response}.

        @param base: the search root, or None to leave it unspecified.
        @param options: mapping with C{filter}, C{scope} and C{attributes}.
        @param controls: a list of controls, or None.
        @param response: an L{ISearchResponse} receiving the events of
            this search.
        """

    def modify(dn, changes):
        """
        Apply C{changes}, a list of L{ldaptor.delta.Modification}, to C{dn}.

        @return: a Deferred firing with None on success.
        """


class ISearchResponse(Interface):
    """Receiver of the events produced by one search."""

    deferred = Attribute("Deferred firing with the list of entries.")
    settled = Attribute("True once a terminal event was received.")

    def entryReceived(entry):
        """An entry, as a dict of attribute name to value, arrived."""

    def referralReceived(uris):
        """A search result reference with a list of URLs arrived."""

    def errorReceived(reason):
        """The connection failed; C{reason} is an exception or Failure."""

    def endReceived(status, message=None):
        """The search finished with result code C{status}."""
