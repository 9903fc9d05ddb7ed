"""
Normalization of search calls and the filters used to find users.
"""

from collections.abc import Mapping

from ldaptor.protocols import pureldap

from adldap.errors import SearchError


USER_FILTER = "(&(objectcategory=user)(sAMAccountName={name}))"
PRINCIPAL_FILTER = "(userPrincipalName={name})"
CN_FILTER = "(cn={name})"


def buildRequest(defaultBase, defaults, base=None, options=None, controls=None):
    """
    Normalize the arguments of a search call.

    C{base} may be the options mapping itself when it is the only
    argument. Options override C{defaults} key by key; neither mapping
    is modified.

    @return: a tuple C{(base, options, controls)} where C{base} is None
        when no usable search root is left.
    @raise SearchError: when no filter is given.
    """
    if isinstance(base, Mapping):
        if options is not None:
            raise SearchError("search base must be a string when options are given")
        base, options = None, base

    merged = dict(defaults)
    if options:
        merged.update(options)

    if "base" in merged:
        base = merged.pop("base")
    elif base is None:
        base = defaultBase

    if not merged.get("filter"):
        raise SearchError("a search filter is required")
    if not base:
        base = None
    return base, merged, controls


def userFilter(name):
    """
    Filter matching a user by account name, or C{name} verbatim if it
    already is a filter.
    """
    if name.startswith("("):
        return name
    return USER_FILTER.format(name=pureldap.escape(name))


def principalFilter(name):
    return PRINCIPAL_FILTER.format(name=pureldap.escape(name))


def cnFilter(name):
    return CN_FILTER.format(name=pureldap.escape(name))
