import configparser
import os.path
from urllib.parse import urlsplit

from adldap.errors import ConfigurationError


SCOPES = ("base", "one", "sub")

DEFAULT_SCOPE = "base"
DEFAULT_ATTRIBUTES = ("dn", "cn", "sn", "givenName", "mail", "memberOf")

TLS_OPTIONS = ("trustRoots", "certificate", "privateKey", "startTLS")


class ADConfig:
    """
    Validated connection settings for an L{adldap.client.ADClient}.

    Either C{url} (C{ldap://} or C{ldaps://}) or C{socketPath} must be
    given. Instances are read-only, use L{copy} to derive a modified
    configuration.
    """

    def __init__(
        self,
        searchUser=None,
        searchUserPass=None,
        searchBase=None,
        url=None,
        socketPath=None,
        scope=DEFAULT_SCOPE,
        attributes=DEFAULT_ATTRIBUTES,
        tlsOptions=None,
    ):
        if not searchUser:
            raise ConfigurationError("searchUser is required")
        if not searchUserPass:
            raise ConfigurationError("searchUserPass is required")
        if not searchBase:
            raise ConfigurationError("searchBase is required")
        if not url and not socketPath:
            raise ConfigurationError("one of url or socketPath is required")
        if url:
            parts = urlsplit(url)
            if parts.scheme not in ("ldap", "ldaps") or not parts.hostname:
                raise ConfigurationError(f"url must be an ldap or ldaps URI: {url!r}")
            try:
                parts.port
            except ValueError:
                raise ConfigurationError(f"invalid port in url: {url!r}")
        if scope not in SCOPES:
            raise ConfigurationError(
                "scope must be one of {}, not {!r}".format(", ".join(SCOPES), scope)
            )
        if isinstance(attributes, str) or not all(
            isinstance(a, str) for a in attributes
        ):
            raise ConfigurationError("attributes must be a list of strings")
        if tlsOptions is not None:
            unknown = set(tlsOptions) - set(TLS_OPTIONS)
            if unknown:
                raise ConfigurationError(
                    "unknown tlsOptions: {}".format(", ".join(sorted(unknown)))
                )
            if tlsOptions.get("startTLS") and (not url or url.startswith("ldaps:")):
                raise ConfigurationError("startTLS needs an ldap:// url")
            tlsOptions = dict(tlsOptions)

        self._searchUser = searchUser
        self._searchUserPass = searchUserPass
        self._searchBase = searchBase
        self._url = url or None
        self._socketPath = None if url else socketPath
        self._scope = scope
        self._attributes = tuple(attributes)
        self._tlsOptions = tlsOptions

    searchUser = property(lambda self: self._searchUser)
    searchUserPass = property(lambda self: self._searchUserPass)
    searchBase = property(lambda self: self._searchBase)
    url = property(lambda self: self._url)
    socketPath = property(lambda self: self._socketPath)
    scope = property(lambda self: self._scope)

    @property
    def attributes(self):
        return list(self._attributes)

    @property
    def tlsOptions(self):
        if self._tlsOptions is None:
            return None
        return dict(self._tlsOptions)

    def getSearchDefaults(self):
        """Search options applied when a call does not override them."""
        return {"scope": self._scope, "attributes": list(self._attributes)}

    def copy(self, **kw):
        values = {
            "searchUser": self._searchUser,
            "searchUserPass": self._searchUserPass,
            "searchBase": self._searchBase,
            "url": self._url,
            "socketPath": self._socketPath,
            "scope": self._scope,
            "attributes": self._attributes,
            "tlsOptions": self._tlsOptions,
        }
        if "url" in kw and "socketPath" not in kw:
            values["socketPath"] = None
        elif "socketPath" in kw and "url" not in kw:
            values["url"] = None
        values.update(kw)
        return self.__class__(**values)

    def __repr__(self):
        return "{}(searchUser={!r}, searchBase={!r}, url={!r}, socketPath={!r})".format(
            self.__class__.__name__,
            self._searchUser,
            self._searchBase,
            self._url,
            self._socketPath,
        )

    @classmethod
    def fromDict(cls, data):
        """
        Build a configuration from the nested mapping layout::

            {'searchUser': ..., 'searchUserPass': ...,
             'ldap': {'url': ..., 'socketPath': ..., 'searchBase': ...,
                      'scope': ..., 'attributes': [...], 'tlsOptions': {...}}}
        """
        ldap = data.get("ldap")
        if not isinstance(ldap, dict):
            raise ConfigurationError("ldap settings are required")
        unknown = set(data) - {"searchUser", "searchUserPass", "ldap"}
        if unknown:
            raise ConfigurationError(
                "unknown settings: {}".format(", ".join(sorted(unknown)))
            )
        kw = {
            "searchUser": data.get("searchUser"),
            "searchUserPass": data.get("searchUserPass"),
        }
        for key in ("url", "socketPath", "searchBase", "scope", "attributes", "tlsOptions"):
            if key in ldap:
                kw[key] = ldap[key]
        unknown = set(ldap) - set(kw)
        if unknown:
            raise ConfigurationError(
                "unknown ldap settings: {}".format(", ".join(sorted(unknown)))
            )
        return cls(**kw)

    @classmethod
    def fromConfigParser(cls, cfg, **overrides):
        """
        Build a configuration from the C{[adldap]} section of C{cfg}.

        Keyword arguments that are not None take precedence over the
        file.
        """
        kw = {}
        if cfg.has_section(SECTION):
            for option, key in _FILE_OPTIONS.items():
                if cfg.has_option(SECTION, option):
                    value = cfg.get(SECTION, option)
                    if value:
                        kw[key] = value
        if "attributes" in kw:
            kw["attributes"] = kw["attributes"].replace(",", " ").split()
        tls = {}
        for option, key in _FILE_TLS_OPTIONS.items():
            if cfg.has_section(SECTION) and cfg.has_option(SECTION, option):
                if key == "startTLS":
                    tls[key] = cfg.getboolean(SECTION, option)
                else:
                    tls[key] = cfg.get(SECTION, option)
        if tls:
            kw["tlsOptions"] = tls
        for key, value in overrides.items():
            if value is not None:
                kw[key] = value
        if "url" in overrides and overrides["url"] is not None:
            kw.pop("socketPath", None)
        return cls(**kw)


SECTION = "adldap"

_FILE_OPTIONS = {
    "search-user": "searchUser",
    "search-password": "searchUserPass",
    "search-base": "searchBase",
    "url": "url",
    "socket-path": "socketPath",
    "scope": "scope",
    "attributes": "attributes",
}

_FILE_TLS_OPTIONS = {
    "tls-trust-roots": "trustRoots",
    "tls-certificate": "certificate",
    "tls-private-key": "privateKey",
    "start-tls": "startTLS",
}

CONFIG_FILES = [
    "/etc/adldap/global.cfg",
    os.path.expanduser("~/.adldap/global.cfg"),
]

__config = None


def loadConfig(configFiles=None, reload=False):
    """
    Load configuration file.
    """
    global __config
    if __config is None or reload:
        x = configparser.ConfigParser(interpolation=None)

        if configFiles is None:
            configFiles = CONFIG_FILES
        x.read(configFiles)
        __config = x
    return __config
