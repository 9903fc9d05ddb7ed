import getpass
import sys

from twisted.internet import defer, task
from twisted.logger import Logger
from ldaptor import usage

from adldap import config, errors
from adldap.client import ADClient


EXIT_VALID = 0
EXIT_INVALID = 1
EXIT_ERROR = 2


class MyOptions(usage.Options):
    """adldap command line credential checking utility"""

    synopsis = "Usage: adldap-authenticate [options] USERNAME"

    optParameters = (
        ("url", None, None, "LDAP server URL, ldap:// or ldaps://"),
        ("socket-path", None, None, "UNIX socket of the LDAP server"),
        ("search-base", None, None, "Base DN for user searches"),
        ("search-user", None, None, "User to bind as for searching"),
        ("scope", None, None, "Search scope (one of base, one, sub)"),
        ("group", "g", None, "Also check membership of this group"),
        ("config", "c", None, "Read this configuration file"),
    )
    optFlags = (("verbose", "v", "Log to stderr"),)

    def parseArgs(self, username):
        self["username"] = username

    def postOptions_scope(self):
        if self["scope"] is not None and self["scope"] not in config.SCOPES:
            raise usage.UsageError("bad scope: {}".format(self["scope"]))


def buildConfig(opts, cfg):
    return config.ADConfig.fromConfigParser(
        cfg,
        url=opts["url"],
        socketPath=opts["socket-path"],
        searchBase=opts["search-base"],
        searchUser=opts["search-user"],
        scope=opts["scope"],
    )


@defer.inlineCallbacks
def main(reactor, client, username, password, group=None, out=sys.stdout):
    yield client.bind()
    try:
        valid = yield client.authenticate(username, password)
        print("valid" if valid else "invalid", file=out)
        if valid and group:
            member = yield client.userInGroup(username, group)
            print(f"member of {group}: {'yes' if member else 'no'}", file=out)
    finally:
        yield client.unbind()
    return EXIT_VALID if valid else EXIT_INVALID


def _exit(status):
    raise SystemExit(status)


def console_script():
    try:
        opts = MyOptions()
        opts.parseOptions()
    except usage.UsageError as ue:
        sys.stderr.write(f"{sys.argv[0]}: {ue}\n")
        sys.exit(EXIT_ERROR)

    logger = None
    if opts["verbose"]:
        from twisted.python import log

        log.startLogging(sys.stderr, setStdout=0)
        logger = Logger(namespace="adldap")

    configFiles = [opts["config"]] if opts["config"] else None
    try:
        cfg = buildConfig(opts, config.loadConfig(configFiles))
        client = ADClient(cfg, log=logger)
    except errors.ConfigurationError as e:
        sys.stderr.write(f"{sys.argv[0]}: {e}.\n")
        sys.exit(EXIT_ERROR)

    password = getpass.getpass(f"Password for {opts['username']}: ")

    def run(reactor):
        d = main(reactor, client, opts["username"], password, opts["group"])

        def _eb(fail):
            print("fail:", fail.getErrorMessage(), file=sys.stderr)
            return EXIT_ERROR

        d.addErrback(_eb)
        d.addCallback(_exit)
        return d

    task.react(run)
