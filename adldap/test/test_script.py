"""
Test cases for the adldap-authenticate command.
"""

import configparser
import io

from twisted.python import usage
from twisted.trial import unittest

from adldap import errors, search
from adldap._scripts import authenticate as script
from adldap.testutil import SEARCH_PASSWORD, SEARCH_USER, FakeDirectory


USER_DN = "CN=First Last Name,OU=Domain Users,DC=domain,DC=com"


class OptionsTests(unittest.TestCase):
    def test_username(self):
        opts = script.MyOptions()
        opts.parseOptions(["--url", "ldaps://dc1.domain.com", "-g", "Budget", "jdoe"])
        self.assertEqual(opts["username"], "jdoe")
        self.assertEqual(opts["url"], "ldaps://dc1.domain.com")
        self.assertEqual(opts["group"], "Budget")
        self.assertFalse(opts["verbose"])

    def test_bad_scope(self):
        opts = script.MyOptions()
        self.assertRaises(
            usage.UsageError, opts.parseOptions, ["--scope", "subtree", "jdoe"]
        )

    def test_missing_username(self):
        opts = script.MyOptions()
        self.assertRaises(usage.UsageError, opts.parseOptions, [])

    def test_build_config(self):
        cfg = configparser.ConfigParser(interpolation=None)
        cfg.read_string(
            """\
[adldap]
url = ldap://dc1.domain.com
search-base = dc=domain,dc=com
search-user = auth@domain.com
search-password = password
"""
        )
        opts = script.MyOptions()
        opts.parseOptions(["--scope", "sub", "jdoe"])
        config = script.buildConfig(opts, cfg)
        self.assertEqual(config.scope, "sub")
        self.assertEqual(config.url, "ldap://dc1.domain.com")

    def test_build_config_incomplete(self):
        opts = script.MyOptions()
        opts.parseOptions(["jdoe"])
        self.assertRaises(
            errors.ConfigurationError,
            script.buildConfig,
            opts,
            configparser.ConfigParser(interpolation=None),
        )


class MainTests(unittest.TestCase):
    def setUp(self):
        self.directory = FakeDirectory()
        self.directory.addCredentials(SEARCH_USER, SEARCH_PASSWORD)
        self.directory.addCredentials(USER_DN, "secret")
        self.directory.addResult(
            search.userFilter("jdoe"),
            {"dn": USER_DN, "memberOf": ["CN=Budget Users,OU=Groups,DC=domain,DC=com"]},
        )
        self.client = self.directory.createClient()
        self.out = io.StringIO()

    def main(self, username, password, group=None):
        d = script.main(None, self.client, username, password, group, out=self.out)
        return self.successResultOf(d)

    def test_valid(self):
        self.assertEqual(self.main("jdoe", "secret"), script.EXIT_VALID)
        self.assertEqual(self.out.getvalue(), "valid\n")
        self.assertFalse(self.client.isBound)

    def test_invalid(self):
        self.assertEqual(self.main("jdoe", "wrong"), script.EXIT_INVALID)
        self.assertEqual(self.out.getvalue(), "invalid\n")

    def test_group(self):
        self.assertEqual(self.main("jdoe", "secret", "budget"), script.EXIT_VALID)
        self.assertEqual(self.out.getvalue(), "valid\nmember of budget: yes\n")

    def test_not_in_group(self):
        self.main("jdoe", "secret", "Admins")
        self.assertEqual(self.out.getvalue(), "valid\nmember of Admins: no\n")

    def test_bind_failure(self):
        self.directory.addCredentials(SEARCH_USER, "changed")
        d = script.main(None, self.client, "jdoe", "secret", out=self.out)
        self.failureResultOf(d, errors.LDAPProtocolError)
        self.assertEqual(self.out.getvalue(), "")
