"""
Test cases for adldap.search module.
"""

from twisted.trial import unittest

from adldap import search
from adldap.errors import SearchError


BASE = "dc=domain,dc=com"


class BuildRequestTests(unittest.TestCase):
    def setUp(self):
        self.defaults = {"scope": "base", "attributes": ["dn", "cn", "memberOf"]}

    def build(self, *args):
        return search.buildRequest(BASE, self.defaults, *args)

    def test_options_only(self):
        base, options, controls = self.build({"filter": "(cn=foo)"})
        self.assertEqual(base, BASE)
        self.assertEqual(
            options,
            {"filter": "(cn=foo)", "scope": "base", "attributes": ["dn", "cn", "memberOf"]},
        )
        self.assertIsNone(controls)

    def test_explicit_base(self):
        base, options, controls = self.build(
            "ou=Domain Users,dc=domain,dc=com", {"filter": "(cn=foo)"}
        )
        self.assertEqual(base, "ou=Domain Users,dc=domain,dc=com")
        self.assertEqual(options["scope"], "base")

    def test_base_in_options(self):
        base, options, controls = self.build(
            {"filter": "(cn=foo)", "base": "ou=x,dc=domain,dc=com"}
        )
        self.assertEqual(base, "ou=x,dc=domain,dc=com")
        self.assertNotIn("base", options)

    def test_controls(self):
        controls = [("1.2.840.113556.1.4.319", None, b"\x30\x00")]
        base, options, c = self.build(BASE, {"filter": "(cn=foo)"}, controls)
        self.assertIs(c, controls)

    def test_attributes_replaced_whole(self):
        base, options, controls = self.build({"filter": "(cn=foo)", "attributes": ["sn"]})
        self.assertEqual(options["attributes"], ["sn"])

    def test_scope_override(self):
        base, options, controls = self.build({"filter": "(cn=foo)", "scope": "sub"})
        self.assertEqual(options["scope"], "sub")
        self.assertEqual(options["attributes"], ["dn", "cn", "memberOf"])

    def test_defaults_not_modified(self):
        self.build({"filter": "(cn=foo)", "scope": "sub", "attributes": ["sn"]})
        self.assertEqual(
            self.defaults, {"scope": "base", "attributes": ["dn", "cn", "memberOf"]}
        )

    def test_empty_base_omitted(self):
        base, options, controls = self.build("", {"filter": "(cn=foo)"})
        self.assertIsNone(base)

    def test_empty_default_base_omitted(self):
        base, options, controls = search.buildRequest(
            "", self.defaults, {"filter": "(cn=foo)"}
        )
        self.assertIsNone(base)

    def test_no_arguments(self):
        self.assertRaises(SearchError, self.build)

    def test_no_filter(self):
        self.assertRaises(SearchError, self.build, BASE, {"scope": "sub"})

    def test_options_twice(self):
        self.assertRaises(
            SearchError, self.build, {"filter": "(cn=a)"}, {"filter": "(cn=b)"}
        )


class FilterTests(unittest.TestCase):
    def test_simple_name(self):
        self.assertEqual(
            search.userFilter("jdoe"),
            "(&(objectcategory=user)(sAMAccountName=jdoe))",
        )

    def test_filter_verbatim(self):
        self.assertEqual(
            search.userFilter("(samaccountname=jdoe)"), "(samaccountname=jdoe)"
        )

    def test_simple_name_escaped(self):
        self.assertEqual(
            search.userFilter("j*doe)"),
            r"(&(objectcategory=user)(sAMAccountName=j\2adoe\29))",
        )

    def test_principal(self):
        self.assertEqual(
            search.principalFilter("jdoe@domain.com"),
            "(userPrincipalName=jdoe@domain.com)",
        )

    def test_cn(self):
        self.assertEqual(search.cnFilter("foobar"), "(cn=foobar)")
