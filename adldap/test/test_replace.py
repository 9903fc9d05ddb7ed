"""
Test cases for modifying directory objects through ADClient.
"""

from ldaptor import delta
from twisted.trial import unittest

from adldap import errors
from adldap.testutil import SEARCH_PASSWORD, SEARCH_USER, FakeDirectory


OBJECT_DN = "CN=foobar,OU=Computers,DC=domain,DC=com"


class ReplaceTestCase(unittest.TestCase):
    def setUp(self):
        self.directory = FakeDirectory()
        self.directory.addCredentials(SEARCH_USER, SEARCH_PASSWORD)
        self.directory.addResult(
            "(cn=foobar)", {"dn": OBJECT_DN, "cn": "foobar", "logonCount": "41"}
        )
        self.client = self.directory.createClient()
        self.successResultOf(self.client.bind())
        self.transport = self.directory.transports[0]


class ReplaceTests(ReplaceTestCase):
    def test_replace(self):
        change = self.client.Change("description", ["new text"])
        self.assertIsNone(self.successResultOf(self.client.replace(OBJECT_DN, change)))
        self.assertEqual(self.directory.modifications, [(OBJECT_DN, [change])])

    def test_replace_many(self):
        changes = [
            delta.Replace("description", ["new text"]),
            delta.Replace("location", ["basement"]),
        ]
        self.successResultOf(self.client.replace(OBJECT_DN, changes))
        self.assertEqual(self.directory.modifications, [(OBJECT_DN, changes)])

    def test_change_class(self):
        self.assertIs(self.client.Change, delta.Replace)

    def test_replace_refused(self):
        self.directory.modifyError = errors.fromResultCode(50)
        d = self.client.replace(OBJECT_DN, self.client.Change("description", ["x"]))
        f = self.failureResultOf(d, errors.LDAPProtocolError)
        self.assertEqual(f.value.kind, "insufficientAccessRights")

    def test_replace_unbound(self):
        self.successResultOf(self.client.unbind())
        d = self.client.replace(OBJECT_DN, self.client.Change("description", ["x"]))
        self.failureResultOf(d, errors.NotConnectedError)


class ReplaceAttributeTests(ReplaceTestCase):
    def test_replace_attribute(self):
        self.successResultOf(
            self.client.replaceAttribute("foobar", "description", "new text")
        )
        [(dn, [change])] = self.directory.modifications
        self.assertEqual(dn, OBJECT_DN)
        self.assertEqual(change.key, "description")
        self.assertEqual(set(change), {"new text"})
        search = [op for op in self.transport.sent if op[0] == "search"][-1]
        self.assertEqual(search[2]["filter"], "(cn=foobar)")
        self.assertEqual(search[2]["attributes"], ["dn"])

    def test_replace_attribute_values(self):
        self.successResultOf(
            self.client.replaceAttribute("foobar", "otherTelephone", ["1", 2])
        )
        [(dn, [change])] = self.directory.modifications
        self.assertEqual(set(change), {"1", "2"})

    def test_not_found(self):
        d = self.client.replaceAttribute("nothing", "description", "x")
        f = self.failureResultOf(d, errors.MultiplicityError)
        self.assertEqual(str(f.value), "zero objects found")
        self.assertEqual(self.directory.modifications, [])

    def test_too_many(self):
        self.directory.addResult(
            "(cn=twin)",
            {"dn": "CN=twin,OU=a,DC=domain,DC=com"},
            {"dn": "CN=twin,OU=b,DC=domain,DC=com"},
        )
        d = self.client.replaceAttribute("twin", "description", "x")
        f = self.failureResultOf(d, errors.MultiplicityError)
        self.assertEqual(str(f.value), "too many objects found")
        self.assertEqual(self.directory.modifications, [])


class IncrementAttributeTests(ReplaceTestCase):
    def test_increment(self):
        self.successResultOf(self.client.incrementAttribute("foobar", "logonCount"))
        [(dn, [change])] = self.directory.modifications
        self.assertEqual(dn, OBJECT_DN)
        self.assertEqual(change.key, "logonCount")
        self.assertEqual(set(change), {"42"})
        search = [op for op in self.transport.sent if op[0] == "search"][-1]
        self.assertEqual(search[2]["attributes"], ["dn", "logonCount"])

    def test_attribute_name_case(self):
        self.successResultOf(self.client.incrementAttribute("foobar", "logoncount"))
        [(dn, [change])] = self.directory.modifications
        self.assertEqual(set(change), {"42"})

    def test_not_a_number(self):
        self.directory.addResult(
            "(cn=text)", {"dn": "CN=text,DC=domain,DC=com", "description": "abc"}
        )
        d = self.client.incrementAttribute("text", "description")
        f = self.failureResultOf(d, errors.AttributeValueError)
        self.assertEqual(str(f.value), "attribute is not a number")
        self.assertEqual(self.directory.modifications, [])

    def test_missing_attribute(self):
        d = self.client.incrementAttribute("foobar", "badPwdCount")
        self.failureResultOf(d, errors.AttributeValueError)

    def test_not_found(self):
        d = self.client.incrementAttribute("nothing", "logonCount")
        self.failureResultOf(d, errors.MultiplicityError)
