import unittest
from unittest.mock import MagicMock
import helpers
import config

class TestIsAdmin(unittest.TestCase):
    def setUp(self):
        self.original_admin = config.ADMIN_ID
        config.ADMIN_ID = 123

    def tearDown(self):
        config.ADMIN_ID = self.original_admin

    def test_is_admin_user(self):
        user = MagicMock()
        user.id = 123
        self.assertTrue(helpers.is_admin(user))

    def test_is_admin_raw_id(self):
        self.assertTrue(helpers.is_admin(123))
        self.assertTrue(helpers.is_admin("123"))
        self.assertFalse(helpers.is_admin("abc"))

    def test_not_admin(self):
        user = MagicMock()
        user.id = 999
        self.assertFalse(helpers.is_admin(user))
        self.assertFalse(helpers.is_admin(999))

    def test_object_without_id(self):
        self.assertFalse(helpers.is_admin(object()))

    def test_unset_admin_refuses_everyone(self):
        config.ADMIN_ID = 0
        user = MagicMock()
        user.id = 0
        self.assertFalse(helpers.is_admin(user))
        self.assertFalse(helpers.is_admin(0))

if __name__ == '__main__':
    unittest.main()
