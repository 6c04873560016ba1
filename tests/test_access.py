import unittest

from bucketdraw.access import ReadOnlyPolicy, SingleAdminPolicy, normalize_account
from bucketdraw.errors import AccessDenied, InvalidInputs


class SingleAdminPolicyTests(unittest.TestCase):
    def test_admin_is_matched_case_insensitively(self):
        policy = SingleAdminPolicy("0xAbC")
        policy.require_admin("0xabc")
        policy.require_admin("  0XABC ")
        self.assertEqual(policy.admin, "0xabc")

    def test_other_accounts_are_denied(self):
        policy = SingleAdminPolicy("0xabc")
        for actor in ("0xdef", "", None, 42):
            with self.assertRaises(AccessDenied):
                policy.require_admin(actor)  # type: ignore[arg-type]

    def test_access_denied_is_permission_error(self):
        with self.assertRaises(PermissionError):
            SingleAdminPolicy("0xabc").require_admin("0xdef")

    def test_transfer_admin(self):
        policy = SingleAdminPolicy("0xabc")
        with self.assertRaises(AccessDenied):
            policy.transfer_admin("0xdef", "0xdef")
        policy.transfer_admin("0xabc", "0xDEF")
        self.assertEqual(policy.admin, "0xdef")
        with self.assertRaises(AccessDenied):
            policy.require_admin("0xabc")
        policy.require_admin("0xdef")

    def test_transfer_to_blank_account_rejected(self):
        policy = SingleAdminPolicy("0xabc")
        with self.assertRaises(InvalidInputs):
            policy.transfer_admin("0xabc", "   ")
        self.assertEqual(policy.admin, "0xabc")

    def test_lock_flag_defaults_to_false(self):
        self.assertFalse(SingleAdminPolicy("0xabc").lock_pending_ranges)
        self.assertTrue(SingleAdminPolicy("0xabc", lock_pending_ranges=True).lock_pending_ranges)

    def test_blank_admin_rejected(self):
        with self.assertRaises(InvalidInputs):
            SingleAdminPolicy(" ")
        with self.assertRaises(InvalidInputs):
            normalize_account(None)


class ReadOnlyPolicyTests(unittest.TestCase):
    def test_every_actor_is_denied(self):
        policy = ReadOnlyPolicy()
        self.assertFalse(policy.lock_pending_ranges)
        with self.assertRaises(AccessDenied):
            policy.require_admin("0xabc")


if __name__ == "__main__":
    unittest.main()
