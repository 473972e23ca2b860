import unittest

from coupon_engine.models.coupon import AffiliateCoupon
from coupon_engine.services.link_composer import compose_link, resolve_code


class TestComposeLink(unittest.TestCase):
    def test_with_landing_page(self):
        self.assertEqual(compose_link("https://x.test/go", "ALICEBASE"), "https://x.test/go/ALICEBASE")

    def test_without_landing_page(self):
        self.assertEqual(compose_link(None, "ALICEBASE"), "ALICEBASE")
        self.assertEqual(compose_link("  ", "ALICEBASE"), "ALICEBASE")

    def test_single_trailing_slash_is_dropped(self):
        self.assertEqual(compose_link("https://x.test/go/", "ALICEBASE"), "https://x.test/go/ALICEBASE")


class TestResolveCode(unittest.TestCase):
    def test_persisted_code_wins(self):
        activation = AffiliateCoupon(custom_code="ALICESAVE10")
        self.assertEqual(resolve_code(activation, "alice2", "SAVE10", False), "ALICESAVE10")

    def test_preview_uses_current_handle(self):
        self.assertEqual(resolve_code(None, "alice2", "SAVE10", False), "ALICE2SAVE10")
        self.assertEqual(resolve_code(None, "alice2", "SAVE10", True), "ALICE2")


if __name__ == "__main__":
    unittest.main()
