#   Copyright 2026 UCP Authors
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""End-to-end tests of the checkout session against the fake storefront."""

import asyncio

from absl.testing import absltest

from checkout_sync import address_repository
from checkout_sync import session as session_lib
from checkout_sync import submission
from checkout_sync.enums import PaymentMethod
from checkout_sync.enums import SubmissionState
from checkout_sync.enums import ToastLevel
from checkout_sync.testing.fake_storefront import FakeStorefront

OWNER = 1


def _assert_total_invariant(test, snapshot):
  test.assertEqual(
      snapshot.total,
      snapshot.subtotal + snapshot.shipping_fee - snapshot.discount_amount,
  )


class CheckoutSessionTest(absltest.TestCase):

  def setUp(self):
    super().setUp()
    self.storefront = FakeStorefront()
    self.storefront.add_line(11, "Rose bouquet", 100000, quantity=5, stock=20)
    self.storefront.add_line(12, "Tulip", 30000, choose=False)

  def _run(self, scenario, **session_kwargs):
    async def wrapper():
      async with self.storefront.session(**session_kwargs) as session:
        return await scenario(session)

    return asyncio.run(wrapper())

  def test_bootstrap_signed_in_with_default_address(self):
    self.storefront.add_address(
        OWNER, name="Office", district_id=1455, ward_code="21301"
    )
    home = self.storefront.add_address(OWNER, is_default=True)

    async def scenario(session):
      ready = await session.bootstrap()
      return ready, session

    ready, session = self._run(scenario)
    self.assertTrue(ready)
    self.assertFalse(session.is_guest_mode)
    self.assertEqual(session.addresses.selected_id, home["idAddress"])
    self.assertEqual(session.form.full_name, "Alice Nguyen")
    self.assertEqual(session.form.email, "alice@example.com")
    self.assertEqual(
        (
            session.form.province_name,
            session.form.district_name,
            session.form.ward_name,
        ),
        ("Ha Noi", "Ba Dinh", "Phuc Xa"),
    )
    snapshot = session.snapshot
    self.assertEqual(snapshot.subtotal, 500000)
    self.assertEqual(snapshot.shipping_fee, 25000)
    self.assertEqual(snapshot.total, 525000)

  def test_guest_bootstrap(self):
    async def scenario(session):
      await session.bootstrap()
      return session

    session = self._run(scenario, access_token=None)
    self.assertIsNone(session.user)
    self.assertTrue(session.is_guest_mode)
    self.assertLen(session.shipping_selector.provinces, 2)
    self.assertEqual(session.snapshot.shipping_fee, 0)
    self.assertEqual(self.storefront.hits["/users/myInfo"], 0)

  def test_rejected_token_falls_back_to_guest(self):
    async def scenario(session):
      return await session.bootstrap(), session

    ready, session = self._run(scenario, access_token="expired")
    self.assertTrue(ready)
    self.assertIsNone(session.user)
    self.assertEqual(self.storefront.hits["/addresses/1"], 0)

  def test_slow_bootstrap_asks_for_retry(self):
    self.storefront.delays["/cart/current"] = 1.0

    async def scenario(session):
      first = await session.bootstrap()
      needs_retry = session.needs_retry
      self.storefront.delays.clear()
      second = await session.retry_bootstrap()
      return first, needs_retry, second, session

    first, needs_retry, second, session = self._run(
        scenario, bootstrap_timeout=0.05
    )
    self.assertFalse(first)
    self.assertTrue(needs_retry)
    self.assertIn(
        session_lib.SLOW_NETWORK_MESSAGE,
        session.notifier.messages(ToastLevel.WARNING),
    )
    self.assertTrue(second)
    self.assertFalse(session.needs_retry)
    self.assertEqual(session.snapshot.subtotal, 500000)

  def test_malformed_cart_record_fails_bootstrap_gracefully(self):
    del self.storefront.cart_lines[11]["idCartProduct"]

    async def scenario(session):
      return await session.bootstrap(), session

    ready, session = self._run(scenario)
    self.assertFalse(ready)
    self.assertFalse(session.loaded)
    self.assertEqual(
        session.notifier.last.message, session_lib.LOAD_FAILED_MESSAGE
    )
    self.assertEqual(session.notifier.last.level, ToastLevel.ERROR)

  def test_quantity_change_revalidates_discount(self):
    self.storefront.add_address(OWNER, is_default=True)

    async def scenario(session):
      await session.bootstrap()
      await session.apply_discount("SALE10")
      applied = session.snapshot
      update = await session.change_quantity(11, 8)
      return applied, update, session.snapshot

    applied, update, snapshot = self._run(scenario)
    self.assertEqual(applied.discount_amount, 50000)
    self.assertEqual(update.line.quantity, 8)
    self.assertEqual(self.storefront.discount_totals, [500000, 800000])
    self.assertEqual(snapshot.subtotal, 800000)
    self.assertEqual(snapshot.discount_amount, 80000)
    self.assertEqual(snapshot.total, 800000 + 25000 - 80000)
    _assert_total_invariant(self, snapshot)

  def test_failed_quantity_update_reverts(self):
    self.storefront.fail_paths.add("/cartLine/1/11")

    async def scenario(session):
      await session.bootstrap()
      result = await session.change_quantity(11, 8)
      return result, session

    result, session = self._run(scenario)
    self.assertIsNone(result)
    self.assertEqual(session.cart.get(11).quantity, 5)
    self.assertEqual(session.snapshot.subtotal, 500000)
    self.assertIn(
        "Unable to update the product quantity",
        session.notifier.messages(ToastLevel.ERROR),
    )

  def test_quantity_entry_clamps_with_warning(self):
    async def scenario(session):
      await session.bootstrap()
      session.type_quantity(11, "")
      await session.commit_quantity(11)
      return session

    session = self._run(scenario)
    self.assertEqual(session.cart.get(11).quantity, 1)
    self.assertEqual(session.snapshot.subtotal, 100000)
    self.assertEqual(session.notifier.last.message, "Minimum quantity is 1")

  def test_unselect_line_updates_pricing(self):
    self.storefront.add_line(13, "Lily", 70000, quantity=2)

    async def scenario(session):
      await session.bootstrap()
      before = session.snapshot.subtotal
      await session.unselect_line(13)
      return before, session.snapshot.subtotal

    before, after = self._run(scenario)
    self.assertEqual(before, 640000)
    self.assertEqual(after, 500000)
    self.assertFalse(self.storefront.cart_lines[13]["choose"])

  def test_unselect_sends_typed_quantity(self):
    async def scenario(session):
      await session.bootstrap()
      session.type_quantity(11, "7")
      return await session.unselect_line(11)

    self.assertTrue(self._run(scenario))
    self.assertEqual(
        self.storefront.cart_line_updates,
        [{"lineId": 11, "quantity": 7, "choose": False}],
    )

  def test_deleting_only_address_enters_guest_mode(self):
    only = self.storefront.add_address(OWNER, is_default=True)

    async def scenario(session):
      await session.bootstrap()
      deleted = await session.delete_address(only["idAddress"])
      return deleted, session

    deleted, session = self._run(scenario)
    self.assertTrue(deleted)
    self.assertTrue(session.is_guest_mode)
    self.assertIsNone(session.addresses.selected)
    self.assertIsNone(session.form.province_id)
    self.assertEqual(session.form.email, "alice@example.com")
    self.assertEqual(session.snapshot.shipping_fee, 0)
    self.assertIn(
        session_lib.ALL_ADDRESSES_DELETED_MESSAGE,
        session.notifier.messages(ToastLevel.INFO),
    )

  def test_deleting_default_address_is_refused(self):
    default = self.storefront.add_address(OWNER, is_default=True)
    self.storefront.add_address(OWNER)

    async def scenario(session):
      await session.bootstrap()
      return await session.delete_address(default["idAddress"]), session

    deleted, session = self._run(scenario)
    self.assertFalse(deleted)
    self.assertEqual(
        session.notifier.last.message,
        address_repository.DEFAULT_ADDRESS_DELETE_MESSAGE,
    )
    self.assertLen(self.storefront.addresses[OWNER], 2)

  def test_add_address_through_shared_selectors(self):
    self.storefront.add_address(OWNER, is_default=True)

    async def scenario(session):
      await session.bootstrap()
      selector = session.add_address_selector
      await selector.load_provinces()
      await selector.choose_province(7)
      placeholder = selector.ward_placeholder
      await selector.choose_district(1455)
      selector.choose_ward("21301")
      payload = session_lib.payload_from_selector(
          selector, "Office", "0900000000", "1 Trang Tien", is_default=True
      )
      created = await session.add_address(payload)
      return placeholder, created, session

    placeholder, created, session = self._run(scenario)
    self.assertEqual(placeholder, "Choose a district first")
    self.assertEqual(self.storefront.hits["/api/ghn/provinces"], 1)
    self.assertEqual(self.storefront.hits["/api/ghn/districts/7"], 1)
    self.assertEqual(session.addresses.selected_id, created.address_id)
    self.assertEqual(session.form.district_name, "Hoan Kiem")
    self.assertEqual(session.snapshot.shipping_fee, 30000)
    self.assertIsNone(session.add_address_selector.province_id)

  def test_guest_checkout_with_manual_form(self):
    async def scenario(session):
      await session.bootstrap()
      await session.choose_province(202)
      await session.choose_district(1442)
      await session.choose_ward("20101")
      quoted = session.snapshot
      session.update_form(
          full_name="Bob Tran",
          phone="0912345678",
          email="bob@example.com",
          address_detail="5 Le Loi",
      )
      outcome = await session.place_order()
      return quoted, outcome, session

    quoted, outcome, session = self._run(scenario, access_token=None)
    self.assertEqual(quoted.shipping_fee, 35000)
    self.assertEqual(quoted.total, 535000)
    self.assertEqual(outcome.state, SubmissionState.COMPLETED)
    self.assertEqual(
        session.navigator.current_url,
        "/user/order-detail/access?orderId=5001",
    )
    self.assertEqual(
        self.storefront.orders[0]["addressDetail"],
        "5 Le Loi, Ben Nghe, Quan 1, Ho Chi Minh",
    )

  def test_vnpay_link_failure_lands_on_confirmation(self):
    self.storefront.add_address(OWNER, is_default=True)
    self.storefront.fail_paths.add("/payment/vnpay/create/5001")

    async def scenario(session):
      await session.bootstrap()
      session.update_form(payment_method=PaymentMethod.VNPAY)
      return await session.place_order(), session

    outcome, session = self._run(scenario)
    self.assertEqual(outcome.state, SubmissionState.COMPLETED)
    self.assertEqual(session.navigator.history, ["/user/order-detail/5001"])
    self.assertIn(
        submission.payment_link_warning(PaymentMethod.VNPAY),
        session.notifier.messages(),
    )

  def test_validation_failure_keeps_session_interactive(self):
    async def scenario(session):
      await session.bootstrap()
      outcome = await session.place_order()
      return outcome, session

    outcome, session = self._run(scenario, access_token=None)
    self.assertEqual(outcome.state, SubmissionState.IDLE)
    self.assertEqual(outcome.field, "full_name")
    self.assertEqual(session.submission.state, SubmissionState.IDLE)
    self.assertEqual(session.notifier.last.level, ToastLevel.WARNING)

  def test_empty_checkout_cannot_be_ordered(self):
    self.storefront.cart_lines.clear()

    async def scenario(session):
      await session.bootstrap()
      return await session.place_order(), session

    outcome, session = self._run(scenario)
    self.assertIsNone(outcome)
    self.assertEqual(
        session.notifier.last.message, session_lib.NO_PRODUCTS_MESSAGE
    )

  def test_closed_session_drops_late_toasts(self):
    async def scenario(session):
      await session.bootstrap()
      count = len(session.notifier.toasts)
      await session.close()
      await session.apply_discount("")
      return count, session

    count, session = self._run(scenario)
    self.assertLen(session.notifier.toasts, count)


if __name__ == "__main__":
  absltest.main()
