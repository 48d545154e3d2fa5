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

"""Tests for the cart line store."""

import asyncio

from absl.testing import absltest

from checkout_sync.cart_store import CartLineStore
from checkout_sync.cart_store import MIN_QUANTITY_WARNING
from checkout_sync.cart_store import clamp_quantity
from checkout_sync.exceptions import CheckoutError
from checkout_sync.exceptions import ResourceNotFoundError
from checkout_sync.exceptions import ValidationFailedError
from checkout_sync.testing.fake_storefront import FakeStorefront

CART_LINE_PATH = "/cartLine/1/11"


class ClampQuantityTest(absltest.TestCase):

  def test_within_range(self):
    self.assertEqual(clamp_quantity("5", stock=10), (5, None))
    self.assertEqual(clamp_quantity(10, stock=10), (10, None))

  def test_empty_and_non_numeric_become_minimum(self):
    for raw in ("", "   ", "abc", None):
      self.assertEqual(
          clamp_quantity(raw, stock=10), (1, MIN_QUANTITY_WARNING), msg=raw
      )

  def test_below_minimum(self):
    self.assertEqual(clamp_quantity(0, stock=10), (1, MIN_QUANTITY_WARNING))
    self.assertEqual(clamp_quantity("-4", stock=10), (1, MIN_QUANTITY_WARNING))

  def test_above_stock(self):
    self.assertEqual(
        clamp_quantity(12, stock=7), (7, "Not enough stock (7 left)")
    )

  def test_never_above_ninety_nine(self):
    value, warning = clamp_quantity(500, stock=1000)
    self.assertEqual(value, 99)
    self.assertIsNotNone(warning)

  def test_fractions_are_truncated(self):
    self.assertEqual(clamp_quantity("2.7", stock=10), (2, None))


class CartLineStoreTest(absltest.TestCase):

  def setUp(self):
    super().setUp()
    self.storefront = FakeStorefront()
    self.storefront.add_line(11, "Rose bouquet", 100000, quantity=2, stock=10)
    self.storefront.add_line(12, "Tulip", 50000, quantity=1, stock=5)
    self.storefront.add_line(13, "Lily", 70000, choose=False)

  def _run(self, scenario):
    async def wrapper():
      async with self.storefront.client() as client:
        store = CartLineStore(client)
        await store.load(1)
        return await scenario(store)

    return asyncio.run(wrapper())

  def test_load_keeps_only_chosen_lines(self):
    async def scenario(store):
      return store.lines

    lines = self._run(scenario)
    self.assertEqual([line.cart_line_id for line in lines], [11, 12])
    self.assertEqual(lines[0].line_total, 200000)

  def test_set_quantity_applies_locally_first(self):
    seen = []

    async def scenario(store):
      async def after_local():
        seen.append(
            (store.get(11).quantity, len(self.storefront.cart_line_updates))
        )

      update = await store.set_quantity(11, 4, after_local=after_local)
      return update, store

    update, store = self._run(scenario)
    self.assertEqual(seen, [(4, 0)])
    self.assertEqual(update.line.quantity, 4)
    self.assertIsNone(update.warning)
    self.assertEqual(store.confirmed_quantity(11), 4)
    self.assertEqual(
        self.storefront.cart_line_updates,
        [{"lineId": 11, "quantity": 4, "choose": True}],
    )

  def test_failed_update_reverts_to_confirmed(self):
    self.storefront.fail_paths.add(CART_LINE_PATH)

    async def scenario(store):
      try:
        await store.set_quantity(11, 5)
      except CheckoutError as e:
        return e, store
      return None, store

    error, store = self._run(scenario)
    self.assertEqual(error.message, "Unable to update the product quantity")
    self.assertEqual(store.get(11).quantity, 2)
    self.assertEqual(store.confirmed_quantity(11), 2)

  def test_clamped_value_is_sent(self):
    async def scenario(store):
      return await store.set_quantity(12, 40)

    update = self._run(scenario)
    self.assertEqual(update.line.quantity, 5)
    self.assertEqual(update.warning, "Not enough stock (5 left)")
    self.assertEqual(self.storefront.cart_lines[12]["quantity"], 5)

  def test_typing_only_updates_the_draft(self):
    async def scenario(store):
      store.type_quantity(11, "")
      store.type_quantity(11, "7")
      drafted = (store.draft(11), store.get(11).quantity)
      calls_before_commit = len(self.storefront.cart_line_updates)
      update = await store.commit_quantity_input(11)
      return drafted, calls_before_commit, update, store

    drafted, calls_before_commit, update, store = self._run(scenario)
    self.assertEqual(drafted, ("7", 2))
    self.assertEqual(calls_before_commit, 0)
    self.assertEqual(update.line.quantity, 7)
    self.assertIsNone(store.draft(11))

  def test_committing_empty_input_clamps_to_one(self):
    async def scenario(store):
      store.type_quantity(11, "")
      return await store.commit_quantity_input(11)

    update = self._run(scenario)
    self.assertEqual(update.line.quantity, 1)
    self.assertEqual(update.warning, MIN_QUANTITY_WARNING)

  def test_step_quantity(self):
    async def scenario(store):
      up = await store.step_quantity(12, +1)
      down = await store.step_quantity(12, -1)
      floor = await store.step_quantity(12, -1)
      return up, down, floor

    up, down, floor = self._run(scenario)
    self.assertEqual(up.line.quantity, 2)
    self.assertEqual(down.line.quantity, 1)
    self.assertEqual(floor.line.quantity, 1)
    self.assertEqual(floor.warning, MIN_QUANTITY_WARNING)

  def test_unpurchasable_line_is_rejected(self):
    self.storefront.add_line(14, "Orchid", 90000, available=False)

    async def scenario(store):
      await store.load(1)
      await store.set_quantity(14, 2)

    with self.assertRaises(ValidationFailedError):
      self._run(scenario)

  def test_unselect_sends_displayed_quantity(self):
    async def scenario(store):
      await store.unselect(11, displayed_quantity=3)
      return store

    store = self._run(scenario)
    self.assertEqual(
        self.storefront.cart_line_updates,
        [{"lineId": 11, "quantity": 3, "choose": False}],
    )
    self.assertEqual([line.cart_line_id for line in store.lines], [12])
    with self.assertRaises(ResourceNotFoundError):
      store.get(11)

  def test_unselect_sends_uncommitted_draft(self):
    async def scenario(store):
      store.type_quantity(11, "4")
      await store.unselect(11)
      return store

    store = self._run(scenario)
    self.assertEqual(
        self.storefront.cart_line_updates,
        [{"lineId": 11, "quantity": 4, "choose": False}],
    )
    self.assertIsNone(store.draft(11))

  def test_unselect_clamps_displayed_quantity(self):
    async def scenario(store):
      await store.unselect(11, displayed_quantity=0)
      await store.unselect(12, displayed_quantity=500)

    self._run(scenario)
    self.assertEqual(
        [update["quantity"] for update in self.storefront.cart_line_updates],
        [1, 5],
    )


if __name__ == "__main__":
  absltest.main()
