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

"""Tests for the cascading location selectors."""

import asyncio

from absl.testing import absltest

from checkout_sync import selectors
from checkout_sync.exceptions import ValidationFailedError
from checkout_sync.location_cache import LocationCache
from checkout_sync.selectors import LocationSelector
from checkout_sync.testing.fake_storefront import FakeStorefront


class LocationSelectorTest(absltest.TestCase):

  def setUp(self):
    super().setUp()
    self.storefront = FakeStorefront()

  def _run(self, scenario):
    async def wrapper():
      async with self.storefront.client() as client:
        cache = LocationCache(client)
        return await scenario(LocationSelector(cache), cache)

    return asyncio.run(wrapper())

  def test_choosing_a_province_clears_lower_tiers(self):
    async def scenario(selector, cache):
      del cache  # Unused.
      await selector.load_provinces()
      await selector.choose_province(7)
      await selector.choose_district(1454)
      selector.choose_ward("21211")
      complete = selector.is_complete
      await selector.choose_province(202)
      return complete, selector

    complete, selector = self._run(scenario)
    self.assertTrue(complete)
    self.assertEqual(selector.province_name, "Ho Chi Minh")
    self.assertIsNone(selector.district_id)
    self.assertIsNone(selector.ward_code)
    self.assertEqual(selector.wards, [])
    self.assertEqual([d.name for d in selector.districts], ["Quan 1"])
    self.assertEqual(
        selector.ward_placeholder, selectors.CHOOSE_DISTRICT_PLACEHOLDER
    )

  def test_placeholders_follow_the_cascade(self):
    async def scenario(selector, cache):
      del cache  # Unused.
      before = (selector.province_placeholder, selector.district_placeholder)
      await selector.load_provinces()
      loaded = (selector.province_placeholder, selector.district_placeholder)
      await selector.choose_province(7)
      return before, loaded, selector.district_placeholder

    before, loaded, chosen = self._run(scenario)
    self.assertEqual(
        before,
        (
            selectors.NO_DATA_PLACEHOLDER,
            selectors.CHOOSE_PROVINCE_PLACEHOLDER,
        ),
    )
    self.assertEqual(
        loaded,
        (selectors.CHOOSE_PLACEHOLDER, selectors.CHOOSE_PROVINCE_PLACEHOLDER),
    )
    self.assertEqual(chosen, selectors.CHOOSE_PLACEHOLDER)

  def test_late_answer_for_previous_province_is_dropped(self):
    self.storefront.delays["/api/ghn/districts/7"] = 0.05

    async def scenario(selector, cache):
      del cache  # Unused.
      await asyncio.gather(
          selector.choose_province(7), selector.choose_province(202)
      )
      return selector

    selector = self._run(scenario)
    self.assertEqual(selector.province_id, "202")
    self.assertEqual([d.id for d in selector.districts], ["1442"])

  def test_failed_lookup_shows_no_data(self):
    self.storefront.fail_paths.add("/api/ghn/wards/1454")

    async def scenario(selector, cache):
      del cache  # Unused.
      await selector.choose_province(7)
      await selector.choose_district(1454)
      return selector

    selector = self._run(scenario)
    self.assertEqual(selector.wards, [])
    self.assertEqual(selector.ward_placeholder, selectors.NO_DATA_PLACEHOLDER)

  def test_unknown_ward_is_rejected(self):
    async def scenario(selector, cache):
      del cache  # Unused.
      await selector.choose_province(7)
      await selector.choose_district(1454)
      selector.choose_ward("99999")

    with self.assertRaises(ValidationFailedError):
      self._run(scenario)

  def test_selectors_share_the_cache(self):
    async def scenario(selector, cache):
      other = LocationSelector(cache, "edit-address")
      await selector.prefill(7, 1454, "21212")
      await other.prefill("7", "1454", "21212")
      return selector, other

    selector, other = self._run(scenario)
    self.assertEqual(other.ward_name, "Truc Bach")
    self.assertEqual(selector.district_name, other.district_name)
    self.assertEqual(self.storefront.hits["/api/ghn/provinces"], 1)
    self.assertEqual(self.storefront.hits["/api/ghn/districts/7"], 1)
    self.assertEqual(self.storefront.hits["/api/ghn/wards/1454"], 1)


if __name__ == "__main__":
  absltest.main()
