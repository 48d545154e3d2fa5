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

"""Tests for geographic record normalization."""

from absl.testing import absltest

from checkout_sync.enums import LocationTier
from checkout_sync.normalization import normalize_location
from checkout_sync.normalization import normalize_locations
from checkout_sync.normalization import unwrap_records


class NormalizationTest(absltest.TestCase):

  def test_carrier_casing(self):
    node = normalize_location(
        {"ProvinceID": 201, "ProvinceName": " Ha Noi "}, LocationTier.PROVINCE
    )
    self.assertEqual(node.id, "201")
    self.assertEqual(node.name, "Ha Noi")
    self.assertIsNone(node.parent_id)

  def test_camel_case_and_generic_keys(self):
    camel = normalize_location(
        {"districtId": 1454, "districtName": "Ba Dinh"},
        LocationTier.DISTRICT,
        parent_id="201",
    )
    generic = normalize_location(
        {"code": "21211", "name": "Phuc Xa"}, LocationTier.WARD, "1454"
    )
    self.assertEqual((camel.id, camel.parent_id), ("1454", "201"))
    self.assertEqual((generic.id, generic.name), ("21211", "Phuc Xa"))

  def test_records_without_id_or_name_are_dropped(self):
    nodes = normalize_locations(
        [
            {"WardCode": "1", "WardName": "Kept"},
            {"WardName": "No code"},
            {"WardCode": "3"},
            "not a record",
        ],
        LocationTier.WARD,
        "7",
    )
    self.assertEqual([n.name for n in nodes], ["Kept"])

  def test_envelopes(self):
    records = [{"id": 1, "name": "A"}]
    self.assertEqual(unwrap_records({"data": records}), records)
    self.assertEqual(unwrap_records({"result": records}), records)
    self.assertEqual(unwrap_records(records), records)
    self.assertEqual(unwrap_records({"code": 200}), [])
    self.assertEqual(unwrap_records(None), [])

  def test_order_is_preserved(self):
    nodes = normalize_locations(
        {"data": [{"id": i, "name": f"P{i}"} for i in (3, 1, 2)]},
        LocationTier.PROVINCE,
    )
    self.assertEqual([n.id for n in nodes], ["3", "1", "2"])


if __name__ == "__main__":
  absltest.main()
