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

"""Cascading province, district and ward pickers.

The checkout form, the add-address form and the edit-address form each own a
`LocationSelector`, and all of them read through one shared `LocationCache`.
"""

import logging
from typing import List, Optional

from .exceptions import ValidationFailedError
from .location_cache import LocationCache
from .models import LocationNode

logger = logging.getLogger(__name__)

NO_DATA_PLACEHOLDER = "No data"
CHOOSE_PROVINCE_PLACEHOLDER = "Choose a province first"
CHOOSE_DISTRICT_PLACEHOLDER = "Choose a district first"
CHOOSE_PLACEHOLDER = "Choose..."


def _key(value) -> Optional[str]:
  if value is None or value == "":
    return None
  return str(value)


def _find(nodes: List[LocationNode], node_id: Optional[str]):
  for node in nodes:
    if node.id == node_id:
      return node
  return None


class LocationSelector:
  """State of one province -> district -> ward cascade."""

  def __init__(self, cache: LocationCache, name: str = "checkout"):
    self._cache = cache
    self.name = name
    self.provinces: List[LocationNode] = []
    self.districts: List[LocationNode] = []
    self.wards: List[LocationNode] = []
    self.province_id: Optional[str] = None
    self.district_id: Optional[str] = None
    self.ward_code: Optional[str] = None
    # Bumped on every choice so late answers for an old parent are dropped.
    self._generation = 0

  # --- Placeholders ---

  @property
  def province_placeholder(self) -> str:
    return CHOOSE_PLACEHOLDER if self.provinces else NO_DATA_PLACEHOLDER

  @property
  def district_placeholder(self) -> str:
    if self.province_id is None:
      return CHOOSE_PROVINCE_PLACEHOLDER
    return CHOOSE_PLACEHOLDER if self.districts else NO_DATA_PLACEHOLDER

  @property
  def ward_placeholder(self) -> str:
    if self.district_id is None:
      return CHOOSE_DISTRICT_PLACEHOLDER
    return CHOOSE_PLACEHOLDER if self.wards else NO_DATA_PLACEHOLDER

  # --- Selected names ---

  @property
  def province_name(self) -> str:
    node = _find(self.provinces, self.province_id)
    return node.name if node else ""

  @property
  def district_name(self) -> str:
    node = _find(self.districts, self.district_id)
    return node.name if node else ""

  @property
  def ward_name(self) -> str:
    node = _find(self.wards, self.ward_code)
    return node.name if node else ""

  @property
  def is_complete(self) -> bool:
    return bool(self.province_id and self.district_id and self.ward_code)

  # --- Choices ---

  async def load_provinces(self) -> List[LocationNode]:
    self.provinces = await self._cache.provinces()
    return self.provinces

  async def choose_province(self, province_id) -> List[LocationNode]:
    """Selects a province, loads its districts and clears the lower tiers."""
    self._generation += 1
    generation = self._generation
    self.province_id = _key(province_id)
    self.district_id = None
    self.ward_code = None
    self.districts = []
    self.wards = []
    if self.province_id is None:
      return []
    districts = await self._cache.districts(self.province_id)
    if generation != self._generation:
      logger.debug("%s: dropping districts of %s", self.name, province_id)
      return self.districts
    self.districts = districts
    return districts

  async def choose_district(self, district_id) -> List[LocationNode]:
    """Selects a district, loads its wards and clears the ward."""
    self._generation += 1
    generation = self._generation
    self.district_id = _key(district_id)
    self.ward_code = None
    self.wards = []
    if self.district_id is None:
      return []
    wards = await self._cache.wards(self.district_id)
    if generation != self._generation:
      logger.debug("%s: dropping wards of %s", self.name, district_id)
      return self.wards
    self.wards = wards
    return wards

  def choose_ward(self, ward_code) -> Optional[LocationNode]:
    code = _key(ward_code)
    if code is not None and self.wards and _find(self.wards, code) is None:
      raise ValidationFailedError(
          "Please choose a ward from the list", field="ward_code"
      )
    self.ward_code = code
    return _find(self.wards, code)

  async def prefill(self, province_id, district_id, ward_code) -> None:
    """Restores a saved selection, loading each tier in order."""
    if not self.provinces:
      await self.load_provinces()
    await self.choose_province(province_id)
    if _key(district_id) is None:
      return
    await self.choose_district(district_id)
    if _key(ward_code) is not None:
      # Saved codes are kept even if the ward list could not be loaded.
      self.ward_code = _key(ward_code)

  def reset(self) -> None:
    self._generation += 1
    self.province_id = None
    self.district_id = None
    self.ward_code = None
    self.districts = []
    self.wards = []
