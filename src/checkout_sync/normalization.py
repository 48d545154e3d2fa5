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

"""Normalization of geographic lookup records.

The geo lookup service passes through carrier payloads whose field names vary
by source (`ProvinceID`, `provinceId`, `code`, ...). Records are normalized
once, when the location cache is filled, so no consumer ever reads a raw
record.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from .enums import LocationTier
from .models import LocationNode

logger = logging.getLogger(__name__)

_ID_KEYS = {
    LocationTier.PROVINCE: ("ProvinceID", "provinceId", "province_id"),
    LocationTier.DISTRICT: ("DistrictID", "districtId", "district_id"),
    LocationTier.WARD: ("WardCode", "wardCode", "ward_code"),
}
_NAME_KEYS = {
    LocationTier.PROVINCE: ("ProvinceName", "provinceName", "province_name"),
    LocationTier.DISTRICT: ("DistrictName", "districtName", "district_name"),
    LocationTier.WARD: ("WardName", "wardName", "ward_name"),
}
_GENERIC_ID_KEYS = ("code", "id")
_GENERIC_NAME_KEYS = ("name",)


def _first_present(record: Dict[str, Any], keys: Iterable[str]) -> Any:
  for key in keys:
    value = record.get(key)
    if value is not None and value != "":
      return value
  return None


def unwrap_records(payload: Any) -> List[Any]:
  """Returns the list of records of a lookup response.

  Accepts a bare list or a `{"data": [...]}` / `{"result": [...]}` envelope.
  Anything else yields an empty list.
  """
  if isinstance(payload, dict):
    for key in ("data", "result"):
      if isinstance(payload.get(key), list):
        return payload[key]
    return []
  if isinstance(payload, list):
    return payload
  return []


def normalize_location(
    record: Any, tier: LocationTier, parent_id: Optional[str] = None
) -> Optional[LocationNode]:
  """Normalizes one raw record, or returns None if it has no id or name."""
  if not isinstance(record, dict):
    return None
  raw_id = _first_present(record, _ID_KEYS[tier] + _GENERIC_ID_KEYS)
  raw_name = _first_present(record, _NAME_KEYS[tier] + _GENERIC_NAME_KEYS)
  if raw_id is None or raw_name is None:
    return None
  return LocationNode(
      id=str(raw_id),
      name=str(raw_name).strip(),
      tier=tier,
      parent_id=parent_id,
  )


def normalize_locations(
    payload: Any, tier: LocationTier, parent_id: Optional[str] = None
) -> List[LocationNode]:
  """Normalizes a lookup response into an ordered list of LocationNode.

  Args:
    payload: Decoded JSON body of the lookup call.
    tier: Tier of every record in the response.
    parent_id: Id of the parent node, None for provinces.

  Returns:
    The records in response order; unusable records are dropped.
  """
  nodes = []
  skipped = 0
  for record in unwrap_records(payload):
    node = normalize_location(record, tier, parent_id)
    if node is None:
      skipped += 1
      continue
    nodes.append(node)
  if skipped:
    logger.debug(
        "Dropped %d unusable %s records (parent=%s)",
        skipped,
        tier.value,
        parent_id,
    )
  return nodes
