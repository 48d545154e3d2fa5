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

"""TTL cache of the province → district → ward reference data.

One `LocationCache` instance is shared by every address surface (checkout
form, add-address form, edit-address form). Each entry is keyed by its parent
(`provinces`, `districts_<provinceId>`, `wards_<districtId>`) and remembered
together with its capture time in a TTL index:

- A fresh entry is served without touching the network.
- A stale entry is evicted lazily, on the read that finds it stale.
- Concurrent reads of the same missing key share one in-flight fetch.
- Failed fetches are never cached; the caller gets an empty list.

A background sweep prunes expired keys from the TTL index every minute so the
index cannot grow without bound.
"""

import asyncio
import contextlib
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from . import constants
from .api_client import StorefrontClient
from .enums import LocationTier
from .exceptions import CheckoutError
from .models import LocationNode
from .normalization import normalize_locations

logger = logging.getLogger(__name__)


def province_key() -> str:
  return constants.PROVINCES_KEY


def districts_key(province_id) -> str:
  return f"{constants.DISTRICTS_KEY_PREFIX}{province_id}"


def wards_key(district_id) -> str:
  return f"{constants.WARDS_KEY_PREFIX}{district_id}"


def _parse_key(key: str) -> Tuple[LocationTier, Optional[str]]:
  if key == constants.PROVINCES_KEY:
    return LocationTier.PROVINCE, None
  if key.startswith(constants.DISTRICTS_KEY_PREFIX):
    return LocationTier.DISTRICT, key[len(constants.DISTRICTS_KEY_PREFIX):]
  if key.startswith(constants.WARDS_KEY_PREFIX):
    return LocationTier.WARD, key[len(constants.WARDS_KEY_PREFIX):]
  raise ValueError(f"Unknown location cache key: {key}")


class LocationCache:
  """Shared, lazily populated cache of geographic lookup results."""

  def __init__(
      self,
      client: StorefrontClient,
      ttl_seconds: float = constants.LOCATION_TTL_SECONDS,
      sweep_interval_seconds: float = constants.LOCATION_SWEEP_INTERVAL_SECONDS,
      clock: Callable[[], float] = time.monotonic,
  ):
    self._client = client
    self._ttl = ttl_seconds
    self._sweep_interval = sweep_interval_seconds
    self._clock = clock
    self._payload: Dict[str, List[LocationNode]] = {}
    self._captured_at: Dict[str, float] = {}
    self._inflight: Dict[str, asyncio.Task] = {}
    self._sweeper: Optional[asyncio.Task] = None

  # --- Public contract ---

  async def provinces(self) -> List[LocationNode]:
    return await self.get(province_key())

  async def districts(self, province_id) -> List[LocationNode]:
    return await self.get(districts_key(province_id))

  async def wards(self, district_id) -> List[LocationNode]:
    return await self.get(wards_key(district_id))

  async def get(self, key: str) -> List[LocationNode]:
    """Returns the nodes stored under `key`, fetching them if needed.

    Args:
      key: A cache key built by `province_key`, `districts_key` or
        `wards_key`.

    Returns:
      The ordered nodes, or an empty list if the lookup service failed.
    """
    _parse_key(key)
    if self.is_fresh(key):
      return list(self._payload[key])
    self._evict(key)

    task = self._inflight.get(key)
    if task is None:
      task = asyncio.ensure_future(self._fill(key))
      self._inflight[key] = task
      task.add_done_callback(lambda t, k=key: self._forget_inflight(k, t))
    else:
      logger.debug("Joining in-flight location fetch for %s", key)
    return list(await asyncio.shield(task))

  def is_fresh(self, key: str) -> bool:
    captured_at = self._captured_at.get(key)
    if captured_at is None or key not in self._payload:
      return False
    return self._clock() - captured_at < self._ttl

  # --- Display name helpers ---

  async def province_name(self, province_id) -> str:
    if not province_id:
      return ""
    return _find_name(await self.provinces(), province_id)

  async def district_name(self, province_id, district_id) -> str:
    if not province_id or not district_id:
      return ""
    return _find_name(await self.districts(province_id), district_id)

  async def ward_name(self, district_id, ward_code) -> str:
    if not district_id or not ward_code:
      return ""
    return _find_name(await self.wards(district_id), ward_code)

  # --- Expiry ---

  def prune_expired(self) -> int:
    """Removes expired keys from the TTL index; returns how many."""
    now = self._clock()
    expired = [
        key
        for key, captured_at in self._captured_at.items()
        if now - captured_at >= self._ttl
    ]
    for key in expired:
      del self._captured_at[key]
    return len(expired)

  def start_sweeper(self) -> None:
    """Starts the periodic TTL index sweep on the running event loop."""
    if self._sweeper is None or self._sweeper.done():
      self._sweeper = asyncio.get_running_loop().create_task(
          self._sweep_forever()
      )

  async def aclose(self) -> None:
    if self._sweeper is not None:
      self._sweeper.cancel()
      with contextlib.suppress(asyncio.CancelledError):
        await self._sweeper
      self._sweeper = None

  async def _sweep_forever(self) -> None:
    while True:
      await asyncio.sleep(self._sweep_interval)
      pruned = self.prune_expired()
      if pruned:
        logger.debug("Pruned %d expired location keys", pruned)

  # --- Internals ---

  def _evict(self, key: str) -> None:
    if self._payload.pop(key, None) is not None:
      logger.debug("Evicted stale location entry %s", key)
    self._captured_at.pop(key, None)

  def _forget_inflight(self, key: str, task: asyncio.Task) -> None:
    if self._inflight.get(key) is task:
      del self._inflight[key]

  async def _fill(self, key: str) -> List[LocationNode]:
    tier, parent_id = _parse_key(key)
    try:
      if tier is LocationTier.PROVINCE:
        payload = await self._client.get_provinces()
      elif tier is LocationTier.DISTRICT:
        payload = await self._client.get_districts(parent_id)
      else:
        payload = await self._client.get_wards(parent_id)
    except CheckoutError as e:
      logger.warning("Location lookup %s failed: %s", key, e.message)
      return []

    nodes = normalize_locations(payload, tier, parent_id)
    self._payload[key] = nodes
    self._captured_at[key] = self._clock()
    logger.debug("Cached %d %s nodes under %s", len(nodes), tier.value, key)
    return nodes


def _find_name(nodes: List[LocationNode], node_id) -> str:
  wanted = str(node_id)
  for node in nodes:
    if node.id == wanted:
      return node.name
  return ""
