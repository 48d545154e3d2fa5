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

"""Address book of the signed-in owner.

`AddressRepository` is a CRUD facade over the address service. It also keeps
the owner's loaded address list and the address currently selected for
shipping:

- On load, the default address is selected, else the first one; an empty
  book leaves the checkout in guest-form mode.
- At most one address is ever flagged as default in the loaded list.
- Province, district and ward names are resolved through the shared
  `LocationCache`, after the raw list has been made available.
"""

import asyncio
import logging
from typing import List, Optional

from . import constants
from .api_client import StorefrontClient
from .exceptions import BusinessRuleError
from .exceptions import DefaultAddressDeletionError
from .exceptions import ResourceNotFoundError
from .exceptions import ValidationFailedError
from .location_cache import LocationCache
from .models import Address
from .models import AddressPayload

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS_DELETE_MESSAGE = (
    "Cannot delete the default address. Please set another address as"
    " default first."
)
DEFAULT_ADDRESS_UNSET_MESSAGE = (
    "The default address cannot be unset. Please set another address as"
    " default instead."
)


def enforce_single_default(addresses: List[Address]) -> List[Address]:
  """Keeps the first default flag and clears any later one."""
  seen_default = False
  result = []
  for address in addresses:
    if address.is_default:
      if seen_default:
        logger.warning(
            "Address %s is also flagged default; clearing the flag",
            address.address_id,
        )
        address = address.model_copy(update={"is_default": False})
      seen_default = True
    result.append(address)
  return result


def pick_default(addresses: List[Address]) -> Optional[Address]:
  """Returns the default address, else the first one, else None."""
  for address in addresses:
    if address.is_default:
      return address
  return addresses[0] if addresses else None


def validate_payload(payload: AddressPayload) -> None:
  """Raises ValidationFailedError for the first missing required field."""
  required = (
      ("name", payload.name.strip(), "Please enter the recipient name"),
      ("phone", payload.phone.strip(), "Please enter a phone number"),
      (
          "address_detail",
          payload.address_detail.strip(),
          "Please enter the detailed address",
      ),
      ("province_id", payload.province_id, "Please choose a province"),
      ("district_id", payload.district_id, "Please choose a district"),
      ("ward_code", payload.ward_code, "Please choose a ward"),
  )
  for field, value, message in required:
    if not value:
      raise ValidationFailedError(message, field=field)


def _is_default_address_rejection(error: BusinessRuleError, code: str) -> bool:
  # Older services only signal this in the free-text message.
  return (
      error.code == code
      or constants.DEFAULT_ADDRESS_MARKER in error.message.lower()
  )


class AddressRepository:
  """CRUD facade and selection state for one owner's saved addresses."""

  def __init__(self, client: StorefrontClient, cache: LocationCache):
    self._client = client
    self._cache = cache
    self.addresses: List[Address] = []
    self.selected_id: Optional[int] = None
    self._resolving: Optional[asyncio.Task] = None

  # --- Selection state ---

  @property
  def selected(self) -> Optional[Address]:
    return self.find(self.selected_id)

  @property
  def is_guest_mode(self) -> bool:
    """True when there is no saved address to offer."""
    return not self.addresses

  def find(self, address_id: Optional[int]) -> Optional[Address]:
    for address in self.addresses:
      if address.address_id == address_id:
        return address
    return None

  def select(self, address_id: int) -> Address:
    address = self.find(address_id)
    if address is None:
      raise ResourceNotFoundError("Address does not exist")
    self.selected_id = address_id
    return address

  async def load(self, owner_id: int) -> Optional[Address]:
    """Loads the owner's addresses and selects the default one.

    Names are not resolved yet; call `resolve_all_in_background` to patch
    them in without delaying the first render.

    Returns:
      The selected address, or None when the book is empty.
    """
    self.addresses = await self.list(owner_id)
    chosen = pick_default(self.addresses)
    self.selected_id = chosen.address_id if chosen else None
    logger.info(
        "Loaded %d addresses for owner %s (selected=%s)",
        len(self.addresses),
        owner_id,
        self.selected_id,
    )
    return chosen

  # --- CRUD ---

  async def list(self, owner_id: int) -> List[Address]:
    return enforce_single_default(await self._client.list_addresses(owner_id))

  async def get(self, owner_id: int, address_id: int) -> Address:
    try:
      return await self._client.get_address(owner_id, address_id)
    except ResourceNotFoundError as e:
      raise ResourceNotFoundError("Address does not exist") from e

  async def create(
      self, owner_id: int, payload: AddressPayload
  ) -> Optional[Address]:
    """Saves a new address and reloads the book.

    The new address becomes the selection when it is the default or the
    only address.
    """
    validate_payload(payload)
    created = await self._client.create_address(owner_id, payload)
    await self._reload(owner_id)
    if payload.is_default or len(self.addresses) == 1:
      chosen = pick_default(self.addresses)
      self.selected_id = chosen.address_id if chosen else None
    return self.find(created.address_id) if created else self.selected

  async def update(
      self, owner_id: int, address_id: int, payload: AddressPayload
  ) -> Optional[Address]:
    validate_payload(payload)
    try:
      await self._client.update_address(owner_id, address_id, payload)
    except BusinessRuleError as e:
      if _is_default_address_rejection(
          e, constants.CANNOT_REMOVE_DEFAULT_ADDRESS
      ):
        raise BusinessRuleError(
            DEFAULT_ADDRESS_UNSET_MESSAGE,
            code=constants.CANNOT_REMOVE_DEFAULT_ADDRESS,
            status_code=e.status_code,
        ) from e
      raise
    except ResourceNotFoundError as e:
      raise ResourceNotFoundError("Address does not exist") from e
    await self._reload(owner_id)
    return self.find(address_id)

  async def delete(self, owner_id: int, address_id: int) -> None:
    """Deletes an address.

    Raises:
      DefaultAddressDeletionError: the service refused to delete the
        default address.
      ResourceNotFoundError: the address no longer exists.
    """
    try:
      await self._client.delete_address(owner_id, address_id)
    except DefaultAddressDeletionError:
      raise
    except BusinessRuleError as e:
      if _is_default_address_rejection(
          e, constants.CANNOT_DELETE_DEFAULT_ADDRESS
      ):
        raise DefaultAddressDeletionError(
            DEFAULT_ADDRESS_DELETE_MESSAGE
        ) from e
      raise BusinessRuleError(
          "Unable to delete address",
          code=e.code,
          status_code=e.status_code,
      ) from e
    except ResourceNotFoundError as e:
      raise ResourceNotFoundError("Address does not exist") from e

    await self._reload(owner_id)
    if self.find(self.selected_id) is None:
      chosen = pick_default(self.addresses)
      self.selected_id = chosen.address_id if chosen else None

  async def _reload(self, owner_id: int) -> None:
    self.addresses = await self.list(owner_id)
    if self.find(self.selected_id) is None:
      self.selected_id = None
    self.resolve_all_in_background()

  # --- Display names ---

  async def resolve_display_names(self, address: Address) -> Address:
    """Returns a copy of `address` with province/district/ward names."""
    province_name, district_name, ward_name = await asyncio.gather(
        self._cache.province_name(address.province_id),
        self._cache.district_name(address.province_id, address.district_id),
        self._cache.ward_name(address.district_id, address.ward_code),
    )
    return address.model_copy(
        update={
            "province_name": province_name,
            "district_name": district_name,
            "ward_name": ward_name,
        }
    )

  def resolve_all_in_background(self) -> asyncio.Task:
    """Starts resolving names of every loaded address.

    Addresses are patched in place by id once all of them are resolved;
    entries removed meanwhile are left alone.
    """
    if self._resolving is not None and not self._resolving.done():
      self._resolving.cancel()
    self._resolving = asyncio.ensure_future(self._resolve_all())
    return self._resolving

  async def wait_resolved(self) -> None:
    """Waits until the most recent name resolution has finished."""
    while self._resolving is not None:
      task = self._resolving
      try:
        await asyncio.shield(task)
      except asyncio.CancelledError:
        if not task.cancelled():
          raise
      if task is self._resolving:
        return

  async def _resolve_all(self) -> None:
    snapshot = list(self.addresses)
    resolved = await asyncio.gather(
        *(self.resolve_display_names(address) for address in snapshot)
    )
    by_id = {address.address_id: address for address in resolved}
    self.addresses = [
        by_id.get(address.address_id, address)
        if not address.is_resolved
        else address
        for address in self.addresses
    ]
