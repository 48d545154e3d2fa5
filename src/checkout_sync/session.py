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

"""Checkout session orchestrating the checkout page.

`CheckoutSession` wires the components together and owns every user-facing
handler. Components raise `CheckoutError`; the handlers here are where those
errors become toasts, and every handler leaves the session interactive.

Each cart or address mutation is followed by a pricing refresh so the summary
always matches the current lines, destination and discount.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from .address_repository import AddressRepository
from .api_client import StorefrontClient
from .cart_store import CartLineStore
from .cart_store import QuantityUpdate
from .config import CheckoutSettings
from .enums import SubmissionState
from .enums import ToastLevel
from .exceptions import AuthenticationRequiredError
from .exceptions import BootstrapTimeoutError
from .exceptions import BusinessRuleError
from .exceptions import CheckoutError
from .exceptions import ResourceNotFoundError
from .exceptions import ValidationFailedError
from .location_cache import LocationCache
from .models import Address
from .models import AddressPayload
from .models import DiscountApplication
from .models import PricingSnapshot
from .models import ShippingForm
from .models import SubmissionOutcome
from .models import UserProfile
from .notifications import Navigator
from .notifications import Notifier
from .notifications import RecordingNavigator
from .pricing import PricingEngine
from .selectors import LocationSelector
from .submission import OrderSubmissionFSM

logger = logging.getLogger(__name__)

SLOW_NETWORK_MESSAGE = "Slow network, please try again or reload the page"
LOAD_FAILED_MESSAGE = "Unable to load checkout information"
ADDRESSES_LOAD_FAILED_MESSAGE = "Unable to load the address list"
INVALID_DISCOUNT_MESSAGE = "Invalid discount code"
NO_PRODUCTS_MESSAGE = "There are no products to order"
ALL_ADDRESSES_DELETED_MESSAGE = (
    "You have deleted all addresses. Please add a new address."
)
DISCOUNT_STALE_MESSAGE = (
    "Could not update the discount amount; it will be confirmed when the"
    " order is placed"
)

_EDITABLE_FORM_FIELDS = frozenset(
    ("full_name", "phone", "email", "address_detail", "payment_method", "note")
)


def _to_int(value) -> Optional[int]:
  if value is None or value == "":
    return None
  try:
    return int(value)
  except (TypeError, ValueError) as e:
    raise ValidationFailedError(f"Invalid location id: {value!r}") from e


def payload_from_selector(
    selector: LocationSelector,
    name: str,
    phone: str,
    address_detail: str,
    is_default: bool = False,
) -> AddressPayload:
  """Builds an address body from an address form and its location picker."""
  return AddressPayload(
      name=name.strip(),
      phone=phone.strip(),
      address_detail=address_detail.strip(),
      province_id=_to_int(selector.province_id),
      district_id=_to_int(selector.district_id),
      ward_code=selector.ward_code,
      is_default=is_default,
  )


class CheckoutSession:
  """State and handlers of one checkout page."""

  def __init__(
      self,
      client: StorefrontClient,
      cache: LocationCache,
      settings: Optional[CheckoutSettings] = None,
      navigator: Optional[Navigator] = None,
      notifier: Optional[Notifier] = None,
  ):
    self.settings = settings or CheckoutSettings()
    self.client = client
    self.cache = cache
    self.notifier = notifier or Notifier()
    self.navigator = navigator or RecordingNavigator()

    self.addresses = AddressRepository(client, cache)
    self.cart = CartLineStore(client)
    self.pricing = PricingEngine(client, self.settings.parcel)
    self.submission = OrderSubmissionFSM(client, self.navigator)
    self.shipping_selector = LocationSelector(cache, "checkout")
    self.add_address_selector = LocationSelector(cache, "add-address")
    self.edit_address_selector = LocationSelector(cache, "edit-address")

    self.form = ShippingForm()
    self.user: Optional[UserProfile] = None
    self.loaded = False
    self.needs_retry = False
    self.closed = False

  @property
  def is_authenticated(self) -> bool:
    return self.user is not None

  @property
  def is_guest_mode(self) -> bool:
    """True when the shipping form is filled in by hand."""
    return self.user is None or self.addresses.is_guest_mode

  @property
  def snapshot(self) -> PricingSnapshot:
    return self.pricing.snapshot

  # --- Lifecycle ---

  async def bootstrap(self) -> bool:
    """Loads user, addresses, cart and pricing within the bootstrap timeout.

    Returns:
      True when the checkout is ready. On a timeout `needs_retry` is set and
      the shopper is asked to try again.
    """
    self.needs_retry = False
    self.cache.start_sweeper()
    try:
      await self._load_within_timeout()
    except BootstrapTimeoutError as e:
      logger.warning("%s", e.message)
      self.needs_retry = True
      self._toast(ToastLevel.WARNING, SLOW_NETWORK_MESSAGE)
      return False
    except CheckoutError as e:
      logger.error("Checkout bootstrap failed: %s", e.message)
      self._toast(ToastLevel.ERROR, LOAD_FAILED_MESSAGE)
      return False
    if self.closed:
      return False
    self.loaded = True
    return True

  async def retry_bootstrap(self) -> bool:
    return await self.bootstrap()

  async def close(self) -> None:
    """Leaves the page; results that arrive afterwards are discarded."""
    self.closed = True
    await self.cache.aclose()
    await self.client.aclose()

  async def _load_within_timeout(self) -> None:
    timeout = self.settings.bootstrap_timeout
    try:
      await asyncio.wait_for(self._load(), timeout=timeout)
    except asyncio.TimeoutError as e:
      raise BootstrapTimeoutError(
          f"Checkout bootstrap exceeded {timeout}s"
      ) from e

  async def _load(self) -> None:
    await self._load_user()
    await self.shipping_selector.load_provinces()
    if self.user is not None:
      await self._load_addresses()

    cart_id = await self.client.get_current_cart_id()
    if cart_id is None:
      logger.info("No current cart; checkout is empty")
    else:
      await self.cart.load(cart_id)
    await self._refresh_pricing()

  async def _load_user(self) -> None:
    self.user = None
    if not self.client.is_authenticated:
      return
    try:
      self.user = await self.client.get_current_user()
    except AuthenticationRequiredError:
      logger.info("Access token rejected; continuing as guest")
    except CheckoutError as e:
      logger.warning("Could not load the current user (%s); guest", e.message)
    else:
      self.form = self.form.model_copy(update={"email": self.user.email})

  async def _load_addresses(self) -> None:
    try:
      chosen = await self.addresses.load(self.user.user_id)
    except CheckoutError as e:
      logger.warning("Address load failed: %s", e.message)
      self._toast(ToastLevel.ERROR, ADDRESSES_LOAD_FAILED_MESSAGE)
      return
    self.addresses.resolve_all_in_background()
    if chosen is not None:
      await self._fill_form_from_address(chosen)

  # --- Cart lines ---

  def type_quantity(self, line_id: int, text: str) -> None:
    try:
      self.cart.type_quantity(line_id, text)
    except CheckoutError as e:
      self._toast(ToastLevel.ERROR, e.message)

  async def change_quantity(self, line_id: int, raw) -> Optional[QuantityUpdate]:
    return await self._sync_quantity(
        lambda after: self.cart.set_quantity(line_id, raw, after_local=after)
    )

  async def commit_quantity(
      self, line_id: int, text: Optional[str] = None
  ) -> Optional[QuantityUpdate]:
    return await self._sync_quantity(
        lambda after: self.cart.commit_quantity_input(
            line_id, text, after_local=after
        )
    )

  async def step_quantity(
      self, line_id: int, delta: int
  ) -> Optional[QuantityUpdate]:
    return await self._sync_quantity(
        lambda after: self.cart.step_quantity(line_id, delta, after_local=after)
    )

  async def _sync_quantity(
      self,
      operation: Callable[
          [Callable[[], Awaitable[Any]]], Awaitable[QuantityUpdate]
      ],
  ) -> Optional[QuantityUpdate]:
    try:
      update = await operation(self._refresh_pricing)
    except ValidationFailedError as e:
      self._toast(ToastLevel.ERROR, e.message)
      return None
    except CheckoutError as e:
      self._toast(ToastLevel.ERROR, e.message)
      # The store has reverted the line; bring the summary back with it.
      await self._refresh_pricing()
      return None
    if update.warning:
      self._toast(ToastLevel.WARNING, update.warning)
    return update

  async def unselect_line(self, line_id: int) -> bool:
    try:
      await self.cart.unselect(line_id)
    except CheckoutError as e:
      logger.warning("Unselecting line %s failed: %s", line_id, e.message)
      self._toast(ToastLevel.ERROR, "Unable to unselect the product")
      return False
    await self._refresh_pricing()
    return True

  # --- Addresses ---

  async def select_address(self, address_id: int) -> Optional[Address]:
    try:
      address = self.addresses.select(address_id)
    except ResourceNotFoundError:
      self._toast(ToastLevel.ERROR, "Please choose an address")
      return None
    await self._fill_form_from_address(address)
    await self._refresh_pricing()
    self._toast(ToastLevel.SUCCESS, "Shipping address selected")
    return address

  async def add_address(self, payload: AddressPayload) -> Optional[Address]:
    if not self._require_user():
      return None
    previous = self.addresses.selected_id
    try:
      created = await self.addresses.create(self.user.user_id, payload)
    except ValidationFailedError as e:
      self._toast(ToastLevel.ERROR, e.message)
      return None
    except CheckoutError as e:
      logger.warning("Saving address failed: %s", e.message)
      self._toast(ToastLevel.ERROR, "Unable to save the address")
      return None
    self._toast(ToastLevel.SUCCESS, "Address saved successfully")
    self.add_address_selector.reset()
    await self._follow_selection(previous)
    return created

  async def begin_edit_address(self, address_id: int) -> Optional[Address]:
    """Loads an address into the edit form and its location picker."""
    if not self._require_user():
      return None
    try:
      address = await self.addresses.get(self.user.user_id, address_id)
    except CheckoutError as e:
      self._toast(ToastLevel.ERROR, e.message)
      return None
    await self.edit_address_selector.prefill(
        address.province_id, address.district_id, address.ward_code
    )
    return address

  async def edit_address(
      self, address_id: int, payload: AddressPayload
  ) -> Optional[Address]:
    if not self._require_user():
      return None
    try:
      updated = await self.addresses.update(
          self.user.user_id, address_id, payload
      )
    except (ValidationFailedError, BusinessRuleError, ResourceNotFoundError) as e:
      self._toast(ToastLevel.ERROR, e.message)
      return None
    except CheckoutError as e:
      logger.warning("Updating address %s failed: %s", address_id, e.message)
      self._toast(ToastLevel.ERROR, "Unable to update the address")
      return None
    self._toast(ToastLevel.SUCCESS, "Address updated successfully")
    if self.addresses.selected_id == address_id and updated is not None:
      await self._fill_form_from_address(updated)
      await self._refresh_pricing()
    return updated

  async def delete_address(self, address_id: int) -> bool:
    if not self._require_user():
      return False
    previous = self.addresses.selected_id
    try:
      await self.addresses.delete(self.user.user_id, address_id)
    except CheckoutError as e:
      self._toast(ToastLevel.ERROR, e.message)
      return False
    self._toast(ToastLevel.SUCCESS, "Address deleted")
    if self.addresses.is_guest_mode:
      self._toast(ToastLevel.INFO, ALL_ADDRESSES_DELETED_MESSAGE)
    await self._follow_selection(previous)
    return True

  async def _follow_selection(self, previous: Optional[int]) -> None:
    """Refills the shipping form after a mutation moved the selection."""
    selected = self.addresses.selected
    if selected is None:
      if previous is not None or self.addresses.is_guest_mode:
        self._clear_shipping_location()
        await self._refresh_pricing()
      return
    if selected.address_id != previous:
      await self._fill_form_from_address(selected)
      await self._refresh_pricing()

  def _require_user(self) -> bool:
    if self.user is None:
      self._toast(ToastLevel.WARNING, "Please sign in to manage addresses")
      return False
    return True

  async def _fill_form_from_address(self, address: Address) -> None:
    selector = self.shipping_selector
    await selector.prefill(
        address.province_id, address.district_id, address.ward_code
    )
    self.form = self.form.model_copy(
        update={
            "full_name": address.name,
            "phone": address.phone,
            "email": self.user.email if self.user else self.form.email,
            "address_detail": address.address_detail,
            "province_id": address.province_id,
            "district_id": address.district_id,
            "ward_code": address.ward_code,
            "province_name": selector.province_name
            or (address.province_name or ""),
            "district_name": selector.district_name
            or (address.district_name or ""),
            "ward_name": selector.ward_name or (address.ward_name or ""),
        }
    )

  def _clear_shipping_location(self) -> None:
    self.shipping_selector.reset()
    self.form = ShippingForm(
        email=self.user.email if self.user else self.form.email,
        payment_method=self.form.payment_method,
        note=self.form.note,
    )

  # --- Shipping form ---

  def update_form(self, **fields) -> ShippingForm:
    """Edits free-text fields and the payment method of the shipping form."""
    unknown = set(fields) - _EDITABLE_FORM_FIELDS
    if unknown:
      raise ValueError(f"Not editable here: {sorted(unknown)}")
    self.form = ShippingForm.model_validate(
        {**self.form.model_dump(), **fields}
    )
    return self.form

  async def choose_province(self, province_id) -> None:
    selector = self.shipping_selector
    await selector.choose_province(province_id)
    self.form = self.form.model_copy(
        update={
            "province_id": _to_int(selector.province_id),
            "province_name": selector.province_name,
            "district_id": None,
            "district_name": "",
            "ward_code": None,
            "ward_name": "",
        }
    )
    await self._refresh_pricing()

  async def choose_district(self, district_id) -> None:
    selector = self.shipping_selector
    await selector.choose_district(district_id)
    self.form = self.form.model_copy(
        update={
            "district_id": _to_int(selector.district_id),
            "district_name": selector.district_name,
            "ward_code": None,
            "ward_name": "",
        }
    )
    await self._refresh_pricing()

  async def choose_ward(self, ward_code) -> None:
    selector = self.shipping_selector
    try:
      selector.choose_ward(ward_code)
    except ValidationFailedError as e:
      self._toast(ToastLevel.ERROR, e.message)
      return
    self.form = self.form.model_copy(
        update={
            "ward_code": selector.ward_code,
            "ward_name": selector.ward_name,
        }
    )
    await self._refresh_pricing()

  # --- Discounts ---

  async def apply_discount(self, code: str) -> Optional[DiscountApplication]:
    try:
      discount = await self.pricing.apply_discount(code, self.cart.lines)
    except ValidationFailedError as e:
      self._toast(ToastLevel.WARNING, e.message)
      return None
    except (BusinessRuleError, ResourceNotFoundError) as e:
      self._toast(ToastLevel.ERROR, e.message or INVALID_DISCOUNT_MESSAGE)
      return None
    except CheckoutError as e:
      logger.warning("Applying discount %s failed: %s", code, e.message)
      self._toast(ToastLevel.ERROR, INVALID_DISCOUNT_MESSAGE)
      return None
    self._toast(ToastLevel.SUCCESS, "Discount code applied successfully!")
    return discount

  async def remove_discount(self) -> PricingSnapshot:
    snapshot = await self.pricing.remove_discount(self.cart.lines)
    self._toast(ToastLevel.INFO, "Discount code removed")
    return snapshot

  # --- Ordering ---

  async def place_order(self) -> Optional[SubmissionOutcome]:
    if self.closed:
      return None
    if self.cart.is_empty:
      self._toast(ToastLevel.WARNING, NO_PRODUCTS_MESSAGE)
      return None
    discount = self.pricing.discount
    try:
      outcome = await self.submission.submit(
          self.cart.cart_id,
          self.form,
          discount_code=discount.code if discount else None,
          is_authenticated=self.is_authenticated,
      )
    except BusinessRuleError as e:
      self._toast(ToastLevel.WARNING, e.message)
      return None

    if outcome.state is SubmissionState.IDLE:
      level = ToastLevel.ERROR if outcome.field == "products" else (
          ToastLevel.WARNING
      )
      self._toast(level, outcome.message)
    elif outcome.state is SubmissionState.FAILED:
      self._toast(ToastLevel.ERROR, outcome.message)
      self.submission.reset()
    elif outcome.state is SubmissionState.COMPLETED:
      if outcome.warning:
        self._toast(ToastLevel.ERROR, outcome.warning)
      self._toast(ToastLevel.SUCCESS, outcome.message)
    return outcome

  # --- Internals ---

  async def _refresh_pricing(self, force_quote: bool = False) -> PricingSnapshot:
    snapshot = await self.pricing.refresh(
        self.cart.lines, self.form.destination, force_quote=force_quote
    )
    error = self.pricing.last_discount_error
    if error is not None:
      if self.pricing.discount is None:
        self._toast(
            ToastLevel.WARNING, f"Discount code removed: {error.message}"
        )
      else:
        self._toast(ToastLevel.WARNING, DISCOUNT_STALE_MESSAGE)
    return snapshot

  def _toast(self, level: ToastLevel, message: str) -> None:
    if self.closed:
      logger.debug("Session closed; dropping toast %r", message)
      return
    self.notifier.notify(level, message)


def create_session(
    settings: CheckoutSettings,
    navigator: Optional[Navigator] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> CheckoutSession:
  """Builds a session with one location cache shared by every form."""
  client = StorefrontClient(
      base_url=settings.storefront_url,
      access_token=settings.access_token,
      timeout=settings.request_timeout,
      http_client=http_client,
  )
  cache = LocationCache(
      client,
      ttl_seconds=settings.location_ttl_seconds,
      sweep_interval_seconds=settings.location_sweep_interval_seconds,
  )
  return CheckoutSession(client, cache, settings, navigator=navigator)
