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

"""HTTP client for the storefront's remote services.

This module provides `StorefrontClient`, a thin asynchronous wrapper around
`httpx.AsyncClient` that knows the request and success shapes of every remote
collaborator the checkout talks to:

- Geo lookup (provinces, districts, wards) and the carrier shipping quote.
- Cart, cart line and discount services.
- Address book, order creation and payment link creation.

Transport failures and error responses are translated into the
`CheckoutError` hierarchy so callers never handle raw `httpx` errors.
"""

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
import pydantic

from . import constants
from .exceptions import AuthenticationRequiredError
from .exceptions import BusinessRuleError
from .exceptions import CheckoutError
from .exceptions import ResourceNotFoundError
from .exceptions import TransientNetworkError
from .models import Address
from .models import AddressPayload
from .models import CartLine
from .models import OrderDraft
from .models import ParcelProfile
from .models import UserProfile

logger = logging.getLogger(__name__)

_Model = TypeVar("_Model", bound=pydantic.BaseModel)


def _unwrap(body: Any) -> Any:
  """Strips the `{"result": ...}` envelope used by some services."""
  if isinstance(body, dict) and "result" in body:
    return body["result"]
  return body


def _decode(model: Type[_Model], record: Any, path: str) -> _Model:
  """Validates one record; malformed records count as a bad response."""
  try:
    return model.model_validate(record)
  except pydantic.ValidationError as e:
    raise TransientNetworkError(f"Malformed response from {path}") from e


def _records(body: Any, path: str) -> List[Any]:
  if body is None:
    return []
  if not isinstance(body, list):
    raise TransientNetworkError(f"Malformed response from {path}")
  return body


def _error_from_response(response: httpx.Response) -> CheckoutError:
  """Maps an error response onto the checkout exception hierarchy."""
  message = ""
  code = None
  try:
    body = response.json()
  except ValueError:
    body = None

  if isinstance(body, dict):
    detail = body.get("message") or body.get("detail")
    if isinstance(detail, str):
      message = detail
    elif detail is not None:
      message = str(detail)
    if isinstance(body.get("code"), str):
      code = body["code"]
  if not message:
    message = f"HTTP error! status: {response.status_code}"

  status = response.status_code
  if status in (401, 403):
    return AuthenticationRequiredError(message, status_code=status)
  if status == 404:
    return ResourceNotFoundError(message)
  if 400 <= status < 500:
    return BusinessRuleError(
        message, code=code or "BUSINESS_RULE", status_code=status
    )
  return TransientNetworkError(message, status_code=status)


class StorefrontClient:
  """Asynchronous client for the storefront services."""

  def __init__(
      self,
      base_url: str = "",
      access_token: Optional[str] = None,
      timeout: float = constants.REQUEST_TIMEOUT_SECONDS,
      http_client: Optional[httpx.AsyncClient] = None,
  ):
    self._owns_client = http_client is None
    self._client = http_client or httpx.AsyncClient(
        base_url=base_url.rstrip("/"), timeout=timeout
    )
    self.access_token = access_token

  @property
  def is_authenticated(self) -> bool:
    return bool(self.access_token)

  async def aclose(self) -> None:
    if self._owns_client:
      await self._client.aclose()

  async def __aenter__(self) -> "StorefrontClient":
    return self

  async def __aexit__(self, *exc_info) -> None:
    await self.aclose()

  def _headers(self) -> Dict[str, str]:
    headers = {"X-Requested-With": "XMLHttpRequest"}
    if self.access_token:
      headers["Authorization"] = f"Bearer {self.access_token}"
    return headers

  async def _request(
      self,
      method: str,
      path: str,
      json: Optional[Any] = None,
      params: Optional[Dict[str, Any]] = None,
  ) -> Any:
    """Sends one request and returns the decoded, unwrapped body."""
    try:
      response = await self._client.request(
          method, path, json=json, params=params, headers=self._headers()
      )
    except httpx.TimeoutException as e:
      raise TransientNetworkError(f"Request to {path} timed out") from e
    except httpx.HTTPError as e:
      raise TransientNetworkError(f"Request to {path} failed: {e}") from e

    if response.is_error:
      error = _error_from_response(response)
      logger.info(
          "%s %s failed with %d (%s): %s",
          method,
          path,
          response.status_code,
          error.code,
          error.message,
      )
      raise error

    if method == "DELETE" or not response.content:
      return None
    try:
      return _unwrap(response.json())
    except ValueError as e:
      raise TransientNetworkError(f"Malformed response from {path}") from e

  # --- Geo lookup and carrier quote ---

  async def get_provinces(self) -> Any:
    return await self._request("GET", constants.PROVINCES_PATH)

  async def get_districts(self, province_id: str) -> Any:
    return await self._request(
        "GET", constants.DISTRICTS_PATH.format(province_id=province_id)
    )

  async def get_wards(self, district_id: str) -> Any:
    return await self._request(
        "GET", constants.WARDS_PATH.format(district_id=district_id)
    )

  async def calculate_shipping_fee(
      self, district_id: int, ward_code: str, parcel: ParcelProfile
  ) -> int:
    """Requests a carrier quote for one destination and parcel profile."""
    params = {
        "toDistrictId": district_id,
        "toWardCode": ward_code,
        "weight": parcel.weight,
        "length": parcel.length,
        "width": parcel.width,
        "height": parcel.height,
    }
    body = await self._request(
        "GET", constants.SHIPPING_FEE_PATH, params=params
    )
    if isinstance(body, dict):
      body = body.get("total", body.get("fee", body.get("shippingFee")))
    try:
      return int(body or 0)
    except (TypeError, ValueError) as e:
      raise TransientNetworkError(f"Unexpected shipping quote: {body!r}") from e

  # --- Users and cart ---

  async def get_current_user(self) -> UserProfile:
    body = await self._request("GET", constants.CURRENT_USER_PATH)
    return _decode(UserProfile, body, constants.CURRENT_USER_PATH)

  async def get_current_cart_id(self) -> Optional[int]:
    body = await self._request("GET", constants.CURRENT_CART_PATH)
    if not isinstance(body, dict):
      return None
    return body.get("cartId")

  async def get_selected_products(self, cart_id: int) -> List[CartLine]:
    path = constants.SELECTED_PRODUCTS_PATH.format(cart_id=cart_id)
    body = await self._request("GET", path)
    return [_decode(CartLine, item, path) for item in _records(body, path)]

  async def update_cart_line(
      self, cart_id: int, line_id: int, quantity: int, choose: bool
  ) -> Dict[str, Any]:
    body = await self._request(
        "PUT",
        constants.CART_LINE_PATH.format(cart_id=cart_id, line_id=line_id),
        json={"quantity": quantity, "choose": choose},
    )
    return body or {}

  async def apply_discount(self, code: str, order_total: int) -> int:
    """Validates a discount code against an order subtotal.

    Returns:
      The discount amount granted for `order_total`.
    """
    body = await self._request(
        "POST",
        constants.APPLY_DISCOUNT_PATH,
        json={"discountCode": code, "orderTotal": order_total},
    )
    if not isinstance(body, dict) or "discountAmount" not in body:
      raise BusinessRuleError(f"Discount code {code} was not accepted")
    try:
      return int(body["discountAmount"] or 0)
    except (TypeError, ValueError) as e:
      raise TransientNetworkError(
          f"Malformed response from {constants.APPLY_DISCOUNT_PATH}"
      ) from e

  # --- Address book ---

  async def list_addresses(self, owner_id: int) -> List[Address]:
    path = constants.ADDRESSES_PATH.format(owner_id=owner_id)
    body = await self._request("GET", path)
    return [_decode(Address, item, path) for item in _records(body, path)]

  async def get_address(self, owner_id: int, address_id: int) -> Address:
    path = constants.ADDRESS_PATH.format(
        owner_id=owner_id, address_id=address_id
    )
    body = await self._request("GET", path)
    return _decode(Address, body, path)

  async def create_address(
      self, owner_id: int, payload: AddressPayload
  ) -> Optional[Address]:
    path = constants.ADDRESSES_PATH.format(owner_id=owner_id)
    body = await self._request(
        "POST", path, json=payload.model_dump(mode="json", by_alias=True)
    )
    return _decode(Address, body, path) if body else None

  async def update_address(
      self, owner_id: int, address_id: int, payload: AddressPayload
  ) -> Optional[Address]:
    path = constants.ADDRESS_PATH.format(
        owner_id=owner_id, address_id=address_id
    )
    body = await self._request(
        "PUT", path, json=payload.model_dump(mode="json", by_alias=True)
    )
    return _decode(Address, body, path) if body else None

  async def delete_address(self, owner_id: int, address_id: int) -> None:
    await self._request(
        "DELETE",
        constants.ADDRESS_PATH.format(owner_id=owner_id, address_id=address_id),
    )

  # --- Orders and payments ---

  async def create_order(self, draft: OrderDraft) -> str:
    body = await self._request(
        "POST",
        constants.CREATE_ORDER_PATH.format(cart_id=draft.cart_id),
        json=draft.model_dump(mode="json", by_alias=True),
    )
    if not isinstance(body, dict) or body.get("idOrder") is None:
      raise TransientNetworkError("Order service returned no order id")
    return str(body["idOrder"])

  async def create_payment_url(
      self, gateway: str, order_id: str
  ) -> Optional[str]:
    body = await self._request(
        "POST",
        constants.CREATE_PAYMENT_PATH.format(gateway=gateway, order_id=order_id),
    )
    if isinstance(body, dict):
      return body.get("paymentUrl")
    return None
