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

"""Data models for the checkout engine.

Remote services speak camelCase JSON. Every model accepts both the wire alias
and the Python field name, and serializes back to the wire alias.
"""

from typing import Optional

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import computed_field
from pydantic import Field

from . import constants
from .enums import LocationTier
from .enums import PaymentMethod
from .enums import ProductStatus
from .enums import SubmissionState
from .enums import ToastLevel


class StorefrontModel(BaseModel):
  """Base class for all storefront wire types."""

  model_config = ConfigDict(
      populate_by_name=True, serialize_by_alias=True, extra="ignore"
  )


class CartLine(StorefrontModel):
  """One product entry of a cart, selectable for checkout."""

  cart_line_id: int = Field(alias="idCartProduct")
  product_id: Optional[int] = Field(default=None, alias="idProduct")
  product_name: str = Field(default="", alias="productName")
  quantity: int = 1
  unit_price: int = Field(default=0, alias="productPrice")
  stock: int = 0
  is_active: bool = Field(default=True, alias="isActive")
  available: bool = True
  chosen: bool = Field(default=True, alias="choose")

  @computed_field(alias="totalPrice")
  @property
  def line_total(self) -> int:
    return self.unit_price * self.quantity

  @property
  def status(self) -> ProductStatus:
    if not self.is_active:
      return ProductStatus.DEACTIVATED
    if not self.available:
      return ProductStatus.OUT_OF_STOCK
    return ProductStatus.AVAILABLE

  @property
  def is_purchasable(self) -> bool:
    return self.status is ProductStatus.AVAILABLE

  @property
  def max_quantity(self) -> int:
    """Upper bound of the quantity input, never below the minimum."""
    return max(constants.MIN_QUANTITY, min(self.stock, constants.MAX_QUANTITY))


class LocationNode(StorefrontModel):
  """A province, district or ward of the geographic reference data."""

  id: str
  name: str
  tier: LocationTier
  parent_id: Optional[str] = None


class AddressPayload(StorefrontModel):
  """Body of an address create/update request."""

  name: str = ""
  phone: str = ""
  address_detail: str = Field(default="", alias="addressDetail")
  province_id: Optional[int] = Field(default=None, alias="provinceId")
  district_id: Optional[int] = Field(default=None, alias="districtId")
  ward_code: Optional[str] = Field(default=None, alias="wardCode")
  is_default: bool = Field(default=False, alias="isDefault")


class Address(StorefrontModel):
  """A saved shipping address of one owner."""

  address_id: int = Field(alias="idAddress")
  owner_id: Optional[int] = Field(default=None, alias="userId")
  name: str = ""
  phone: str = ""
  province_id: Optional[int] = Field(default=None, alias="provinceId")
  district_id: Optional[int] = Field(default=None, alias="districtId")
  ward_code: Optional[str] = Field(default=None, alias="wardCode")
  address_detail: str = Field(default="", alias="addressDetail")
  is_default: bool = Field(default=False, alias="isDefault")

  # Filled in by AddressRepository.resolve_display_names.
  province_name: Optional[str] = None
  district_name: Optional[str] = None
  ward_name: Optional[str] = None

  @property
  def is_resolved(self) -> bool:
    return self.province_name is not None

  def display_line(self) -> str:
    """Human readable one-line address, falling back to raw ids."""
    parts = [
        self.address_detail,
        self.ward_name or self.ward_code or "",
        self.district_name or (str(self.district_id) if self.district_id else ""),
        self.province_name or (str(self.province_id) if self.province_id else ""),
    ]
    return ", ".join(p for p in parts if p)


class UserProfile(StorefrontModel):
  user_id: int = Field(alias="userId")
  username: str = ""
  firstname: str = ""
  lastname: str = ""
  email: str = ""

  @property
  def display_name(self) -> str:
    full_name = f"{self.firstname} {self.lastname}".strip()
    return full_name or self.username


class ParcelProfile(StorefrontModel):
  """Fixed dimensional/weight parameters sent with every shipping quote."""

  model_config = ConfigDict(frozen=True)

  weight: int = constants.PARCEL_WEIGHT_GRAMS
  length: int = constants.PARCEL_LENGTH_CM
  width: int = constants.PARCEL_WIDTH_CM
  height: int = constants.PARCEL_HEIGHT_CM


class ShippingDestination(StorefrontModel):
  """Key of a carrier quote."""

  model_config = ConfigDict(frozen=True)

  district_id: int
  ward_code: str


class DiscountApplication(StorefrontModel):
  """A discount code accepted by the discount service for one subtotal."""

  model_config = ConfigDict(frozen=True)

  code: str
  discount_amount: int = 0
  computed_against_subtotal: int = 0
  stale: bool = False

  def is_valid_for(self, subtotal: int) -> bool:
    return not self.stale and self.computed_against_subtotal == subtotal


class PricingSnapshot(StorefrontModel):
  """Derived order amounts, always replaced as a whole."""

  model_config = ConfigDict(frozen=True)

  subtotal: int = 0
  shipping_fee: int = 0
  discount_amount: int = 0

  @computed_field
  @property
  def total(self) -> int:
    return self.subtotal + self.shipping_fee - self.discount_amount


class ShippingForm(StorefrontModel):
  """Values of the checkout shipping form."""

  full_name: str = ""
  phone: str = ""
  email: str = ""
  province_id: Optional[int] = None
  district_id: Optional[int] = None
  ward_code: Optional[str] = None
  address_detail: str = ""
  payment_method: Optional[PaymentMethod] = PaymentMethod.COD
  note: str = ""

  province_name: str = ""
  district_name: str = ""
  ward_name: str = ""

  @property
  def destination(self) -> Optional[ShippingDestination]:
    if not self.district_id or not self.ward_code:
      return None
    return ShippingDestination(
        district_id=self.district_id, ward_code=self.ward_code
    )

  def full_address(self) -> str:
    return (
        f"{self.address_detail}, {self.ward_name or self.ward_code or ''},"
        f" {self.district_name}, {self.province_name or self.province_id or ''}"
    )


class OrderDraft(StorefrontModel):
  """Body of the order creation request, assembled at submit time."""

  name: str
  phone: str
  email: str = ""
  address_detail: str = Field(alias="addressDetail")
  payment_method: PaymentMethod = Field(alias="paymentMethod")
  note: str = constants.DEFAULT_ORDER_NOTE
  discount_code: Optional[str] = Field(default=None, alias="discountCode")
  province_id: Optional[int] = Field(default=None, alias="provinceId")
  district_id: Optional[int] = Field(default=None, alias="districtId")
  ward_code: Optional[str] = Field(default=None, alias="wardCode")
  cart_id: int = Field(alias="cartId")


class Toast(StorefrontModel):
  level: ToastLevel
  message: str


class SubmissionOutcome(StorefrontModel):
  """Result of one order submission attempt."""

  state: SubmissionState
  order_id: Optional[str] = None
  redirect_url: Optional[str] = None
  confirmation_url: Optional[str] = None
  message: str = ""
  warning: Optional[str] = None
  field: Optional[str] = None

  @property
  def order_created(self) -> bool:
    return self.order_id is not None
