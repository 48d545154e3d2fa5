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

"""Order submission state machine.

Idle -> Validating -> Submitting -> Redirecting | Completed | Failed

Validation failures go back to Idle so the shopper can fix the form. Once the
order service has been called the submission never goes back: the order
either exists (Redirecting, Completed) or it does not (Failed).
"""

import logging
from typing import List, Optional

from . import constants
from .api_client import StorefrontClient
from .enums import PaymentMethod
from .enums import ProductStatus
from .enums import SubmissionState
from .exceptions import BusinessRuleError
from .exceptions import CheckoutError
from .exceptions import PaymentLinkError
from .exceptions import SubmissionFailedError
from .exceptions import ValidationFailedError
from .models import CartLine
from .models import OrderDraft
from .models import ShippingForm
from .models import SubmissionOutcome
from .notifications import Navigator

logger = logging.getLogger(__name__)

INVALID_ORDER_MESSAGE = (
    "Invalid order, please reload the page to see the products that can be"
    " purchased"
)
PRODUCT_CHECK_FAILED_MESSAGE = "Unable to check product status"
ORDER_FAILED_MESSAGE = "Unable to place order. Please try again!"
ORDER_PLACED_MESSAGE = "Order placed successfully!"

_TERMINAL_STATES = (SubmissionState.REDIRECTING, SubmissionState.COMPLETED)
_IN_FLIGHT_STATES = (SubmissionState.VALIDATING, SubmissionState.SUBMITTING)


def confirmation_url(order_id: str, is_authenticated: bool) -> str:
  if is_authenticated:
    return constants.ORDER_DETAIL_URL.format(order_id=order_id)
  return constants.GUEST_ORDER_ACCESS_URL.format(order_id=order_id)


def payment_link_warning(method: PaymentMethod) -> str:
  return f"Could not create {method.value} payment link, please try again"


def check_line(line: CartLine) -> Optional[str]:
  """Returns why `line` cannot be ordered, or None when it can."""
  name = line.product_name or "Product"
  if line.status is ProductStatus.DEACTIVATED:
    return f'Product "{name}" has been discontinued'
  if line.status is ProductStatus.OUT_OF_STOCK:
    return f'Product "{name}" is out of stock'
  if line.quantity > line.stock:
    return f'Product "{name}" does not have enough stock ({line.stock} left)'
  return None


def validate_form(form: ShippingForm) -> None:
  """Raises ValidationFailedError for the first missing shipping field."""
  required = (
      ("full_name", form.full_name.strip(), "Please enter your full name"),
      ("phone", form.phone.strip(), "Please enter a phone number"),
      ("email", form.email.strip(), "Please enter your email"),
      ("province_id", form.province_id, "Please choose a province/city"),
      ("ward_code", form.ward_code, "Please choose a ward"),
      (
          "address_detail",
          form.address_detail.strip(),
          "Please enter the detailed address",
      ),
      ("payment_method", form.payment_method, "Please choose a payment method"),
  )
  for field, value, message in required:
    if not value:
      raise ValidationFailedError(message, field=field)


def build_order_draft(
    cart_id: int, form: ShippingForm, discount_code: Optional[str] = None
) -> OrderDraft:
  """Assembles the order body from the shipping form."""
  return OrderDraft(
      name=form.full_name.strip(),
      phone=form.phone.strip(),
      email=form.email.strip(),
      address_detail=form.full_address(),
      payment_method=form.payment_method,
      note=form.note.strip() or constants.DEFAULT_ORDER_NOTE,
      discount_code=discount_code or None,
      province_id=form.province_id,
      district_id=form.district_id,
      ward_code=form.ward_code,
      cart_id=cart_id,
  )


class OrderSubmissionFSM:
  """Drives one checkout from validation to the order confirmation."""

  def __init__(self, client: StorefrontClient, navigator: Navigator):
    self._client = client
    self._navigator = navigator
    self.state = SubmissionState.IDLE
    self.transitions: List[SubmissionState] = [SubmissionState.IDLE]

  @property
  def in_flight(self) -> bool:
    return self.state in _IN_FLIGHT_STATES

  def reset(self) -> None:
    if self.in_flight:
      raise BusinessRuleError(
          "An order is being placed", code="SUBMISSION_IN_PROGRESS"
      )
    self._transition(SubmissionState.IDLE)

  async def submit(
      self,
      cart_id: Optional[int],
      form: ShippingForm,
      discount_code: Optional[str] = None,
      is_authenticated: bool = False,
  ) -> SubmissionOutcome:
    """Validates the checkout and places the order.

    Args:
      cart_id: The cart being checked out.
      form: The shipping form as currently filled in.
      discount_code: Code of the applied discount; the order service
        recomputes its amount.
      is_authenticated: Decides which confirmation view to open.

    Returns:
      The outcome. Validation problems come back in the Idle state with
      `field` set; an order service failure comes back as Failed.

    Raises:
      BusinessRuleError: a submission is already in flight or finished.
    """
    if self.in_flight:
      raise BusinessRuleError(
          "An order is already being placed", code="SUBMISSION_IN_PROGRESS"
      )
    if self.state in _TERMINAL_STATES:
      raise BusinessRuleError(
          "This order has already been placed", code="SUBMISSION_FINISHED"
      )

    self._transition(SubmissionState.VALIDATING)
    try:
      return await self._run(cart_id, form, discount_code, is_authenticated)
    finally:
      if self.in_flight:
        self._abort()

  async def _run(
      self,
      cart_id: Optional[int],
      form: ShippingForm,
      discount_code: Optional[str],
      is_authenticated: bool,
  ) -> SubmissionOutcome:
    try:
      await self._validate_products(cart_id)
      validate_form(form)
    except ValidationFailedError as e:
      logger.info("Checkout validation failed (%s): %s", e.field, e.message)
      self._transition(SubmissionState.IDLE)
      return SubmissionOutcome(
          state=SubmissionState.IDLE, message=e.message, field=e.field
      )

    draft = build_order_draft(cart_id, form, discount_code)
    self._transition(SubmissionState.SUBMITTING)
    try:
      order_id = await self._create_order(draft)
    except SubmissionFailedError as e:
      logger.error("%s", e.message)
      self._transition(SubmissionState.FAILED)
      return SubmissionOutcome(
          state=SubmissionState.FAILED, message=ORDER_FAILED_MESSAGE
      )
    logger.info("Created order %s for cart %s", order_id, cart_id)

    warning = None
    if draft.payment_method.is_gateway:
      try:
        redirect_url = await self._payment_url(draft.payment_method, order_id)
      except CheckoutError as e:
        logger.warning(
            "Payment link for order %s failed: %s", order_id, e.message
        )
        warning = payment_link_warning(draft.payment_method)
      else:
        self._transition(SubmissionState.REDIRECTING)
        self._navigator.navigate(redirect_url)
        return SubmissionOutcome(
            state=SubmissionState.REDIRECTING,
            order_id=order_id,
            redirect_url=redirect_url,
        )

    url = confirmation_url(order_id, is_authenticated)
    self._transition(SubmissionState.COMPLETED)
    self._navigator.navigate(url)
    return SubmissionOutcome(
        state=SubmissionState.COMPLETED,
        order_id=order_id,
        confirmation_url=url,
        message=ORDER_PLACED_MESSAGE,
        warning=warning,
    )

  async def _validate_products(self, cart_id: Optional[int]) -> None:
    """Re-checks the selected products against the cart service."""
    if cart_id is None:
      raise ValidationFailedError(INVALID_ORDER_MESSAGE, field="products")
    try:
      lines = await self._client.get_selected_products(cart_id)
    except CheckoutError as e:
      raise ValidationFailedError(
          PRODUCT_CHECK_FAILED_MESSAGE, field="products"
      ) from e
    if not lines:
      raise ValidationFailedError(INVALID_ORDER_MESSAGE, field="products")
    for line in lines:
      problem = check_line(line)
      if problem:
        raise ValidationFailedError(problem, field="products")

  async def _create_order(self, draft: OrderDraft) -> str:
    try:
      return await self._client.create_order(draft)
    except CheckoutError as e:
      raise SubmissionFailedError(
          f"Order creation for cart {draft.cart_id} failed: {e.message}"
      ) from e

  async def _payment_url(self, method: PaymentMethod, order_id: str) -> str:
    url = await self._client.create_payment_url(method.gateway_slug, order_id)
    if not url:
      raise PaymentLinkError(
          f"{method.value} returned no payment link", order_id=order_id
      )
    return url

  def _abort(self) -> None:
    """Leaves the in-flight states after an unexpected error."""
    if self.state is SubmissionState.SUBMITTING:
      fallback = SubmissionState.FAILED
    else:
      fallback = SubmissionState.IDLE
    logger.error("Submission aborted while %s", self.state.value)
    self._transition(fallback)

  def _transition(self, state: SubmissionState) -> None:
    logger.debug("Submission %s -> %s", self.state.value, state.value)
    self.state = state
    self.transitions.append(state)
