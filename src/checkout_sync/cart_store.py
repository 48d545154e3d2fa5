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

"""Cart lines selected for checkout.

Quantity changes are applied locally first and then sent to the cart service.
If the service rejects or cannot be reached, the line reverts to the last
quantity the service confirmed.
"""

import logging
from typing import Awaitable, Callable, Dict, List, NamedTuple, Optional

from . import constants
from .api_client import StorefrontClient
from .exceptions import CheckoutError
from .exceptions import ResourceNotFoundError
from .exceptions import TransientNetworkError
from .exceptions import ValidationFailedError
from .models import CartLine

logger = logging.getLogger(__name__)

MIN_QUANTITY_WARNING = "Minimum quantity is 1"


class ClampResult(NamedTuple):
  value: int
  warning: Optional[str]


class QuantityUpdate(NamedTuple):
  line: CartLine
  warning: Optional[str]


def clamp_quantity(raw, stock: int) -> ClampResult:
  """Clamps a quantity entry to [1, min(stock, 99)].

  Empty or non-numeric entries become the minimum. Fractions are truncated.

  Args:
    raw: What the user entered (text, number or None).
    stock: Units in stock for the product.

  Returns:
    The clamped value and the warning to show, if the entry was changed.
  """
  upper = max(constants.MIN_QUANTITY, min(stock, constants.MAX_QUANTITY))
  try:
    value = int(float(str(raw).strip()))
  except (TypeError, ValueError, OverflowError):
    return ClampResult(constants.MIN_QUANTITY, MIN_QUANTITY_WARNING)
  if value < constants.MIN_QUANTITY:
    return ClampResult(constants.MIN_QUANTITY, MIN_QUANTITY_WARNING)
  if value > upper:
    return ClampResult(upper, f"Not enough stock ({stock} left)")
  return ClampResult(value, None)


class CartLineStore:
  """Selected cart lines of one cart, with local-then-remote updates."""

  def __init__(self, client: StorefrontClient):
    self._client = client
    self.cart_id: Optional[int] = None
    self._lines: Dict[int, CartLine] = {}
    self._confirmed: Dict[int, int] = {}
    self._drafts: Dict[int, str] = {}

  async def load(self, cart_id: int) -> List[CartLine]:
    self.cart_id = cart_id
    fetched = await self._client.get_selected_products(cart_id)
    self._lines = {line.cart_line_id: line for line in fetched}
    self._confirmed = {line.cart_line_id: line.quantity for line in fetched}
    self._drafts.clear()
    logger.info("Loaded %d selected lines for cart %s", len(fetched), cart_id)
    return self.lines

  @property
  def lines(self) -> List[CartLine]:
    """Lines still chosen for checkout, in load order."""
    return [line for line in self._lines.values() if line.chosen]

  @property
  def is_empty(self) -> bool:
    return not self.lines

  def get(self, line_id: int) -> CartLine:
    line = self._lines.get(line_id)
    if line is None or not line.chosen:
      raise ResourceNotFoundError(f"Cart line {line_id} is not selected")
    return line

  def confirmed_quantity(self, line_id: int) -> Optional[int]:
    return self._confirmed.get(line_id)

  # --- Quantity entry ---

  def type_quantity(self, line_id: int, text: str) -> None:
    """Records a keystroke; nothing is validated or sent yet."""
    self.get(line_id)
    self._drafts[line_id] = text

  def draft(self, line_id: int) -> Optional[str]:
    return self._drafts.get(line_id)

  async def commit_quantity_input(
      self,
      line_id: int,
      text: Optional[str] = None,
      after_local: Optional[Callable[[], Awaitable[object]]] = None,
  ) -> QuantityUpdate:
    """Validates and syncs a typed quantity (on blur or Enter)."""
    if text is None:
      text = self._drafts.get(line_id, "")
    self._drafts.pop(line_id, None)
    return await self.set_quantity(line_id, text, after_local=after_local)

  async def step_quantity(
      self,
      line_id: int,
      delta: int,
      after_local: Optional[Callable[[], Awaitable[object]]] = None,
  ) -> QuantityUpdate:
    """Handles the +/- buttons."""
    line = self.get(line_id)
    return await self.set_quantity(
        line_id, line.quantity + delta, after_local=after_local
    )

  async def set_quantity(
      self,
      line_id: int,
      raw,
      after_local: Optional[Callable[[], Awaitable[object]]] = None,
  ) -> QuantityUpdate:
    """Sets a line quantity, locally first and then on the cart service.

    Args:
      line_id: The cart line to change.
      raw: The requested quantity; clamped before use.
      after_local: Awaited right after the local update, before the remote
        call, so the price summary reflects the change immediately.

    Returns:
      The updated line and the clamping warning, if any.

    Raises:
      ValidationFailedError: the product can no longer be purchased.
      CheckoutError: the cart service call failed; the line has already
        been reverted to its last confirmed quantity.
    """
    line = self.get(line_id)
    if not line.is_purchasable:
      raise ValidationFailedError(
          f'Product "{line.product_name}" can no longer be purchased',
          field="quantity",
      )
    value, warning = clamp_quantity(raw, line.stock)
    self._lines[line_id] = line.model_copy(update={"quantity": value})
    if after_local is not None:
      await after_local()

    try:
      await self._client.update_cart_line(
          self.cart_id, line_id, quantity=value, choose=True
      )
    except CheckoutError as e:
      self._revert(line_id, value)
      raise TransientNetworkError(
          "Unable to update the product quantity", status_code=e.status_code
      ) from e

    self._confirmed[line_id] = value
    return QuantityUpdate(self._lines[line_id], warning)

  def _revert(self, line_id: int, sent: int) -> None:
    line = self._lines.get(line_id)
    confirmed = self._confirmed.get(line_id)
    # A newer local edit has superseded the failed one; keep it.
    if line is None or confirmed is None or line.quantity != sent:
      return
    logger.warning(
        "Reverting line %s from %d to confirmed quantity %d",
        line_id,
        sent,
        confirmed,
    )
    self._lines[line_id] = line.model_copy(update={"quantity": confirmed})

  # --- Selection ---

  async def unselect(
      self, line_id: int, displayed_quantity: Optional[int] = None
  ) -> CartLine:
    """Removes a line from checkout without deleting it from the cart.

    The service receives the quantity currently displayed, which may be a
    local edit not yet confirmed: `displayed_quantity` when given, else the
    uncommitted draft, else the line quantity. The value is clamped first.
    """
    line = self.get(line_id)
    displayed = displayed_quantity
    if displayed is None:
      displayed = self._drafts.get(line_id)
    if displayed is None:
      quantity = line.quantity
    else:
      quantity = clamp_quantity(displayed, line.stock).value
    await self._client.update_cart_line(
        self.cart_id, line_id, quantity=quantity, choose=False
    )
    unselected = line.model_copy(update={"chosen": False, "quantity": quantity})
    self._lines[line_id] = unselected
    self._confirmed[line_id] = quantity
    self._drafts.pop(line_id, None)
    return unselected
