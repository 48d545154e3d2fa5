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

"""Pricing engine for the checkout summary.

The summary is derived from three inputs: the chosen cart lines, the carrier
quote for the shipping destination and the applied discount. `recompute` is
the pure derivation; `PricingEngine.refresh` gathers the remote inputs and
replaces the snapshot, one refresh at a time.
"""

import asyncio
import logging
from typing import Iterable, Optional

from .api_client import StorefrontClient
from .exceptions import BusinessRuleError
from .exceptions import CheckoutError
from .exceptions import ResourceNotFoundError
from .exceptions import ValidationFailedError
from .models import CartLine
from .models import DiscountApplication
from .models import ParcelProfile
from .models import PricingSnapshot
from .models import ShippingDestination

logger = logging.getLogger(__name__)


def compute_subtotal(lines: Iterable[CartLine]) -> int:
  """Sums line totals of chosen lines whose product can still be bought."""
  return sum(
      line.line_total for line in lines if line.chosen and line.is_purchasable
  )


def recompute(
    lines: Iterable[CartLine],
    shipping_fee: int,
    discount: Optional[DiscountApplication] = None,
) -> PricingSnapshot:
  return PricingSnapshot(
      subtotal=compute_subtotal(lines),
      shipping_fee=shipping_fee,
      discount_amount=discount.discount_amount if discount else 0,
  )


class PricingEngine:
  """Keeps the pricing snapshot consistent with its inputs.

  Every refresh runs subtotal, discount re-validation, shipping quote and
  total as one uninterrupted sequence; a refresh triggered meanwhile waits
  for the running one to finish.

  A discount the service rejects at a new subtotal is removed rather than
  kept as stale; only an unreachable service keeps the last amount, marked
  stale until the next refresh re-validates it.
  """

  def __init__(
      self, client: StorefrontClient, parcel: Optional[ParcelProfile] = None
  ):
    self._client = client
    self._parcel = parcel or ParcelProfile()
    self._lock = asyncio.Lock()
    self._quoted_for: Optional[ShippingDestination] = None
    self.discount: Optional[DiscountApplication] = None
    self.shipping_fee = 0
    self.snapshot = PricingSnapshot()
    self.last_discount_error: Optional[CheckoutError] = None

  async def refresh(
      self,
      lines: Iterable[CartLine],
      destination: Optional[ShippingDestination],
      force_quote: bool = False,
  ) -> PricingSnapshot:
    """Recomputes the snapshot after a change to any input.

    Args:
      lines: Current cart lines.
      destination: Shipping destination, None while incomplete.
      force_quote: Request a new carrier quote even for an unchanged
        destination.

    Returns:
      The new snapshot, which also replaces `self.snapshot`.
    """
    lines = list(lines)
    async with self._lock:
      self.last_discount_error = None
      subtotal = compute_subtotal(lines)
      if self.discount is not None and not self.discount.is_valid_for(subtotal):
        self.discount = await self._revalidate(self.discount, subtotal)
      if force_quote or destination != self._quoted_for:
        self.shipping_fee = await self._quote(destination)
      self.snapshot = recompute(lines, self.shipping_fee, self.discount)
      logger.debug("Pricing refreshed: %s", self.snapshot)
      return self.snapshot

  async def apply_discount(
      self, code: str, lines: Iterable[CartLine]
  ) -> DiscountApplication:
    """Applies a discount code to the current subtotal.

    Raises:
      ValidationFailedError: `code` is blank.
      BusinessRuleError: the discount service rejected the code.
    """
    code = (code or "").strip()
    if not code:
      raise ValidationFailedError(
          "Please enter a discount code", field="discount_code"
      )
    lines = list(lines)
    async with self._lock:
      subtotal = compute_subtotal(lines)
      current = self.discount
      if current is not None and current.code == code:
        if current.is_valid_for(subtotal):
          return current
      amount = await self._client.apply_discount(code, subtotal)
      self.discount = DiscountApplication(
          code=code, discount_amount=amount, computed_against_subtotal=subtotal
      )
      self.snapshot = recompute(lines, self.shipping_fee, self.discount)
      logger.info("Applied discount %s: %d off %d", code, amount, subtotal)
      return self.discount

  async def remove_discount(self, lines: Iterable[CartLine]) -> PricingSnapshot:
    lines = list(lines)
    async with self._lock:
      self.discount = None
      self.snapshot = recompute(lines, self.shipping_fee, None)
      return self.snapshot

  async def _revalidate(
      self, discount: DiscountApplication, subtotal: int
  ) -> Optional[DiscountApplication]:
    """Asks the discount service for the amount at a new subtotal.

    A rejected code is dropped. When the service cannot be reached the last
    known amount is kept and marked stale; the next refresh retries.
    """
    try:
      amount = await self._client.apply_discount(discount.code, subtotal)
    except (BusinessRuleError, ResourceNotFoundError) as e:
      logger.info(
          "Discount %s no longer applies at %d: %s",
          discount.code,
          subtotal,
          e.message,
      )
      self.last_discount_error = e
      return None
    except CheckoutError as e:
      logger.warning(
          "Could not re-validate discount %s at %d: %s",
          discount.code,
          subtotal,
          e.message,
      )
      self.last_discount_error = e
      return discount.model_copy(update={"stale": True})
    return DiscountApplication(
        code=discount.code,
        discount_amount=amount,
        computed_against_subtotal=subtotal,
    )

  async def _quote(self, destination: Optional[ShippingDestination]) -> int:
    """Returns the carrier fee for `destination`, 0 when unavailable."""
    self._quoted_for = None
    if destination is None:
      self._quoted_for = destination
      return 0
    try:
      fee = await self._client.calculate_shipping_fee(
          destination.district_id, destination.ward_code, self._parcel
      )
    except CheckoutError as e:
      logger.warning(
          "Shipping quote for %s failed, using 0: %s", destination, e.message
      )
      return 0
    self._quoted_for = destination
    return fee
