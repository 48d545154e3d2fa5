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

"""Command line checkout against a running storefront.

Loads the shopper's checkout, prints the price summary, optionally applies a
discount code and places the order with the default address.

Usage:
  checkout-sync --storefront_url=http://localhost:8080 \
      --access_token=$TOKEN --discount_code=SALE10 --place_order
"""

import asyncio
import logging
import sys
from typing import Sequence

from absl import app as absl_app
from dotenv import load_dotenv

from . import config
from .enums import PaymentMethod
from .session import CheckoutSession
from .session import create_session

logger = logging.getLogger(__name__)


def _log_summary(session: CheckoutSession) -> None:
  for line in session.cart.lines:
    logger.info(
        "  %s x%d = %d", line.product_name, line.quantity, line.line_total
    )
  snapshot = session.snapshot
  logger.info(
      "Subtotal %d + shipping %d - discount %d = total %d",
      snapshot.subtotal,
      snapshot.shipping_fee,
      snapshot.discount_amount,
      snapshot.total,
  )


async def run_checkout(session: CheckoutSession) -> int:
  """Runs one checkout; returns the process exit code."""
  try:
    if not await session.bootstrap():
      return 1
    logger.info(
        "Checkout loaded for %s",
        session.user.display_name if session.user else "guest",
    )
    if session.form.destination is not None:
      logger.info("Shipping to %s", session.form.full_address())

    if config.FLAGS.discount_code:
      await session.apply_discount(config.FLAGS.discount_code)
    session.update_form(
        payment_method=PaymentMethod(config.FLAGS.payment_method)
    )
    _log_summary(session)

    if not config.FLAGS.place_order:
      return 0
    outcome = await session.place_order()
    if outcome is None or not outcome.order_created:
      return 1
    logger.info(
        "Order %s is %s; next page: %s",
        outcome.order_id,
        outcome.state.value,
        outcome.redirect_url or outcome.confirmation_url,
    )
    return 0
  finally:
    await session.close()


def main(argv: Sequence[str]) -> None:
  """Main entry point for the command line checkout."""
  del argv  # Unused.
  settings = config.settings_from_flags()
  logger.info("Using storefront at %s", settings.storefront_url)
  sys.exit(asyncio.run(run_checkout(create_session(settings))))


def run() -> None:
  load_dotenv()
  logging.basicConfig(level=logging.INFO)
  absl_app.run(main)


if __name__ == "__main__":
  run()
