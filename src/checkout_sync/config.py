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

"""Shared configuration for checkout sessions."""

import os
from typing import Optional

from absl import flags
from pydantic import BaseModel
from pydantic import Field

from . import constants
from .enums import PaymentMethod
from .models import ParcelProfile

FLAGS = flags.FLAGS

STOREFRONT_URL_ENV = "STOREFRONT_URL"
ACCESS_TOKEN_ENV = "STOREFRONT_ACCESS_TOKEN"

# Define flags only if they haven't been defined yet (to avoid duplicates
# during tests or re-imports)
try:
  flags.DEFINE_string("storefront_url", None, "Base URL of the storefront")
  flags.DEFINE_string(
      "access_token", None, "Bearer token of the shopper; guest if unset"
  )
  flags.DEFINE_float(
      "request_timeout",
      constants.REQUEST_TIMEOUT_SECONDS,
      "Timeout of a single remote call, in seconds",
  )
  flags.DEFINE_float(
      "bootstrap_timeout",
      constants.BOOTSTRAP_TIMEOUT_SECONDS,
      "Time allowed for loading the checkout, in seconds",
  )
  flags.DEFINE_float(
      "location_ttl_seconds",
      constants.LOCATION_TTL_SECONDS,
      "How long province/district/ward lists stay cached",
  )
  flags.DEFINE_string("discount_code", None, "Discount code to apply")
  flags.DEFINE_enum(
      "payment_method",
      PaymentMethod.COD.value,
      [method.value for method in PaymentMethod],
      "Payment method of the order",
  )
  flags.DEFINE_bool(
      "place_order", False, "Place the order instead of only pricing it"
  )
except flags.DuplicateFlagError:
  pass


class CheckoutSettings(BaseModel):
  """Connection and timing settings of one checkout session."""

  storefront_url: str = "http://localhost:8080"
  access_token: Optional[str] = None
  request_timeout: float = Field(
      default=constants.REQUEST_TIMEOUT_SECONDS, gt=0
  )
  bootstrap_timeout: float = Field(
      default=constants.BOOTSTRAP_TIMEOUT_SECONDS, gt=0
  )
  location_ttl_seconds: float = Field(
      default=constants.LOCATION_TTL_SECONDS, gt=0
  )
  location_sweep_interval_seconds: float = Field(
      default=constants.LOCATION_SWEEP_INTERVAL_SECONDS, gt=0
  )
  parcel: ParcelProfile = Field(default_factory=ParcelProfile)


def settings_from_flags() -> CheckoutSettings:
  """Builds settings from parsed flags, falling back to the environment.

  Must be called after absl has parsed the command line.
  """
  url = FLAGS.storefront_url or os.environ.get(STOREFRONT_URL_ENV)
  token = FLAGS.access_token or os.environ.get(ACCESS_TOKEN_ENV)
  values = {
      "access_token": token or None,
      "request_timeout": FLAGS.request_timeout,
      "bootstrap_timeout": FLAGS.bootstrap_timeout,
      "location_ttl_seconds": FLAGS.location_ttl_seconds,
  }
  if url:
    values["storefront_url"] = url
  return CheckoutSettings(**values)
