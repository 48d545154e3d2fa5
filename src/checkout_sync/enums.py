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

"""Enumerations for the checkout engine.

This module defines the enums used to represent location tiers, payment
methods, submission states and the severity of user-facing notifications.
"""

import enum


class LocationTier(str, enum.Enum):
  PROVINCE = "province"
  DISTRICT = "district"
  WARD = "ward"


class PaymentMethod(str, enum.Enum):
  """Payment methods accepted by the order service."""

  COD = "COD"
  VNPAY = "VNPAY"
  MOMO = "MOMO"

  @property
  def is_gateway(self) -> bool:
    return self is not PaymentMethod.COD

  @property
  def gateway_slug(self) -> str:
    return self.value.lower()


class SubmissionState(str, enum.Enum):
  IDLE = "idle"
  VALIDATING = "validating"
  SUBMITTING = "submitting"
  REDIRECTING = "redirecting"
  COMPLETED = "completed"
  FAILED = "failed"


class ProductStatus(str, enum.Enum):
  AVAILABLE = "available"
  OUT_OF_STOCK = "out_of_stock"
  DEACTIVATED = "deactivated"


class ToastLevel(str, enum.Enum):
  SUCCESS = "success"
  INFO = "info"
  WARNING = "warning"
  ERROR = "error"
