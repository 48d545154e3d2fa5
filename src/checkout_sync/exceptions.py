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

"""Custom exceptions for the checkout engine."""

from typing import Optional


class CheckoutError(Exception):
  """Base class for all checkout exceptions."""

  def __init__(
      self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500
  ):
    self.message = message
    self.code = code
    self.status_code = status_code
    super().__init__(self.message)


class TransientNetworkError(CheckoutError):
  """Raised when a remote call fails at the transport level or with a 5xx."""

  def __init__(self, message: str, status_code: int = 503):
    super().__init__(message, code="NETWORK_ERROR", status_code=status_code)


class ValidationFailedError(CheckoutError):
  """Raised when user input is missing or invalid."""

  def __init__(self, message: str, field: Optional[str] = None):
    super().__init__(message, code="VALIDATION_FAILED", status_code=400)
    self.field = field


class BusinessRuleError(CheckoutError):
  """Raised when a remote service rejects a request for a business reason."""

  def __init__(
      self, message: str, code: str = "BUSINESS_RULE", status_code: int = 400
  ):
    super().__init__(message, code=code, status_code=status_code)


class DefaultAddressDeletionError(BusinessRuleError):
  """Raised when the owner tries to delete their default address."""

  def __init__(self, message: str):
    super().__init__(
        message, code="CANNOT_DELETE_DEFAULT_ADDRESS", status_code=400
    )


class ResourceNotFoundError(CheckoutError):
  """Raised when a requested resource is not found."""

  def __init__(self, message: str):
    super().__init__(message, code="RESOURCE_NOT_FOUND", status_code=404)


class AuthenticationRequiredError(CheckoutError):
  """Raised when the storefront rejects the caller's credentials."""

  def __init__(self, message: str, status_code: int = 401):
    super().__init__(message, code="UNAUTHENTICATED", status_code=status_code)


class SubmissionFailedError(CheckoutError):
  """Raised when the order could not be created."""

  def __init__(self, message: str):
    super().__init__(message, code="SUBMISSION_FAILED", status_code=502)


class PaymentLinkError(CheckoutError):
  """Raised when the order exists but the gateway link could not be created."""

  def __init__(self, message: str, order_id: Optional[str] = None):
    super().__init__(message, code="PAYMENT_LINK_FAILED", status_code=502)
    self.order_id = order_id


class BootstrapTimeoutError(CheckoutError):
  """Raised when loading the checkout takes longer than allowed."""

  def __init__(self, message: str):
    super().__init__(message, code="BOOTSTRAP_TIMEOUT", status_code=504)
