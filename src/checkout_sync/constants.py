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

"""Shared constants for the checkout engine."""

LOCATION_TTL_SECONDS = 5 * 60
LOCATION_SWEEP_INTERVAL_SECONDS = 60
BOOTSTRAP_TIMEOUT_SECONDS = 8.0
REQUEST_TIMEOUT_SECONDS = 10.0

MIN_QUANTITY = 1
MAX_QUANTITY = 99

PARCEL_WEIGHT_GRAMS = 1000
PARCEL_LENGTH_CM = 15
PARCEL_WIDTH_CM = 15
PARCEL_HEIGHT_CM = 15

PROVINCES_KEY = "provinces"
DISTRICTS_KEY_PREFIX = "districts_"
WARDS_KEY_PREFIX = "wards_"

# Remote paths, relative to the storefront base URL.
PROVINCES_PATH = "/api/ghn/provinces"
DISTRICTS_PATH = "/api/ghn/districts/{province_id}"
WARDS_PATH = "/api/ghn/wards/{district_id}"
SHIPPING_FEE_PATH = "/api/ghn/shipping/calculate-fee"
CURRENT_USER_PATH = "/users/myInfo"
CURRENT_CART_PATH = "/cart/current"
SELECTED_PRODUCTS_PATH = "/cart/{cart_id}/selected-products"
CART_LINE_PATH = "/cartLine/{cart_id}/{line_id}"
APPLY_DISCOUNT_PATH = "/discounts/apply"
ADDRESSES_PATH = "/addresses/{owner_id}"
ADDRESS_PATH = "/addresses/{owner_id}/{address_id}"
CREATE_ORDER_PATH = "/order/{cart_id}"
CREATE_PAYMENT_PATH = "/payment/{gateway}/create/{order_id}"

# Order confirmation views.
ORDER_DETAIL_URL = "/user/order-detail/{order_id}"
GUEST_ORDER_ACCESS_URL = "/user/order-detail/access?orderId={order_id}"

DEFAULT_ORDER_NOTE = "No note"

# Structured error codes returned by the storefront services.
CANNOT_DELETE_DEFAULT_ADDRESS = "CANNOT_DELETE_DEFAULT_ADDRESS"
CANNOT_REMOVE_DEFAULT_ADDRESS = "CANNOT_REMOVE_DEFAULT_ADDRESS"
DEFAULT_ADDRESS_MARKER = "default address"
