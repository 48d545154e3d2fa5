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

"""Toast and navigation sinks used by the checkout session."""

import logging
from typing import List, Optional, Protocol

from .enums import ToastLevel
from .models import Toast

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    ToastLevel.SUCCESS: logging.INFO,
    ToastLevel.INFO: logging.INFO,
    ToastLevel.WARNING: logging.WARNING,
    ToastLevel.ERROR: logging.ERROR,
}


class Notifier:
  """Collects the toasts shown to the shopper."""

  def __init__(self):
    self.toasts: List[Toast] = []

  def notify(self, level: ToastLevel, message: str) -> Toast:
    toast = Toast(level=level, message=message)
    self.toasts.append(toast)
    logger.log(_LOG_LEVELS[level], "[%s] %s", level.value, message)
    return toast

  @property
  def last(self) -> Optional[Toast]:
    return self.toasts[-1] if self.toasts else None

  def messages(self, level: Optional[ToastLevel] = None) -> List[str]:
    return [t.message for t in self.toasts if level is None or t.level is level]


class Navigator(Protocol):

  def navigate(self, url: str) -> None:
    ...


class RecordingNavigator:
  """Navigator that records every destination instead of leaving the page."""

  def __init__(self):
    self.history: List[str] = []

  @property
  def current_url(self) -> Optional[str]:
    return self.history[-1] if self.history else None

  def navigate(self, url: str) -> None:
    logger.info("Navigating to %s", url)
    self.history.append(url)
