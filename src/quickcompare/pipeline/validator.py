"""
Selection validator - gates a comparison run.

Checks the pincode and the platform selection before anything is
dispatched, and implements the selection-time platform toggle.
"""

import logging
import re
from typing import Iterable, List, Optional

from quickcompare.core.settings import LOG_FORMAT, LOG_DATEFMT, MAX_SELECTED_PLATFORMS, PINCODE_PATTERN
from quickcompare.models.api import ErrorKind, ToggleResult, ValidationResult
from quickcompare.models.platform import SelectionRequest

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt=LOG_DATEFMT
)
logger = logging.getLogger(__name__)

_PINCODE_RE = re.compile(PINCODE_PATTERN)

MESSAGES = {
    ErrorKind.INVALID_PINCODE: "Please enter a valid 6-digit Indian pincode",
    ErrorKind.NO_PLATFORM_SELECTED: "Please select at least one platform",
    ErrorKind.TOO_MANY_PLATFORMS: f"You can select up to {MAX_SELECTED_PLATFORMS} platforms",
    ErrorKind.UNKNOWN_PLATFORM: "One of the selected platforms does not exist",
}


class SelectionError(ValueError):
    """Raised when a SelectionRequest cannot be built from user input."""

    def __init__(self, reason: ErrorKind, message: str = ""):
        self.reason = reason
        self.message = message or MESSAGES.get(reason, reason.value)
        super().__init__(self.message)


def is_valid_pincode(pincode: str) -> bool:
    return isinstance(pincode, str) and _PINCODE_RE.fullmatch(pincode) is not None


def _fail(reason: ErrorKind) -> ValidationResult:
    return ValidationResult(ok=False, reason=reason, message=MESSAGES[reason])


def validate_selection(
    pincode: str,
    platform_ids: Iterable[str],
    available_platform_ids: Iterable[str]
) -> ValidationResult:
    """
    Validate a pincode and platform selection.

    Checks run in order: pincode format, empty selection, selection cap,
    unknown platform ids. No side effects.
    """
    selected = list(dict.fromkeys(platform_ids))
    available = set(available_platform_ids)

    if not is_valid_pincode(pincode):
        return _fail(ErrorKind.INVALID_PINCODE)
    if not selected:
        return _fail(ErrorKind.NO_PLATFORM_SELECTED)
    if len(selected) > MAX_SELECTED_PLATFORMS:
        return _fail(ErrorKind.TOO_MANY_PLATFORMS)
    if any(pid not in available for pid in selected):
        return _fail(ErrorKind.UNKNOWN_PLATFORM)

    return ValidationResult(ok=True)


def build_selection_request(
    owner: str,
    pincode: str,
    platform_ids: Iterable[str],
    available_platform_ids: Iterable[str]
) -> SelectionRequest:
    """Validate and build the immutable SelectionRequest for a run."""
    platform_ids = list(dict.fromkeys(platform_ids))
    result = validate_selection(pincode, platform_ids, available_platform_ids)
    if not result.ok:
        logger.info(f"[VALIDATOR] Rejected selection for {owner}: {result.reason.value}")
        raise SelectionError(result.reason, result.message)
    return SelectionRequest(owner=owner, pincode=pincode, platform_ids=platform_ids)


class PlatformSelection:
    """
    Selection-time platform toggle.

    Toggling a selected id deselects it; adding beyond the cap leaves the
    selection unchanged and reports TooManyPlatforms.
    """

    def __init__(
        self,
        available_platform_ids: Optional[Iterable[str]] = None,
        selected: Optional[Iterable[str]] = None,
        limit: int = MAX_SELECTED_PLATFORMS
    ):
        self.available = set(available_platform_ids) if available_platform_ids is not None else None
        self.limit = limit
        self._selected: List[str] = list(dict.fromkeys(selected or []))

    @property
    def selected(self) -> List[str]:
        return list(self._selected)

    def is_selected(self, platform_id: str) -> bool:
        return platform_id in self._selected

    def toggle(self, platform_id: str) -> ToggleResult:
        if platform_id in self._selected:
            self._selected.remove(platform_id)
            return ToggleResult(selected=self.selected, changed=True)

        if self.available is not None and platform_id not in self.available:
            return ToggleResult(selected=self.selected, changed=False, reason=ErrorKind.UNKNOWN_PLATFORM)

        if len(self._selected) >= self.limit:
            return ToggleResult(selected=self.selected, changed=False, reason=ErrorKind.TOO_MANY_PLATFORMS)

        self._selected.append(platform_id)
        return ToggleResult(selected=self.selected, changed=True)
