"""
Inventory gateway - applies approved count variances to stock.

Two implementations:
- LocalInventoryGateway : the in-process stock app, same database transaction
- HttpInventoryGateway  : a remote stock service, bounded by a request timeout

Both take a reference id that is deterministic per count item, so a retried
call replays the adjustment already applied instead of applying it twice.
"""
import logging
import time
from typing import Dict, Any, Callable

import requests
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import OperationalError

from stock.services import StockLevelService, ServiceError, ValidationError, NotFoundError
from counts.services.exceptions import AdjustmentFailed

logger = logging.getLogger(__name__)


class InventoryError(Exception):
    retryable = False


class InventoryUnavailable(InventoryError):
    """Timeouts, connection failures, 5xx. Safe to retry."""
    retryable = True


class InventoryRejected(InventoryError):
    """The stock store refused the adjustment. Retrying will not help."""
    retryable = False


def adjustment_reference(count_id: int, item_id: int) -> str:
    return f"STOCKCOUNT-{count_id}-{item_id}"


class InventoryGateway:
    def apply_adjustment(self,
                         stock_item_id: int,
                         quantity: int,
                         reference_id: str,
                         user_id: int = None,
                         notes: str = "") -> Dict[str, Any]:
        raise NotImplementedError


class LocalInventoryGateway(InventoryGateway):

    def apply_adjustment(self, stock_item_id, quantity, reference_id, user_id=None, notes=""):
        try:
            return StockLevelService.apply_adjustment(
                stock_item_id=stock_item_id,
                quantity=quantity,
                reference_id=reference_id,
                user_id=user_id,
                notes=notes,
            )
        except (ValidationError, NotFoundError) as e:
            raise InventoryRejected(e.message) from e
        except ServiceError as e:
            raise InventoryUnavailable(e.message) from e
        except OperationalError as e:
            raise InventoryUnavailable(str(e)) from e


class HttpInventoryGateway(InventoryGateway):

    def __init__(self, base_url: str = None, token: str = None, timeout: float = None):
        config = settings.STOCK_COUNT
        self.base_url = (base_url or config.get("INVENTORY_API_URL") or "").rstrip("/")
        self.token = token if token is not None else config.get("INVENTORY_API_TOKEN", "")
        self.timeout = timeout or config.get("ADJUSTMENT_TIMEOUT_SECONDS", 10)

        if not self.base_url:
            raise ImproperlyConfigured("STOCK_COUNT['INVENTORY_API_URL'] is required for the http gateway")

    def get_headers(self, reference_id: str) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Idempotency-Key": reference_id,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def apply_adjustment(self, stock_item_id, quantity, reference_id, user_id=None, notes=""):
        payload = {
            "stock_item_id": stock_item_id,
            "quantity": quantity,
            "reference_id": reference_id,
            "user_id": user_id,
            "notes": notes,
        }

        try:
            response = requests.post(
                f"{self.base_url}/adjustments",
                headers=self.get_headers(reference_id),
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise InventoryUnavailable("Request timeout") from e
        except requests.exceptions.ConnectionError as e:
            raise InventoryUnavailable("Connection failed") from e
        except requests.exceptions.RequestException as e:
            raise InventoryUnavailable(str(e)) from e

        if response.status_code == 429 or response.status_code >= 500:
            raise InventoryUnavailable(f"HTTP {response.status_code}: {response.text[:200]}")
        if response.status_code >= 400:
            raise InventoryRejected(f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            return response.json()
        except ValueError as e:
            raise InventoryUnavailable("Invalid JSON from inventory service") from e


def get_inventory_gateway() -> InventoryGateway:
    kind = settings.STOCK_COUNT.get("INVENTORY_GATEWAY", "local")
    if kind == "local":
        return LocalInventoryGateway()
    if kind == "http":
        return HttpInventoryGateway()
    raise ImproperlyConfigured(f"Unknown inventory gateway: {kind}")


def apply_with_retry(gateway: InventoryGateway,
                     item_id: int,
                     stock_item_id: int,
                     quantity: int,
                     reference_id: str,
                     user_id: int = None,
                     notes: str = "",
                     max_attempts: int = None,
                     backoff_seconds: float = None,
                     sleep: Callable[[float], None] = time.sleep) -> Dict[str, Any]:
    """
    Call the gateway until it succeeds, refuses, or runs out of attempts.
    Exhaustion and refusal both surface as AdjustmentFailed for this item.
    """
    config = settings.STOCK_COUNT
    attempts = max(1, max_attempts or config.get("ADJUSTMENT_MAX_ATTEMPTS", 3))
    backoff = config.get("ADJUSTMENT_BACKOFF_SECONDS", 0.5) if backoff_seconds is None else backoff_seconds

    for attempt in range(1, attempts + 1):
        try:
            return gateway.apply_adjustment(
                stock_item_id=stock_item_id,
                quantity=quantity,
                reference_id=reference_id,
                user_id=user_id,
                notes=notes,
            )
        except InventoryRejected as e:
            logger.error(
                f"Adjustment {reference_id} rejected: {e}",
                extra={"reference_id": reference_id, "attempt": attempt},
            )
            raise AdjustmentFailed(item_id, reference_id, attempt, str(e)) from e
        except InventoryUnavailable as e:
            if attempt >= attempts:
                logger.exception(
                    f"Adjustment {reference_id} failed after {attempt} attempt(s)",
                    extra={"reference_id": reference_id, "attempt": attempt},
                )
                raise AdjustmentFailed(item_id, reference_id, attempt, str(e)) from e

            delay = backoff * (2 ** (attempt - 1))
            logger.warning(
                f"Adjustment {reference_id} attempt {attempt}/{attempts} failed: {e}, retrying in {delay}s",
                extra={"reference_id": reference_id, "attempt": attempt},
            )
            if delay:
                sleep(delay)
