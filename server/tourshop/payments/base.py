"""Payment gateway interface shared by processor clients."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

CAPTURE_COMPLETED = "COMPLETED"


@dataclass(frozen=True)
class CaptureResult:
    """Outcome of capturing an approved order."""

    status: str
    capture_id: Optional[str]
    amount: int
    currency: str

    @property
    def completed(self) -> bool:
        return self.status == CAPTURE_COMPLETED


def format_amount(amount: int) -> str:
    """Minor units to the two-decimal string processors expect, e.g. 123456 -> '1234.56'."""
    return f"{amount // 100}.{amount % 100:02d}"


def parse_amount(value: str) -> int:
    """Two-decimal string to minor units."""
    return int(Decimal(value) * 100)


class PaymentGateway(ABC):
    """Order-then-capture payment processor."""

    name = "gateway"

    @abstractmethod
    async def create_order(self, amount: int, currency: str, reference: str) -> str:
        """
        Open an order for ``amount`` minor units and return the processor order id.

        Raises:
            PaymentDeclinedError: If the processor refuses the order
            PaymentGatewayError: If the processor cannot be reached or fails
        """

    @abstractmethod
    async def capture_order(self, order_id: str) -> CaptureResult:
        """
        Capture an order the buyer has approved.

        Raises:
            PaymentDeclinedError: If the processor declines the capture
            PaymentGatewayError: If the processor cannot be reached or fails
        """

    async def close(self) -> None:
        """Release network resources."""
