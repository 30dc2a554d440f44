"""Payment processor integrations."""

from .base import CaptureResult, PaymentGateway

__all__ = ["CaptureResult", "PaymentGateway"]
