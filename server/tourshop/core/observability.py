"""Observability setup for OpenTelemetry, Prometheus metrics, and structured logging."""

import logging

import structlog
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from .config import settings

SERVICE_NAME = "tourshop-api"
SERVICE_VERSION = "1.0.0"

# Prometheus metrics
REGISTRY = CollectorRegistry()

# Request metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=REGISTRY
)

REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=REGISTRY
)

# Business metrics
CHECKOUTS_STARTED = Counter(
    'checkout_sessions_started_total',
    'Checkout sessions started',
    ['tour_id'],
    registry=REGISTRY
)

PAYMENT_ORDERS_CREATED = Counter(
    'payment_orders_created_total',
    'Payment processor orders created',
    ['currency'],
    registry=REGISTRY
)

PAYMENTS_CAPTURED = Counter(
    'payments_captured_total',
    'Payments captured',
    ['payment_type'],
    registry=REGISTRY
)

PAYMENT_FAILURES = Counter(
    'payment_failures_total',
    'Failed payment operations',
    ['reason'],
    registry=REGISTRY
)

PENDING_BOOKINGS_EXPIRED = Counter(
    'pending_bookings_expired_total',
    'Pending bookings expired without capture',
    registry=REGISTRY
)

OTP_REQUESTS = Counter(
    'booking_otp_requests_total',
    'Manage-booking OTP requests and verifications',
    ['outcome'],
    registry=REGISTRY
)

DEPARTURE_SPACES = Gauge(
    'departure_spaces_available',
    'Available spaces on a departure',
    ['departure_id'],
    registry=REGISTRY
)


def setup_structured_logging():
    """Configure structured logging with structlog."""

    def add_trace_context(logger, method_name, event_dict):
        """Add trace context to log events."""
        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            event_dict['trace_id'] = format(ctx.trace_id, '032x')
            event_dict['span_id'] = format(ctx.span_id, '016x')
        return event_dict

    structlog.configure(
        processors=[
            # request_id is bound here by RequestIDMiddleware
            structlog.contextvars.merge_contextvars,
            add_trace_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _resource() -> Resource:
    return Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": SERVICE_VERSION,
        "environment": settings.environment,
    })


def setup_tracing():
    """Setup OpenTelemetry tracing."""
    provider = TracerProvider(resource=_resource())

    if settings.otlp_endpoint:
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint))
        )

    trace.set_tracer_provider(provider)
    return trace.get_tracer(__name__)


def setup_metrics():
    """Setup OpenTelemetry metrics."""
    if settings.otlp_endpoint:
        reader = PeriodicExportingMetricReader(
            exporter=OTLPMetricExporter(endpoint=settings.otlp_endpoint),
            export_interval_millis=60000,
        )
        metrics.set_meter_provider(MeterProvider(resource=_resource(), metric_readers=[reader]))

    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine):
    """Instrument the async engine's sync core with OpenTelemetry."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_http_request(method: str, endpoint: str, status_code: int, duration: float):
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()
        REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(duration)

    @staticmethod
    def record_checkout_started(tour_id: str):
        CHECKOUTS_STARTED.labels(tour_id=tour_id).inc()

    @staticmethod
    def record_order_created(currency: str):
        PAYMENT_ORDERS_CREATED.labels(currency=currency).inc()

    @staticmethod
    def record_payment_captured(payment_type: str):
        PAYMENTS_CAPTURED.labels(payment_type=payment_type).inc()

    @staticmethod
    def record_payment_failure(reason: str):
        PAYMENT_FAILURES.labels(reason=reason).inc()

    @staticmethod
    def record_pending_expired(count: int = 1):
        PENDING_BOOKINGS_EXPIRED.inc(count)

    @staticmethod
    def record_otp(outcome: str):
        OTP_REQUESTS.labels(outcome=outcome).inc()

    @staticmethod
    def set_departure_spaces(departure_id: str, spaces: int):
        DEPARTURE_SPACES.labels(departure_id=departure_id).set(spaces)


def get_prometheus_metrics() -> bytes:
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()
