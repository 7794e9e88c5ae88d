"""
Shared utilities for the subscription conversion gateway.

This package aggregates common building blocks consumed by the service:

- config: Service configuration via pydantic-settings (+ optional YAML file)
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI application shell (middleware, health, metrics)

Service-specific logic lives in service_convert/. Do not import from
service packages into shared/.
"""
