"""
Conversion Gateway Service package.

The gateway fronts a subscription conversion service, enforcing:
- Authentication: shared-secret token on every request
- Resolution: subscription names (or a mix of them) to source URLs
- Caching: time-bounded reuse of converted payloads, in memory or on disk

Structure:
- app.main: FastAPI app, routes, and service wiring.
- app.adapters: HTTP client for the conversion service.
- app.caching: Cache store interface and its two backends.
- app.domain: Resolution, cached response record, caching policy.
"""
