"""
Elections Service package for the Elections Access Layer.

This package accepts one election submission per whitelisted identity.
It provides:

- app.main: API surface for submissions, whitelist listing and health.
- app.identity: client address and user agent resolution.
- app.eligibility: whitelist membership checks.
- app.ratelimit: windowed attempt counting and the quota decision engine.
- app.audit: append-only attempt records.
- app.domain: the submission gate and the protected write.
- app.persistence: PostgreSQL and in-memory backing stores.

Guidelines:
- The service is stateless; all shared state lives in the backing store.
- Eligibility checks fail closed; quota counts fail soft.
- Attempt recording never fails a request.
"""
