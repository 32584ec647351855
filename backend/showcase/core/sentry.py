from __future__ import annotations

import logging

from showcase.core.config import settings


def init_sentry() -> bool:
    """Enable error reporting when a DSN is configured; returns whether it was enabled."""
    if not settings.sentry_dsn:
        return False

    import sentry_sdk
    from sentry_sdk.integrations import Integration
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    log_level_name = str(settings.sentry_log_level or "error").strip().upper()
    event_level = getattr(logging, log_level_name, logging.ERROR)
    integrations: list[Integration] = [
        FastApiIntegration(),
        SqlalchemyIntegration(),
        LoggingIntegration(level=logging.INFO, event_level=event_level),
    ]

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=settings.app_version,
        traces_sample_rate=settings.sentry_traces_sample_rate,
        integrations=integrations,
        attach_stacktrace=True,
        # Upload payloads are base64 media; keep request bodies out of events.
        max_request_body_size="never",
        send_default_pii=False,
    )
    return True
