from typing import Any

import sentry_sdk

from ecrbuild.settings import settings


def init_sentry() -> None:
    # One-off CLI runs: errors only, no performance tracing
    if settings.SENTRY_DSN:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            traces_sample_rate=0.0,
            send_default_pii=False,
            environment=settings.SENTRY_ENVIRONMENT,
        )


def report_error(error: BaseException, **tags: Any) -> None:
    """Send ``error`` to Sentry tagged with the build context, if configured."""
    if not settings.SENTRY_DSN:
        return

    with sentry_sdk.new_scope() as scope:
        for key, value in tags.items():
            scope.set_tag(key, value)
        sentry_sdk.capture_exception(error)
