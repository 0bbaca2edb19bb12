# coding: utf-8
"""
Sentry configuration for error monitoring and tracking
"""
import re

import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sentry_sdk.integrations.aiohttp import AioHttpIntegration
from loguru import logger

from config.config import SENTRY_DSN, ENVIRONMENT

# user:password@ in database URLs
_DSN_CREDENTIALS = re.compile(r"//[^/@\s]+@")


def init_sentry() -> None:
    """
    Initialize Sentry SDK for error monitoring

    Scheduled jobs never raise into the scheduler, so failures reach
    Sentry through the loguru sink (see config/logging.py) and through
    capture_message() for conditions operators must reconcile by hand.
    """
    if not SENTRY_DSN:
        logger.warning("SENTRY_DSN not configured - error monitoring disabled")
        return

    try:
        sentry_sdk.init(
            dsn=SENTRY_DSN,
            environment=ENVIRONMENT,
            server_name="zenith-settlement-worker",
            integrations=[
                AsyncioIntegration(),
                SqlalchemyIntegration(),
                AioHttpIntegration(),  # CoinMarketCap requests
            ],
            traces_sample_rate=0.1 if ENVIRONMENT == "production" else 1.0,
            sample_rate=1.0,
            attach_stacktrace=True,
            send_default_pii=False,
            max_breadcrumbs=50,
            before_send=before_send_hook,
        )

        logger.info(f"Sentry initialized successfully (Environment: {ENVIRONMENT})")

    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")


def before_send_hook(event, hint):
    """
    Filter/modify events before sending to Sentry

    - drops KeyboardInterrupt (worker shutdown)
    - masks the CoinMarketCap API key header
    - strips credentials from database URLs in messages and exception values
    """
    if 'exc_info' in hint:
        exc_type, exc_value, tb = hint['exc_info']

        if isinstance(exc_value, KeyboardInterrupt):
            return None

    if event.get('request'):
        headers = event['request'].get('headers', {})
        if 'X-CMC_PRO_API_KEY' in headers:
            headers['X-CMC_PRO_API_KEY'] = '[Filtered]'

    message = event.get('message')
    if isinstance(message, str):
        event['message'] = _DSN_CREDENTIALS.sub("//[Filtered]@", message)

    # Driver errors quote the connection URL
    for exception in event.get('exception', {}).get('values', []):
        if isinstance(exception.get('value'), str):
            exception['value'] = _DSN_CREDENTIALS.sub("//[Filtered]@", exception['value'])

    return event


def capture_message(message: str, level: str = "info", **extra_context):
    """
    Capture a message (not an error) in Sentry

    Args:
        message: Message to capture
        level: Severity level (debug, info, warning, error, fatal)
        extra_context: Additional context data
    """
    with sentry_sdk.new_scope() as scope:
        for key, value in extra_context.items():
            scope.set_extra(key, value)

        sentry_sdk.capture_message(message, level=level)
