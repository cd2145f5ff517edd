"""Adapter Bridge - config-driven mapping between SaaS configuration APIs and records."""

import logging

__version__ = "0.1.0"
__license__ = "Apache-2.0"

# Suppress verbose third-party library logging
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpcore.connection").setLevel(logging.WARNING)
logging.getLogger("httpcore.http11").setLevel(logging.WARNING)
