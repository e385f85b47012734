#!/usr/bin/env python3
"""
Core Module for the Loyalty Membership Service

Shared infrastructure used by the service package.

COMPONENTS:
    - config/: Membership program and logging configuration (dotenv + environment)
    - logger.py: Service logger setup
    - service_client_base.py: Base class for remote HTTP API clients

USAGE:
    from core.config import get_settings
    from core.logger import setup_service_logger

    config = get_settings()
    logger = setup_service_logger("microservices.loyalty_membership_service")
"""

from .service_client_base import BaseServiceClient
from .logger import setup_service_logger

__all__ = [
    "BaseServiceClient",
    "setup_service_logger",
]

__version__ = "1.0.0"
