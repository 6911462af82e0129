"""Delivery channel collaborators."""

from .base import IDelivery, delivery_from_config, require_recipient
from .smtp import SmtpDelivery

__all__ = ["IDelivery", "SmtpDelivery", "delivery_from_config", "require_recipient"]
