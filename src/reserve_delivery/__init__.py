"""
Reserve Delivery

Reliable outbox delivery for the reservation platform: guest notifications
and signed integrator webhooks.
"""

__version__ = "1.0.0"
