"""Operator tool for Cloud Integration design-time artifacts.

Lists, inspects, downloads, creates, updates, deploys and transports
integration flows between tenants over the OData API.
"""

__version__ = "0.4.0"
