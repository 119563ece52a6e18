"""
BizFlow

Multi-tenant business management platform: the FastAPI server
(bizflow.main) and the client session layer (bizflow.client) that
gates routes by role, tenant and subscription.
"""

__version__ = "1.0.0"
