"""Linode side: API client, resource models, and the NodeBalancer reconciler."""
