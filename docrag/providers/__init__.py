"""Concrete adapters for every interface in :mod:`docrag.interfaces`."""
