"""Resilient bulk import of JSON documents into Azure Cosmos DB."""

__version__ = "0.1.0"
