"""OVSDB client library: value types, schemas, monitor requests, transactions, a local replica and a reconnecting client."""

__version__ = "2.0.0"