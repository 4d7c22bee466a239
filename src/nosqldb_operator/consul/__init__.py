"""Consul service registry."""

from nosqldb_operator.consul.client import ConsulClient, create_consul_client

__all__ = ["ConsulClient", "create_consul_client"]
