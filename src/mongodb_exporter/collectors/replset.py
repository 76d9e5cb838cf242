"""
Replica-set collectors.

Both commands fail with a known error on a standalone server or an
uninitialized replica set; that is an expected state and yields no samples.
"""

from __future__ import annotations

from mongodb_exporter.collectors.base import Collector, Scope, document_field
from mongodb_exporter.core.errors import SchemaError
from mongodb_exporter.flatten.models import RawDocument


class ReplSetStatusCollector(Collector):
    name = "replSetGetStatus"
    prefix = ("replSetGetStatus",)

    def fetch(self, scope: Scope) -> RawDocument:
        return self.client.run_admin_command({"replSetGetStatus": 1})


class ReplSetConfigCollector(Collector):
    name = "replSetGetConfig"
    prefix = ("cfg",)

    def fetch(self, scope: Scope) -> RawDocument:
        result = self.client.run_admin_command({"replSetGetConfig": 1})
        config = document_field(result, "config")
        if config is None:
            raise SchemaError("replSetGetConfig returned no config document")
        return config
