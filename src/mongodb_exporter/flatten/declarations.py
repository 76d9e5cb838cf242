"""
Built-in declaration table.

Paths are canonical name segments, rooted at the collector's prefix:
``serverStatus`` (serverStatus), ``replSetGetStatus`` (replSetGetStatus),
``cfg`` (replSetGetConfig), ``collStats`` (collStats), ``indexStats``
($indexStats). Diagnostic data is flattened without a prefix; its subtrees
reuse the same roots (``serverStatus``, ``local.oplog.rs.stats``, ...).

Legacy names are given without the ``mongodb_`` namespace, which the
exposition layer adds to every metric.
"""

from __future__ import annotations

from mongodb_exporter.flatten.compat import RenameRule
from mongodb_exporter.flatten.models import MetricKind
from mongodb_exporter.flatten.paths import ArrayPolicy, DeclarationTable, FieldPolicy

DECLARATIONS_VERSION = 1

SS = ("serverStatus",)
RS = ("replSetGetStatus",)


def _label(*path: str, label: str, kind: MetricKind | None = None) -> FieldPolicy:
    return FieldPolicy(path=path, label=label, kind=kind)


def _drop(*path: str) -> FieldPolicy:
    return FieldPolicy(path=path, drop=True)


def _counter(*path: str) -> FieldPolicy:
    return FieldPolicy(path=path, kind=MetricKind.COUNTER)


LOCK_MODE_FIELDS = ("acquireCount", "acquireWaitCount", "timeAcquiringMicros", "deadlockCount")

# cumulative serverStatus fields; everything else is a gauge
COUNTER_FIELDS: tuple[tuple[str, ...], ...] = (
    ("network", "bytesIn"),
    ("network", "bytesOut"),
    ("network", "physicalBytesIn"),
    ("network", "physicalBytesOut"),
    ("network", "numRequests"),
    ("opLatencies",),
    ("extra_info", "page_faults"),
    ("globalLock", "totalTime"),
    ("metrics", "cursor", "timedOut"),
    ("metrics", "operation"),
    ("metrics", "record"),
    ("metrics", "ttl"),
    ("wiredTiger", "cache", "bytes read into cache"),
    ("wiredTiger", "cache", "bytes written from cache"),
)

FIELD_POLICIES: tuple[FieldPolicy, ...] = (
    # serverStatus
    _label(*SS, "asserts", label="assert_type", kind=MetricKind.COUNTER),
    _label(*SS, "globalLock", "activeClients", label="count_type"),
    _label(*SS, "globalLock", "currentQueue", label="count_type"),
    _label(*SS, "metrics", "document", label="doc_op_type", kind=MetricKind.COUNTER),
    _label(*SS, "metrics", "queryExecutor", label="doc_op_type", kind=MetricKind.COUNTER),
    _label(*SS, "metrics", "cursor", "open", label="csr_type"),
    _label(*SS, "metrics", "commands", label="cmd_name", kind=MetricKind.COUNTER),
    _label(*SS, "opcounters", label="legacy_op_type", kind=MetricKind.COUNTER),
    _label(*SS, "opcountersRepl", label="legacy_op_type", kind=MetricKind.COUNTER),
    _label(*SS, "locks", label="resource"),
    *(
        _label(*SS, "locks", name, label="lock_mode", kind=MetricKind.COUNTER)
        for name in LOCK_MODE_FIELDS
    ),
    _label(*SS, "wiredTiger", "concurrentTransactions", label="txn_rw"),
    *(_counter(*SS, *path) for path in COUNTER_FIELDS),
    # collStats (mongos reports one sub-document per shard)
    _drop("collStats", "wiredTiger"),
    _drop("collStats", "indexDetails"),
    _label("collStats", "shards", label="shard"),
    _drop("collStats", "shards", "wiredTiger"),
    _drop("collStats", "shards", "indexDetails"),
    _label("collStats", "shards", "indexSizes", label="index"),
    # $indexStats: the index key pattern and spec are not measurements
    _drop("indexStats", "key"),
    _drop("indexStats", "spec"),
    # getDiagnosticData
    _label("local.oplog.rs.stats", "indexSizes", label="index"),
)

ARRAY_POLICIES: tuple[ArrayPolicy, ...] = (
    ArrayPolicy(
        path=(*RS, "members"),
        label="member_idx",
        key_field="name",
        extra_labels=(("member_state", "stateStr"),),
    ),
    ArrayPolicy(path=("cfg", "members"), label="member_idx", key_field="host"),
)

RENAME_RULES: tuple[RenameRule, ...] = (
    RenameRule.create(
        "asserts_total", (*SS, "asserts"), label_overrides={"assert_type": "type"}
    ),
    RenameRule.create("extra_info_page_faults_total", (*SS, "extra_info", "page_faults")),
    RenameRule.create(
        "mongod_global_lock_client",
        (*SS, "globalLock", "activeClients"),
        label_overrides={"count_type": "type"},
    ),
    RenameRule.create(
        "mongod_global_lock_current_queue",
        (*SS, "globalLock", "currentQueue"),
        label_overrides={"count_type": "type"},
    ),
    RenameRule.create(
        "mongod_global_lock_total", (*SS, "globalLock", "totalTime"), kind=MetricKind.COUNTER
    ),
    RenameRule.create("instance_local_time", (*SS, "localTime")),
    RenameRule.create("instance_uptime_seconds", (*SS, "uptime"), kind=MetricKind.COUNTER),
    RenameRule.create("memory", (*SS, "mem"), prefix=True, suffix_label="type"),
    RenameRule.create(
        "network_metrics_num_requests_total", (*SS, "network", "numRequests")
    ),
    RenameRule.create(
        "network_bytes_total",
        (*SS, "network"),
        prefix=True,
        suffix_label="state",
        suffix_mapping={"bytesIn": "in_bytes", "bytesOut": "out_bytes"},
        mapped_only=True,
    ),
    RenameRule.create(
        "op_counters_total", (*SS, "opcounters"), label_overrides={"legacy_op_type": "type"}
    ),
    RenameRule.create(
        "op_counters_repl_total",
        (*SS, "opcountersRepl"),
        label_overrides={"legacy_op_type": "type"},
    ),
    RenameRule.create(
        "mongod_op_latencies_ops_total",
        (*SS, "opLatencies"),
        prefix=True,
        suffix_label="type",
        suffix_mapping={"reads.ops": "read", "writes.ops": "write", "commands.ops": "command"},
        mapped_only=True,
    ),
    RenameRule.create(
        "mongod_op_latencies_latency_total",
        (*SS, "opLatencies"),
        prefix=True,
        suffix_label="type",
        suffix_mapping={
            "reads.latency": "read",
            "writes.latency": "write",
            "commands.latency": "command",
        },
        mapped_only=True,
    ),
    RenameRule.create(
        "mongod_metrics_cursor_open",
        (*SS, "metrics", "cursor", "open"),
        label_overrides={"csr_type": "state"},
    ),
    RenameRule.create(
        "mongod_metrics_cursor_timed_out_total", (*SS, "metrics", "cursor", "timedOut")
    ),
    RenameRule.create(
        "mongod_metrics_document_total",
        (*SS, "metrics", "document"),
        label_overrides={"doc_op_type": "state"},
    ),
    RenameRule.create(
        "mongod_metrics_query_executor_total",
        (*SS, "metrics", "queryExecutor"),
        label_overrides={"doc_op_type": "state"},
    ),
    RenameRule.create("mongod_metrics_record_moves_total", (*SS, "metrics", "record", "moves")),
    RenameRule.create(
        "mongod_metrics_ttl_deleted_documents_total", (*SS, "metrics", "ttl", "deletedDocuments")
    ),
    RenameRule.create("mongod_metrics_ttl_passes_total", (*SS, "metrics", "ttl", "passes")),
    RenameRule.create(
        "mongod_wiredtiger_concurrent_transactions_out_tickets",
        (*SS, "wiredTiger", "concurrentTransactions", "out"),
        label_overrides={"txn_rw": "type"},
    ),
    RenameRule.create(
        "mongod_wiredtiger_concurrent_transactions_available_tickets",
        (*SS, "wiredTiger", "concurrentTransactions", "available"),
        label_overrides={"txn_rw": "type"},
    ),
    RenameRule.create(
        "mongod_wiredtiger_concurrent_transactions_total_tickets",
        (*SS, "wiredTiger", "concurrentTransactions", "totalTickets"),
        label_overrides={"txn_rw": "type"},
    ),
    # replSetGetStatus
    *(
        RenameRule.create(
            f"mongod_replset_member_{legacy}",
            (*RS, "members", field),
            label_overrides={"member_idx": "name", "member_state": "state"},
        )
        for legacy, field in (
            ("health", "health"),
            ("state", "state"),
            ("uptime", "uptime"),
            ("optime_date", "optimeDate"),
            ("election_date", "electionDate"),
            ("last_heartbeat", "lastHeartbeat"),
            ("ping_ms", "pingMs"),
        )
    ),
    RenameRule.create("mongod_replset_my_state", (*RS, "myState")),
    RenameRule.create("mongod_replset_term", (*RS, "term")),
)


def default_declarations() -> DeclarationTable:
    """The declaration table compiled into the exporter."""
    return DeclarationTable(
        fields=FIELD_POLICIES,
        arrays=ARRAY_POLICIES,
        renames=RENAME_RULES,
        version=DECLARATIONS_VERSION,
    )
