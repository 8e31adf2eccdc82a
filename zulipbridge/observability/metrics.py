from __future__ import annotations
from prometheus_client import Counter, Gauge

inbound_forwarded = Counter("zb_inbound_forwarded_total", "Inbound Zulip messages handed to the bus", ["account"])
self_echo_skipped = Counter("zb_self_echo_skipped_total", "Inbound messages dropped because we sent them", ["account"])
poll_errors = Counter("zb_poll_errors_total", "Event fetch failures", ["account", "kind"])
queue_recoveries = Counter("zb_queue_recoveries_total", "Event queue re-registrations", ["account", "outcome"])
outbound_sends = Counter("zb_outbound_sends_total", "Outbound messages dispatched", ["account", "action"])
outbound_errors = Counter("zb_outbound_errors_total", "Outbound dispatch failures", ["account", "action"])
recover_failures = Gauge("zb_recover_consecutive_failures", "Consecutive failed queue recoveries", ["account"])
last_event_id = Gauge("zb_last_event_id", "Last event id handed to the bus", ["account"])
