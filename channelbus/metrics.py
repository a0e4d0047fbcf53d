# channelbus/metrics.py
"""Metrics collection for the channel engine."""

from prometheus_client import Counter, Gauge

# Publish Metrics
EVENTS_PUBLISHED = Counter('channelbus_events_published_total', 'Total events published', ['channel'])
EVENTS_DELIVERED = Counter('channelbus_events_delivered_total', 'Listener invocations from publish, including payloads a full subscription buffer then drops', ['channel'])
EVENTS_DROPPED = Counter('channelbus_events_dropped_total', 'Events that reached no consumer', ['channel', 'reason'])

# Subscription Metrics
ACTIVE_SUBSCRIPTIONS = Gauge('channelbus_active_subscriptions', 'Subscriptions currently listening', ['channel'])
