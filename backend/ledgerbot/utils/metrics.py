# /ledgerbot/utils/metrics.py

from prometheus_client import Counter, Histogram, Gauge

# All Prometheus metrics live here so they are registered exactly once.

# Conversation Metrics
message_counter = Counter('ledgerbot_messages_total', 'Inbound events processed', ['status', 'kind'])
route_decisions_counter = Counter('ledgerbot_route_decisions_total', 'Router decisions by strategy', ['strategy'])
flow_events_counter = Counter('ledgerbot_flow_events_total', 'Flow lifecycle events', ['intent', 'event'])
active_sessions_gauge = Gauge('ledgerbot_active_sessions', 'Sessions currently held in memory')
queue_tasks_counter = Counter('ledgerbot_queue_tasks_total', 'Tasks run by the per-user queue', ['status'])

# Collaborator Metrics
ai_requests_counter = Counter('ledgerbot_ai_requests_total', 'Total AI requests', ['model', 'status'])
ledger_requests_counter = Counter('ledgerbot_ledger_requests_total', 'Ledger API requests', ['operation', 'status'])

# Performance Metrics
response_time_histogram = Histogram('ledgerbot_response_time_seconds', 'Response time in seconds', ['endpoint'])
cache_operations = Counter('ledgerbot_cache_operations_total', 'Extraction cache operations', ['namespace', 'operation', 'status'])
