# /taskflow/utils/metrics.py

from prometheus_client import Counter, Histogram, Gauge

# This file defines all Prometheus metrics used for application monitoring.
# Centralizing them here makes them easy to find and manage.

# Process executor
process_started_counter = Counter('process_started_total', 'Structured processes started', ['process_id'])
process_outcome_counter = Counter('process_outcome_total', 'Structured processes that reached a terminal state', ['process_id', 'status'])
active_contexts_gauge = Gauge('process_active_contexts', 'Sessions with an in-flight process context')
expired_contexts_counter = Counter('process_expired_contexts_total', 'Contexts evicted after their timeout')

# Tool layer
tool_calls_counter = Counter('process_tool_calls_total', 'Tool invocations issued by processes', ['tool', 'status'])

# Chat routing
chat_messages_counter = Counter('chat_messages_total', 'Chat messages routed', ['handled_by'])
llm_fallback_counter = Counter('llm_fallback_total', 'Messages delegated to the LLM fallback', ['reason'])

# Performance Metrics
response_time_histogram = Histogram('response_time_seconds', 'Response time in seconds', ['endpoint'])
