"""Prometheus metrics for the music library service."""
from prometheus_client import Counter, Histogram
from .shared.metrics import (
    http_requests_total,
    http_request_duration_seconds,
)

__all__ = [
    "http_requests_total",
    "http_request_duration_seconds",
    "ingestion_files_total",
    "ingestion_file_duration_seconds",
    "credits_extracted_total",
    "storage_compensation_failures_total",
    "streaming_bytes_sent_total",
]

# Ingestion metrics
ingestion_files_total = Counter(
    'ingestion_files_total',
    'Total number of uploaded files processed',
    ['outcome']  # 'succeeded', 'failed'
)

ingestion_file_duration_seconds = Histogram(
    'ingestion_file_duration_seconds',
    'Time spent ingesting a single file',
    buckets=(0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 15.0, 60.0, 300.0)
)

credits_extracted_total = Counter(
    'credits_extracted_total',
    'Total number of credits persisted by ingestion'
)

storage_compensation_failures_total = Counter(
    'storage_compensation_failures_total',
    'Blobs that could not be deleted after a failed ingestion'
)

# Streaming metrics
streaming_bytes_sent_total = Counter(
    'streaming_bytes_sent_total',
    'Total bytes sent for streaming and downloads',
    ['mode']  # 'stream', 'download'
)
