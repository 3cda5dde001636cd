"""Shared OTel metrics instruments for the service."""

from opentelemetry import metrics

METER_NAME = "blog_api"

meter = metrics.get_meter(METER_NAME)

posts_created_total = meter.create_counter(
    name="posts_created_total",
    description="Post create requests by outcome",
    unit="1",
)

posts_updated_total = meter.create_counter(
    name="posts_updated_total",
    description="Post update requests by outcome",
    unit="1",
)

posts_deleted_total = meter.create_counter(
    name="posts_deleted_total",
    description="Post delete requests by outcome",
    unit="1",
)

store_errors_total = meter.create_counter(
    name="store_errors_total",
    description="Requests failed by a post store or connectivity error",
    unit="1",
)
