"""AWS Lambda entry point for Advisory Feeds."""

import os
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import boto3

from .config import Config, MetricsConfig
from .errors import (
    InvalidParameterError,
    MissingParameterError,
    UnknownSourceError,
)
from .fetch import HttpFetcher
from .logging_config import create_execution_logger, setup_structured_logging
from .models import RenderedFeed
from .pipeline import FeedContext, FeedPipeline
from .render import RENDERERS
from .sources import get_source

setup_structured_logging(os.getenv("LOG_LEVEL", "INFO"))

PLAIN_TEXT = "text/plain; charset=utf-8"

_fetcher: HttpFetcher | None = None


def get_fetcher(config: Config) -> HttpFetcher:
    """Return the process-wide fetcher, creating it on first use."""
    global _fetcher
    if _fetcher is None:
        fetch_config = config.get_fetch_config()
        _fetcher = HttpFetcher(
            timeout=fetch_config.timeout, user_agent=fetch_config.user_agent
        )
    return _fetcher


def resolve_format(params: Mapping[str, str], default: str) -> str:
    """Pick the feed format from `format`, or the legacy `feed` parameter.

    Raises:
        InvalidParameterError: If the requested format is not supported
    """
    name = "format" if params.get("format") else "feed"
    requested = (params.get(name) or "").strip().lower()
    if not requested:
        return default
    if requested not in RENDERERS:
        raise InvalidParameterError(name, requested, sorted(RENDERERS))
    return requested


def handle_request(
    params: Mapping[str, str],
    context: FeedContext,
    source_name: str | None = None,
    execution_id: str | None = None,
) -> RenderedFeed:
    """Render the feed for one request.

    Parameter and routing problems are reported as plain text. Everything
    after that point, upstream failures included, yields a valid feed.

    Args:
        params: Request parameters
        context: Process-wide capabilities
        source_name: Source to use, defaults to the `source` parameter
        execution_id: Execution ID for logging context

    Returns:
        The rendered response payload
    """
    logger = create_execution_logger("main", execution_id)
    source_name = source_name or params.get("source")

    try:
        source = get_source(source_name)
        source.check_params(params)
        feed_format = resolve_format(params, context.default_format)
    except UnknownSourceError as e:
        logger.warning(str(e), source=source_name)
        return RenderedFeed(body=str(e), content_type=PLAIN_TEXT, status_code=404)
    except (MissingParameterError, InvalidParameterError) as e:
        logger.warning(str(e), source=source_name)
        return RenderedFeed(body=str(e), content_type=PLAIN_TEXT, status_code=400)

    pipeline = FeedPipeline(source, params, context, execution_id=execution_id)
    rendered = pipeline.run(feed_format)
    rendered.metrics = pipeline.metrics.as_dict()
    return rendered


def _event_params(event: Mapping[str, Any]) -> dict[str, str]:
    params = event.get("queryStringParameters") or {}
    return {str(key): str(value) for key, value in params.items() if value is not None}


def _event_path(event: Mapping[str, Any]) -> str:
    return event.get("rawPath") or event.get("path") or ""


def _event_url(event: Mapping[str, Any]) -> str | None:
    request_context = event.get("requestContext") or {}
    headers = event.get("headers") or {}
    domain = request_context.get("domainName") or headers.get("host") or headers.get("Host")
    if not domain:
        return None
    return f"https://{domain}{_event_path(event)}"


def _path_source(event: Mapping[str, Any]) -> str | None:
    segments = [segment for segment in _event_path(event).split("/") if segment]
    return segments[-1] if segments else None


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    Lambda handler serving one advisory feed per HTTP request.

    The source is taken from FEED_SOURCE, the `source` query parameter, or
    the last segment of the request path, in that order.

    Args:
        event: API Gateway or function URL event
        context: Lambda context object

    Returns:
        HTTP response dictionary
    """
    execution_id = f"lambda_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"
    main_logger = create_execution_logger("main", execution_id)
    main_logger.log_execution_start(
        lambda_request_id=getattr(context, "aws_request_id", "unknown"),
        lambda_function_name=getattr(context, "function_name", "unknown"),
    )

    event = event or {}
    try:
        config = Config()
        params = _event_params(event)
        source_name = config.feed_source or params.get("source") or _path_source(event)

        feed_context = FeedContext(
            fetch=get_fetcher(config),
            base_url=config.resolve_base_url(_event_url(event)),
            default_format=config.default_format,
        )
        rendered = handle_request(
            params, feed_context, source_name=source_name, execution_id=execution_id
        )

        if rendered.metrics is not None:
            main_logger.log_metrics(rendered.metrics)
            metrics_config = config.get_metrics_config()
            if metrics_config.enabled:
                send_cloudwatch_metrics(rendered.metrics, metrics_config, execution_id)

        main_logger.log_execution_end(
            success=rendered.status_code == 200,
            status_code=rendered.status_code,
            source=source_name,
        )
        return {
            "statusCode": rendered.status_code,
            "headers": {"Content-Type": rendered.content_type},
            "body": rendered.body,
        }

    except Exception as e:
        error_msg = f"Critical error in Lambda handler: {str(e)}"
        main_logger.error(error_msg, error=str(e))
        main_logger.log_execution_end(success=False, error=error_msg)
        return {
            "statusCode": 500,
            "headers": {"Content-Type": PLAIN_TEXT},
            "body": error_msg,
        }


def send_cloudwatch_metrics(
    metrics: dict[str, Any], metrics_config: MetricsConfig, execution_id: str
) -> None:
    """
    Send custom metrics to CloudWatch.

    Args:
        metrics: Pipeline metrics for one request
        metrics_config: Namespace and region to publish to
        execution_id: Execution ID for logging context
    """
    metrics_logger = create_execution_logger("cloudwatch_metrics", execution_id)

    try:
        metrics_logger.info("Sending metrics to CloudWatch", metrics=metrics)
        cloudwatch = boto3.client("cloudwatch", region_name=metrics_config.region)

        dimensions = [{"Name": "Source", "Value": str(metrics.get("source", "unknown"))}]
        metric_data = [
            {
                "MetricName": "EntriesRendered",
                "Value": metrics.get("entries_rendered", 0),
                "Unit": "Count",
                "Dimensions": dimensions,
            },
            {
                "MetricName": "RecordsSkipped",
                "Value": metrics.get("records_skipped", 0),
                "Unit": "Count",
                "Dimensions": dimensions,
            },
            {
                "MetricName": "RecordsWithSchemaDrift",
                "Value": metrics.get("records_with_schema_drift", 0),
                "Unit": "Count",
                "Dimensions": dimensions,
            },
            {
                "MetricName": "FeedErrors",
                "Value": len(metrics.get("errors", [])),
                "Unit": "Count",
                "Dimensions": dimensions,
            },
        ]

        cloudwatch.put_metric_data(
            Namespace=metrics_config.namespace, MetricData=metric_data
        )
        metrics_logger.info(
            "Successfully sent metrics to CloudWatch",
            metrics_sent=len(metric_data),
            namespace=metrics_config.namespace,
        )

    except Exception as e:
        metrics_logger.error(f"Failed to send CloudWatch metrics: {e}", error=str(e))
