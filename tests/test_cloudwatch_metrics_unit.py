"""Unit tests for CloudWatch metrics functionality."""

from unittest.mock import Mock, patch

from botocore.exceptions import ClientError

from advisory_feeds.config import MetricsConfig
from advisory_feeds.lambda_handler import send_cloudwatch_metrics

METRICS = {
    "source": "redhat",
    "entries_rendered": 12,
    "records_skipped": 2,
    "records_with_schema_drift": 1,
    "errors": [],
}


class TestCloudWatchMetricsUnit:
    """Unit tests for CloudWatch metrics functionality."""

    def test_send_cloudwatch_metrics_success(self):
        metrics_config = MetricsConfig(enabled=True, namespace="Advisory-Feeds", region="eu-west-1")

        with patch("boto3.client") as mock_boto_client:
            mock_cloudwatch = Mock()
            mock_boto_client.return_value = mock_cloudwatch

            send_cloudwatch_metrics(METRICS, metrics_config, "test-exec-123")

            mock_boto_client.assert_called_once_with("cloudwatch", region_name="eu-west-1")
            mock_cloudwatch.put_metric_data.assert_called_once()

            kwargs = mock_cloudwatch.put_metric_data.call_args.kwargs
            assert kwargs["Namespace"] == "Advisory-Feeds"

            values = {metric["MetricName"]: metric["Value"] for metric in kwargs["MetricData"]}
            assert values == {
                "EntriesRendered": 12,
                "RecordsSkipped": 2,
                "RecordsWithSchemaDrift": 1,
                "FeedErrors": 0,
            }
            for metric in kwargs["MetricData"]:
                assert metric["Unit"] == "Count"
                assert metric["Dimensions"] == [{"Name": "Source", "Value": "redhat"}]

    def test_error_count_comes_from_error_list(self):
        metrics = dict(METRICS, errors=["Failed to fetch x", "Failed to parse y"])

        with patch("boto3.client") as mock_boto_client:
            mock_cloudwatch = Mock()
            mock_boto_client.return_value = mock_cloudwatch

            send_cloudwatch_metrics(metrics, MetricsConfig(enabled=True), "test-exec-123")

            metric_data = mock_cloudwatch.put_metric_data.call_args.kwargs["MetricData"]
            feed_errors = next(m for m in metric_data if m["MetricName"] == "FeedErrors")
            assert feed_errors["Value"] == 2

    def test_client_error_is_not_raised(self):
        error = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "not authorized"}},
            "PutMetricData",
        )

        with patch("boto3.client") as mock_boto_client:
            mock_cloudwatch = Mock()
            mock_cloudwatch.put_metric_data.side_effect = error
            mock_boto_client.return_value = mock_cloudwatch

            send_cloudwatch_metrics(METRICS, MetricsConfig(enabled=True), "test-exec-123")

            mock_cloudwatch.put_metric_data.assert_called_once()
