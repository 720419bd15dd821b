import pytest


@pytest.fixture
def log_retention_config():
    """A configuration with a single resource using only catalogued calls."""
    return {
        "settings": {"description": "Log retention", "template_name": "log-retention"},
        "resources": {
            "LogRetention": {
                "onCreate": {
                    "service": "CloudWatchLogs",
                    "action": "putRetentionPolicy",
                    "parameters": {"logGroupName": "/aws/lambda/loggroup", "retentionInDays": 90},
                    "physicalResourceId": {"id": "loggroup"},
                },
                "onDelete": {
                    "service": "CloudWatchLogs",
                    "action": "deleteRetentionPolicy",
                    "parameters": {"logGroupName": "/aws/lambda/loggroup"},
                },
            }
        },
    }


@pytest.fixture
def get_data_config():
    """Two resources where the second consumes a response field of the first."""
    return {
        "resources": {
            "Tagger": {
                "onCreate": {
                    "service": "S3",
                    "action": "putObjectTagging",
                    "parameters": {
                        "Bucket": "my-bucket",
                        "Key": "my-key",
                        "Tagging": {"TagSet": [{"Key": "etag", "Value": {"get_data": "Writer.ETag"}}]},
                    },
                    "physicalResourceId": {"id": "tags"},
                },
                "policy": {"statements": [{"actions": "s3:PutObjectTagging"}]},
            },
            "Writer": {
                "onUpdate": {
                    "service": "S3",
                    "action": "putObject",
                    "parameters": {"Bucket": "my-bucket", "Key": "my-key", "Body": "my-body"},
                    "physicalResourceId": {"responsePath": "ETag"},
                },
            },
        }
    }
