"""
=============================================================================
DYNAMODB SERVICE - Solar readings stored in Amazon DynamoDB
=============================================================================
Reads solar production readings from a DynamoDB table so the relay can run
as a scheduled Lambda without a local SQLite file.

Table Schema:
-------------
Table: SolarReadings
- site_id (String)   - Partition Key - one partition per installation
- timestamp (String) - Sort Key      - ISO-8601 UTC, orders readings in time
- solar (Number)     - kWh produced in the interval
- pv_solar (Number)  - optional, ignored by the relay

Example Item:
{
    "site_id": "prospect-123",
    "timestamp": "2024-01-02T02:00:00Z",
    "solar": 0.42
}

Because the sort key is an ISO string, a time range is a plain
Key('timestamp').between(start, end) condition.
=============================================================================
"""

# boto3 - AWS SDK for Python
import boto3
from boto3.dynamodb.conditions import Key

# ClientError - Exception class for AWS API errors
from botocore.exceptions import ClientError

from datetime import datetime
from typing import List, Optional

from backend.lib.solar_core.errors import DataSourceError
from backend.lib.solar_core.io import parse_timestamp, parse_value
from backend.lib.solar_core.models import SolarReading
from backend.lib.solar_core.windows import as_utc


class DynamoDBReader:
    """
    Read solar readings for one site from DynamoDB.

    Usage:
        reader = DynamoDBReader("prospect-123", table_name="SolarReadings")
        readings = reader.read_range(start, end)
    """

    def __init__(self, site_id: str, table_name: str = "SolarReadings",
                 value_field: str = "solar", region: str = "us-east-1", dynamodb=None):
        """
        Args:
            site_id: Partition key value for the installation
            table_name: DynamoDB table holding the readings
            value_field: Attribute with the kWh value
            region: AWS region of the table
            dynamodb: Optional boto3 DynamoDB resource (tests pass a fake)

        Credentials come from the usual boto3 chain (env vars, profile,
        or the Lambda execution role).
        """
        self.site_id = site_id
        self.table_name = table_name
        self.value_field = value_field
        self.dynamodb = dynamodb or boto3.resource('dynamodb', region_name=region)
        self.table = self.dynamodb.Table(table_name)

    def _query_all(self, condition) -> List[SolarReading]:
        """
        Run a Query and follow LastEvaluatedKey until every page is read.

        DynamoDB returns at most 1MB per call, so a few days of 15-minute
        readings can already span several pages.
        """
        readings = []
        kwargs = {'KeyConditionExpression': condition}
        try:
            while True:
                response = self.table.query(**kwargs)
                for item in response.get('Items', []):
                    reading = self._to_reading(item)
                    if reading is not None:
                        readings.append(reading)
                if 'LastEvaluatedKey' not in response:
                    break
                kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']
        except ClientError as e:
            print(f"Failed to get readings: {e}")
            raise DataSourceError(f"DynamoDB query on {self.table_name} failed: {e}") from e
        return readings

    def _to_reading(self, item: dict) -> Optional[SolarReading]:
        try:
            ts = parse_timestamp(item.get('timestamp'))
        except ValueError:
            return None
        # values come back as Decimal
        return SolarReading(timestamp=ts, kwh=parse_value(item.get(self.value_field)))

    def read_all(self) -> List[SolarReading]:
        return self._query_all(Key('site_id').eq(self.site_id))

    def read_range(self, start: datetime, end: datetime) -> List[SolarReading]:
        start, end = as_utc(start), as_utc(end)
        condition = Key('site_id').eq(self.site_id) & Key('timestamp').between(
            start.strftime("%Y-%m-%dT%H:%M:%S"),
            end.strftime("%Y-%m-%dT%H:%M:%SZ"),
        )
        readings = self._query_all(condition)
        return [r for r in readings if start <= r.timestamp <= end]
