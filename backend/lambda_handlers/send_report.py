"""
Lambda function to send the daily solar production report
Triggered by an EventBridge (CloudWatch Events) schedule, or by API Gateway
for a manual run
"""
import json

from backend.lib.config import RelayConfig
from backend.lib.relay_service import LogNotifier, run_from_config
from backend.lib.solar_core.errors import ConfigError


def lambda_handler(event, context):
    """
    Run the relay once and report what was sent.

    Can be triggered by:
    - EventBridge schedule (e.g. cron(0 14 * * ? *)) - sends the report
    - API Gateway - ?dry_run=true returns the message without sending it
    """
    print(f"Received event: {json.dumps(event, default=str)}")

    try:
        config = RelayConfig.from_env()
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return response(500, {'error': str(e)})

    if 'queryStringParameters' in event:
        return handle_api_request(event, config)
    return handle_scheduled_run(config)


def handle_scheduled_run(config: RelayConfig):
    try:
        outcome = run_from_config(config)
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return response(500, {'error': str(e)})

    status = 200 if outcome.sent else 502
    return response(status, outcome.to_dict())


def handle_api_request(event, config: RelayConfig):
    """Handle a manual run from API Gateway."""
    params = event.get('queryStringParameters') or {}
    dry_run = str(params.get('dry_run', 'false')).lower() == 'true'

    try:
        outcome = run_from_config(config, notifier=LogNotifier() if dry_run else None)
    except ConfigError as e:
        return response(400, {'error': str(e)})

    body = outcome.to_dict()
    body['dry_run'] = dry_run
    return response(200 if outcome.sent else 502, body)


def response(status_code: int, body: dict) -> dict:
    """Create API Gateway response."""
    return {
        'statusCode': status_code,
        'headers': {
            'Content-Type': 'application/json',
            'Access-Control-Allow-Origin': '*'
        },
        'body': json.dumps(body)
    }
