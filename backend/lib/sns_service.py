"""
=============================================================================
SNS SERVICE - Deliver production reports through Amazon SNS
=============================================================================
Two ways to reach the recipient:

1. Topic:  publish to a topic; every confirmed subscriber (email, SMS,
           HTTP...) gets the report.
2. Phone:  publish straight to an E.164 phone number as a transactional SMS,
           no topic or subscription needed.

Flow:
-----
[Relay] --> [SNS Topic] --> [Email Subscriber]
                       --> [SMS Subscriber]
[Relay] --> [SNS SMS]   --> [+15551234567]
=============================================================================
"""

# boto3 - AWS SDK for Python
import boto3

# ClientError - Exception class for AWS API errors
from botocore.exceptions import ClientError

from typing import Optional

# SNS rejects topic subjects longer than 100 characters
MAX_SUBJECT_LENGTH = 100


class SNSService:
    """
    Send report messages via Amazon SNS.

    Usage:
        sns = SNSService(topic_arn="arn:aws:sns:us-east-1:123456789012:SolarReports")
        sns.send("Solar production (2024-01-01): 23.40 kWh")
    """

    def __init__(self, topic_arn: Optional[str] = None, phone_number: Optional[str] = None,
                 subject: str = "Solar production", region: str = "us-east-1", client=None):
        """
        Args:
            topic_arn: Topic to publish to
            phone_number: E.164 number to text directly (used when no topic is set)
            subject: Subject for email subscribers of the topic
            region: AWS region
            client: Optional boto3 SNS client (tests pass a stub)
        """
        if not topic_arn and not phone_number:
            raise ValueError("SNSService needs a topic_arn or a phone_number")
        self.topic_arn = topic_arn
        self.phone_number = phone_number
        self.subject = subject[:MAX_SUBJECT_LENGTH]
        self.sns_client = client or boto3.client('sns', region_name=region)

    def send(self, message: str) -> bool:
        """
        Publish one report.

        Returns:
            bool: True if SNS accepted the message
        """
        try:
            if self.topic_arn:
                self.sns_client.publish(
                    TopicArn=self.topic_arn,
                    Subject=self.subject,
                    Message=message
                )
            else:
                self.sns_client.publish(
                    PhoneNumber=self.phone_number,
                    Message=message,
                    MessageAttributes={
                        'AWS.SNS.SMS.SMSType': {
                            'DataType': 'String',
                            'StringValue': 'Transactional'
                        }
                    }
                )
            print(f"SNS message sent: {message}")
            return True

        except ClientError as e:
            print(f"Failed to send SNS message: {e}")
            return False
