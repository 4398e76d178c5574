import os
import boto3

from botocore.config import Config

main_boto_region = os.environ.get('MAIN_BOTO_REGION', 'eu-central-1')
aws_config_ddb = Config(retries={'max_attempts': 30}, region_name=os.environ.get('AWS_REGION', 'eu-central-1'))

# Simple Notification Service Client.
# Canonical order events are published here.
sns_client = boto3.client('sns', region_name=main_boto_region)
