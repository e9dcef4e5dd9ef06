"""
Serverless web app - Pulumi entrypoint.

Wires four ComponentResources from one configuration snapshot:

- **Database**: DynamoDB tables or an Aurora Serverless cluster, chosen by
  ``database.type``. Its capability handle feeds the API tier.
- **API**: API Gateway REST API with one Lambda per route. Every function
  shares one IAM role and one environment mapping derived from the database.
- **Assets**: S3 bucket, optionally behind CloudFront, seeded with a
  placeholder index page.
- **Monitoring** (optional): CloudWatch dashboard over the API and functions.

Stack exports: api_url, website_url, cloudfront_url, s3_bucket_name,
dynamo_table_<name> (one per table) or aurora_cluster_endpoint. Outputs for
features that are switched off are not exported.
"""

import pulumi

from webstack import AppConfig, compose


def main():
    """
    Build every tier and export the stack outputs.

    Reads config (preset, then project_name / environment / database / api /
    lambda / s3 / monitoring / routes overrides), composes the stack, and
    exports each output whose source resource exists.
    """
    config = AppConfig.from_pulumi_config(pulumi.Config())
    stack = compose(config)

    for entry in stack.outputs:
        pulumi.export(entry.name, entry.value)


if __name__ == "__main__":
    main()
