"""
Static assets: S3 bucket, optionally fronted by a CloudFront distribution.

Access to the bucket follows two switches:

- CloudFront enabled: Block Public Access is fully on and only the
  distribution can read, through Origin Access Control (OAC) with signed
  requests. The hosting switch is ignored for access purposes.
- Website hosting without CloudFront: ACLs stay blocked but a bucket policy
  grants public ``s3:GetObject``; the S3 website endpoint is the site URL.
- Neither: fully private, no public path.

The distribution assumes a single-page app: 403/404 from the origin are
rewritten to ``/index.html`` with status 200 and a short error cache. A
placeholder ``index.html`` is uploaded so every URL answers right after the
first deploy; re-uploading identical content is a no-op.
"""

import json

import pulumi
import pulumi_aws as aws

from webstack.config import AssetsSpec, is_production

ID: str = "webstack:assets:AssetsInfra"

ACCESS_VIA_DISTRIBUTION = "private-via-distribution"
ACCESS_PUBLIC_READ = "public-read"
ACCESS_PRIVATE = "private"

S3_BLOCK_PUBLIC_ACCESS: dict[str, bool] = {
    "block_public_acls": True,
    "block_public_policy": True,
    "ignore_public_acls": True,
    "restrict_public_buckets": True,
}

# Objects may be public through the bucket policy, never through ACLs.
S3_BLOCK_PUBLIC_ACLS: dict[str, bool] = {
    "block_public_acls": True,
    "block_public_policy": False,
    "ignore_public_acls": True,
    "restrict_public_buckets": False,
}

# AWS managed "CachingOptimized" cache policy.
CACHING_OPTIMIZED_POLICY_ID = "658327ea-f89d-4fab-a63d-7e88639e58f6"

SPA_ERROR_CACHE_TTL_SECONDS = 30 * 60

INDEX_DOCUMENT = "index.html"
ERROR_DOCUMENT = "error.html"

PLACEHOLDER_INDEX_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Serverless Web App</title>
    <style>
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            max-width: 800px;
            margin: 0 auto;
            padding: 2rem;
        }
        #result { font-family: monospace; white-space: pre-wrap; }
    </style>
</head>
<body>
    <h1>Serverless Web App</h1>
    <p>Your serverless application is running.</p>
    <button onclick="testApi()">Test API Endpoint</button>
    <div id="result"></div>
    <script>
        async function testApi() {
            try {
                const response = await fetch('/api/items');
                const data = await response.json();
                document.getElementById('result').textContent = JSON.stringify(data, null, 2);
            } catch (error) {
                document.getElementById('result').textContent = 'Error: ' + error.message;
            }
        }
    </script>
</body>
</html>
"""


def access_mode(
    spec: AssetsSpec,
) -> str:
    """
    Pick the bucket access mode from the hosting and CloudFront switches.
    """
    if spec.enable_cloudfront:
        return ACCESS_VIA_DISTRIBUTION
    if spec.enable_website_hosting:
        return ACCESS_PUBLIC_READ
    return ACCESS_PRIVATE


def public_read_policy(
    bucket_arn: str,
) -> str:
    return json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Principal": "*",
                    "Action": ["s3:GetObject"],
                    "Resource": [f"{bucket_arn}/*"],
                }
            ],
        }
    )


def distribution_read_policy(
    bucket_arn: str,
    distribution_arn: str,
) -> str:
    """
    Let only this distribution (via OAC) read objects.
    """
    return json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Principal": {"Service": "cloudfront.amazonaws.com"},
                    "Action": ["s3:GetObject"],
                    "Resource": [f"{bucket_arn}/*"],
                    "Condition": {"StringEquals": {"AWS:SourceArn": distribution_arn}},
                }
            ],
        }
    )


class AssetsInfra(pulumi.ComponentResource):
    """
    S3 bucket for static assets + optional CloudFront (OAC, HTTPS).

    Resources: Bucket, BucketPublicAccessBlock, BucketCorsConfiguration,
    BucketObject (placeholder index), optional BucketVersioning (prod),
    BucketWebsiteConfiguration (hosting), BucketPolicy (public read or OAC),
    OriginAccessControl and Distribution (CloudFront).
    """

    def __init__(
        self,
        name: str,
        spec: AssetsSpec,
        prefix: str,
        environment: str,
        opts: pulumi.ResourceOptions | None = None,
    ):
        """
        Create the bucket and, when enabled, the CloudFront distribution.

        Args:
            name: Pulumi resource name; child names derive from it.
            spec: Hosting / CloudFront switches and optional custom domain.
            prefix: "<project>-<environment>" prefix for physical names.
            environment: Environment tag; "prod" keeps versions and data.
            opts: Options for the component (e.g. parent).

        Outputs (set on self, registered for the component):
            bucket_name: Physical bucket name.
            website_url: Reachable site address, or None when the site is
                neither hosted nor distributed.
            distribution_domain_name: CloudFront domain, or None.
            distribution_url: HTTPS URL of the distribution, or None.
        """
        production = is_production(environment)
        self.access_mode = access_mode(spec)

        super().__init__(ID, name, None, opts)

        child_opts = pulumi.ResourceOptions(parent=self)

        # Auto-naming appends a random suffix; bucket names are global.
        self.bucket = aws.s3.Bucket(
            resource_name=f"{prefix}-static-assets",
            force_destroy=not production,
            opts=pulumi.ResourceOptions(parent=self, retain_on_delete=production),
        )

        block = (
            S3_BLOCK_PUBLIC_ACLS
            if self.access_mode == ACCESS_PUBLIC_READ
            else S3_BLOCK_PUBLIC_ACCESS
        )
        self.public_access_block = aws.s3.BucketPublicAccessBlock(
            resource_name=f"{name}-block-public",
            bucket=self.bucket.id,
            opts=child_opts,
            **block,
        )

        if production:
            aws.s3.BucketVersioning(
                resource_name=f"{name}-versioning",
                bucket=self.bucket.id,
                versioning_configuration=aws.s3.BucketVersioningVersioningConfigurationArgs(
                    status="Enabled",
                ),
                opts=child_opts,
            )

        aws.s3.BucketCorsConfiguration(
            resource_name=f"{name}-cors",
            bucket=self.bucket.id,
            cors_rules=[
                aws.s3.BucketCorsConfigurationCorsRuleArgs(
                    allowed_methods=["GET", "HEAD"],
                    allowed_origins=["*"],
                    allowed_headers=["*"],
                )
            ],
            opts=child_opts,
        )

        self.website: aws.s3.BucketWebsiteConfiguration | None = None
        if spec.enable_website_hosting:
            self.website = aws.s3.BucketWebsiteConfiguration(
                resource_name=f"{name}-website",
                bucket=self.bucket.id,
                index_document=aws.s3.BucketWebsiteConfigurationIndexDocumentArgs(
                    suffix=INDEX_DOCUMENT,
                ),
                error_document=aws.s3.BucketWebsiteConfigurationErrorDocumentArgs(
                    key=ERROR_DOCUMENT,
                ),
                opts=child_opts,
            )

        self.bucket_policy: aws.s3.BucketPolicy | None = None
        self.distribution: aws.cloudfront.Distribution | None = None
        self.distribution_domain_name: pulumi.Output[str] | None = None
        self.distribution_url: pulumi.Output[str] | None = None
        self.website_url: pulumi.Output[str] | None = None

        if self.access_mode == ACCESS_VIA_DISTRIBUTION:
            self._create_distribution(name, spec, production)
            self.website_url = self.distribution_url
            if not spec.enable_website_hosting:
                pulumi.log.warn(
                    "CloudFront enabled without website hosting; serving through "
                    "the distribution only",
                    resource=self,
                )
        elif self.access_mode == ACCESS_PUBLIC_READ:
            # Policy only after the access block allows public policies.
            self.bucket_policy = aws.s3.BucketPolicy(
                resource_name=f"{name}-public-read",
                bucket=self.bucket.id,
                policy=self.bucket.arn.apply(public_read_policy),
                opts=pulumi.ResourceOptions(
                    parent=self, depends_on=[self.public_access_block]
                ),
            )
            self.website_url = pulumi.Output.concat(
                "http://", self.website.website_endpoint
            )
            pulumi.log.info("CloudFront disabled; bucket serves public reads", resource=self)
        else:
            pulumi.log.info(
                "Website hosting and CloudFront disabled; bucket stays private",
                resource=self,
            )

        aws.s3.BucketObject(
            resource_name=f"{name}-index",
            bucket=self.bucket.id,
            key=INDEX_DOCUMENT,
            content=PLACEHOLDER_INDEX_HTML,
            content_type="text/html",
            opts=child_opts,
        )

        self.bucket_name: pulumi.Output[str] = self.bucket.bucket
        outputs = {"bucket_name": self.bucket_name}
        if self.website_url is not None:
            outputs["website_url"] = self.website_url
        if self.distribution_url is not None:
            outputs["distribution_url"] = self.distribution_url
        self.register_outputs(outputs)

    def _create_distribution(
        self,
        name: str,
        spec: AssetsSpec,
        production: bool,
    ) -> None:
        # retain_on_delete=True avoids AWS 409 OriginAccessControlInUse on
        # destroy: AWS may still reference the OAC briefly after the
        # distribution is gone.
        oac = aws.cloudfront.OriginAccessControl(
            resource_name=f"{name}-oac",
            origin_access_control_origin_type="s3",
            signing_behavior="always",
            signing_protocol="sigv4",
            opts=pulumi.ResourceOptions(parent=self, retain_on_delete=True),
        )

        origins = [
            aws.cloudfront.DistributionOriginArgs(
                domain_name=self.bucket.bucket_regional_domain_name,
                origin_id="s3-origin",
                origin_access_control_id=oac.id,
            )
        ]
        default_cache_behavior = aws.cloudfront.DistributionDefaultCacheBehaviorArgs(
            target_origin_id="s3-origin",
            viewer_protocol_policy="redirect-to-https",
            allowed_methods=["GET", "HEAD", "OPTIONS"],
            cached_methods=["GET", "HEAD", "OPTIONS"],
            compress=True,
            cache_policy_id=CACHING_OPTIMIZED_POLICY_ID,
        )
        # Single-page app: unknown paths fall back to the index.
        error_responses = [
            aws.cloudfront.DistributionCustomErrorResponseArgs(
                error_code=status,
                response_code=200,
                response_page_path=f"/{INDEX_DOCUMENT}",
                error_caching_min_ttl=SPA_ERROR_CACHE_TTL_SECONDS,
            )
            for status in (403, 404)
        ]
        restrictions = aws.cloudfront.DistributionRestrictionsArgs(
            geo_restriction=aws.cloudfront.DistributionRestrictionsGeoRestrictionArgs(
                restriction_type="none",
            ),
        )

        domain = spec.custom_domain
        aliases = None
        if domain and domain.certificate_arn:
            aliases = [domain.domain_name]
            viewer_certificate = aws.cloudfront.DistributionViewerCertificateArgs(
                acm_certificate_arn=domain.certificate_arn,
                ssl_support_method="sni-only",
                minimum_protocol_version="TLSv1.2_2021",
            )
        else:
            viewer_certificate = aws.cloudfront.DistributionViewerCertificateArgs(
                cloudfront_default_certificate=True,
            )
            if domain:
                pulumi.log.warn(
                    f"Custom domain {domain.domain_name} has no certificate_arn; "
                    "serving on the distribution domain only",
                    resource=self,
                )
            else:
                pulumi.log.info(
                    "No custom domain; using the default CloudFront certificate",
                    resource=self,
                )

        # depends_on so destroy order is correct: distribution is deleted
        # before the OAC.
        self.distribution = aws.cloudfront.Distribution(
            resource_name=f"{name}-cdn",
            enabled=True,
            comment=f"{name} static assets distribution",
            origins=origins,
            default_cache_behavior=default_cache_behavior,
            default_root_object=INDEX_DOCUMENT,
            custom_error_responses=error_responses,
            aliases=aliases,
            price_class="PriceClass_All" if production else "PriceClass_100",
            restrictions=restrictions,
            viewer_certificate=viewer_certificate,
            opts=pulumi.ResourceOptions(parent=self, depends_on=[oac]),
        )

        self.bucket_policy = aws.s3.BucketPolicy(
            resource_name=f"{name}-oac-read",
            bucket=self.bucket.id,
            policy=pulumi.Output.all(self.bucket.arn, self.distribution.arn).apply(
                lambda arns: distribution_read_policy(arns[0], arns[1])
            ),
            opts=pulumi.ResourceOptions(
                parent=self, depends_on=[self.public_access_block]
            ),
        )

        self.distribution_domain_name = self.distribution.domain_name
        self.distribution_url = pulumi.Output.concat(
            "https://", self.distribution.domain_name
        )
