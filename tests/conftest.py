"""Pulumi mocks shared by the component tests.

Installed at import time so every resource created in a test goes to the
mock monitor. Outputs echo the inputs plus the computed attributes the
components read (ARNs, endpoints, domain names).
"""

import pulumi

REGION = "us-east-1"
ACCOUNT = "123456789012"


class WebStackMocks(pulumi.runtime.Mocks):
    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        outputs = dict(args.inputs)
        name = args.name
        typ = args.typ

        if typ == "aws:dynamodb/table:Table":
            table = outputs.get("name", name)
            outputs["arn"] = f"arn:aws:dynamodb:{REGION}:{ACCOUNT}:table/{table}"
        elif typ == "aws:rds/cluster:Cluster":
            identifier = outputs.get("clusterIdentifier", name)
            outputs["arn"] = f"arn:aws:rds:{REGION}:{ACCOUNT}:cluster:{identifier}"
            outputs["endpoint"] = f"{identifier}.cluster-abc.{REGION}.rds.amazonaws.com"
            outputs["port"] = 5432 if "postgresql" in outputs.get("engine", "") else 3306
        elif typ == "aws:secretsmanager/secret:Secret":
            outputs["arn"] = f"arn:aws:secretsmanager:{REGION}:{ACCOUNT}:secret:{name}"
        elif typ == "aws:lambda/function:Function":
            function = outputs.get("name", name)
            arn = f"arn:aws:lambda:{REGION}:{ACCOUNT}:function:{function}"
            outputs["arn"] = arn
            outputs["invokeArn"] = (
                f"arn:aws:apigateway:{REGION}:lambda:path/2015-03-31/functions/{arn}/invocations"
            )
        elif typ == "aws:apigateway/restApi:RestApi":
            outputs["rootResourceId"] = f"{name}-root"
            outputs["executionArn"] = f"arn:aws:execute-api:{REGION}:{ACCOUNT}:{name}_id"
        elif typ == "aws:apigateway/stage:Stage":
            outputs["invokeUrl"] = (
                f"https://{outputs.get('restApi')}.execute-api.{REGION}.amazonaws.com/"
                f"{outputs.get('stageName')}"
            )
        elif typ == "aws:s3/bucket:Bucket":
            bucket = f"{name}-abc1234"
            outputs["bucket"] = bucket
            outputs["arn"] = f"arn:aws:s3:::{bucket}"
            outputs["bucketRegionalDomainName"] = f"{bucket}.s3.{REGION}.amazonaws.com"
        elif typ == "aws:s3/bucketWebsiteConfiguration:BucketWebsiteConfiguration":
            outputs["websiteEndpoint"] = (
                f"{outputs.get('bucket')}.s3-website-{REGION}.amazonaws.com"
            )
        elif typ == "aws:cloudfront/distribution:Distribution":
            outputs["domainName"] = "d111111abcdef8.cloudfront.net"
            outputs["arn"] = f"arn:aws:cloudfront::{ACCOUNT}:distribution/EDFDVBD6EXAMPLE"
        elif typ == "aws:iam/role:Role":
            outputs["arn"] = f"arn:aws:iam::{ACCOUNT}:role/{name}"
            outputs.setdefault("name", name)

        return [f"{name}_id", outputs]

    def call(self, args: pulumi.runtime.MockCallArgs):
        if args.token == "aws:index/getAvailabilityZones:getAvailabilityZones":
            return {
                "id": REGION,
                "names": [f"{REGION}a", f"{REGION}b", f"{REGION}c"],
                "zoneIds": ["use1-az1", "use1-az2", "use1-az4"],
            }
        if args.token == "aws:secretsmanager/getRandomPassword:getRandomPassword":
            return {"id": "password", "randomPassword": "s3cr3t-Passw0rd"}
        if args.token == "aws:index/getRegion:getRegion":
            return {"id": REGION, "name": REGION, "region": REGION}
        return {}


pulumi.runtime.set_mocks(WebStackMocks(), preview=False)
