"""
Pure helpers for naming, IAM statements and table keys. Testable without Pulumi runtime.

Used by the database component (key_attributes), the API component
(env_var_key, the *_statement builders, policy_document, placeholder_handler)
and the composition root (resource_prefix). No Pulumi types; all functions
accept and return plain Python types so they can be unit-tested without a
Pulumi stack. Callers holding ``Output`` values resolve them with ``apply``
before handing them in.
"""

import json
import re

# Same action set CDK's grantReadWriteData hands out.
DYNAMODB_READ_WRITE_ACTIONS: list[str] = [
    "dynamodb:BatchGetItem",
    "dynamodb:GetRecords",
    "dynamodb:GetShardIterator",
    "dynamodb:Query",
    "dynamodb:GetItem",
    "dynamodb:Scan",
    "dynamodb:ConditionCheckItem",
    "dynamodb:BatchWriteItem",
    "dynamodb:PutItem",
    "dynamodb:UpdateItem",
    "dynamodb:DeleteItem",
    "dynamodb:DescribeTable",
]

RDS_DATA_ACTIONS: list[str] = [
    "rds-data:ExecuteStatement",
    "rds-data:BatchExecuteStatement",
    "rds-data:BeginTransaction",
    "rds-data:CommitTransaction",
    "rds-data:RollbackTransaction",
]

SECRET_READ_ACTIONS: list[str] = [
    "secretsmanager:GetSecretValue",
    "secretsmanager:DescribeSecret",
]


def resource_prefix(
    project_name: str,
    environment: str,
) -> str:
    """
    Return the ``<project>-<environment>`` prefix shared by every physical name.
    """
    return f"{project_name}-{environment}"


def env_var_key(
    prefix: str,
    name: str,
) -> str:
    """
    Build an environment variable key like ``DYNAMODB_TABLE_USERS``.

    Anything that is not a letter, digit or underscore in ``name`` becomes an
    underscore so table names such as "tenant-data" still yield valid keys.
    """
    cleaned = re.sub(r"[^0-9A-Za-z_]", "_", name).upper()
    return f"{prefix}_{cleaned}"


def key_attributes(
    partition_key: str,
    sort_key: str | None,
    index_keys: list[tuple[str, str | None]],
) -> list[dict[str, str]]:
    """
    Return the DynamoDB attribute definitions for a table and its indexes.

    DynamoDB requires every key attribute (table or index) to be declared
    exactly once. All keys are string typed. Order follows first appearance.

    Args:
        partition_key: Table partition (hash) key.
        sort_key: Optional table sort (range) key.
        index_keys: (partition_key, sort_key) pairs, one per secondary index.
    """
    names: list[str] = []
    for key in [partition_key, sort_key, *[k for pair in index_keys for k in pair]]:
        if key and key not in names:
            names.append(key)
    return [{"name": key, "type": "S"} for key in names]


def dynamodb_read_write_statement(
    table_arns: list[str],
) -> dict:
    """
    Read-write data access on every table and its indexes.
    """
    resources = []
    for arn in table_arns:
        resources.extend([arn, f"{arn}/index/*"])
    return {
        "Effect": "Allow",
        "Action": DYNAMODB_READ_WRITE_ACTIONS,
        "Resource": resources,
    }


def rds_data_statement(
    cluster_arn: str,
) -> dict:
    return {
        "Effect": "Allow",
        "Action": RDS_DATA_ACTIONS,
        "Resource": [cluster_arn],
    }


def secret_read_statement(
    secret_arn: str,
) -> dict:
    return {
        "Effect": "Allow",
        "Action": SECRET_READ_ACTIONS,
        "Resource": [secret_arn],
    }


def policy_document(
    statements: list[dict],
) -> str:
    """
    Serialize IAM statements into a policy document JSON string.
    """
    return json.dumps({"Version": "2012-10-17", "Statement": statements})


def placeholder_handler(
    runtime: str,
    function_name: str,
) -> tuple[str, str, str]:
    """
    Return (file name, source, handler) for a placeholder function body.

    The blueprint does not ship business logic; each compute unit starts with
    a handler that echoes the event so the route is testable right after
    deploy. The language follows the runtime family.
    """
    if runtime.startswith("python"):
        source = (
            "import json\n"
            "import os\n"
            "from datetime import datetime, timezone\n"
            "\n"
            "\n"
            "def handler(event, context):\n"
            "    body = {\n"
            f"        \"message\": \"Hello from {function_name}!\",\n"
            f"        \"function\": \"{function_name}\",\n"
            "        \"environment\": os.environ.get(\"ENVIRONMENT\"),\n"
            "        \"timestamp\": datetime.now(timezone.utc).isoformat(),\n"
            "        \"event\": event,\n"
            "    }\n"
            "    return {\n"
            "        \"statusCode\": 200,\n"
            "        \"headers\": {\n"
            "            \"Content-Type\": \"application/json\",\n"
            "            \"Access-Control-Allow-Origin\": \"*\",\n"
            "        },\n"
            "        \"body\": json.dumps(body),\n"
            "    }\n"
        )
        return "index.py", source, "index.handler"

    source = (
        "exports.handler = async (event) => {\n"
        "  console.log('Event:', JSON.stringify(event, null, 2));\n"
        "  return {\n"
        "    statusCode: 200,\n"
        "    headers: {\n"
        "      'Content-Type': 'application/json',\n"
        "      'Access-Control-Allow-Origin': '*',\n"
        "    },\n"
        "    body: JSON.stringify({\n"
        f"      message: 'Hello from {function_name}!',\n"
        f"      function: '{function_name}',\n"
        "      environment: process.env.ENVIRONMENT,\n"
        "      timestamp: new Date().toISOString(),\n"
        "      event: event,\n"
        "    }),\n"
        "  };\n"
        "};\n"
    )
    return "index.js", source, "index.handler"
