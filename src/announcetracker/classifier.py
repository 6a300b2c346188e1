"""Keyword classifier for announcements.

Pure business logic: text in, one Category out. No I/O, no failure mode.
"""

from __future__ import annotations

import re

from announcetracker.models.announcement import Category

# Priority order matters: the first category with a matching keyword wins,
# so a keyword listed under two categories (``lambda``) always resolves to
# the earlier one.
CATEGORY_KEYWORDS: tuple[tuple[Category, tuple[str, ...]], ...] = (
    (
        Category.AI_ML,
        (
            "machine learning",
            "ml",
            "ai",
            "artificial intelligence",
            "generative ai",
            "foundation model",
            "bedrock",
            "sagemaker",
            "comprehend",
            "rekognition",
            "textract",
            "amazon q",
        ),
    ),
    (
        Category.COMPUTE,
        (
            "ec2",
            "lambda",
            "fargate",
            "batch",
            "compute",
            "instance",
            "instances",
            "graviton",
            "lightsail",
            "outposts",
        ),
    ),
    (
        Category.STORAGE,
        ("s3", "ebs", "efs", "fsx", "storage", "storage gateway", "backup", "glacier"),
    ),
    (
        Category.DATABASE,
        (
            "rds",
            "dynamodb",
            "aurora",
            "redshift",
            "database",
            "neptune",
            "documentdb",
            "elasticache",
            "memorydb",
        ),
    ),
    (
        Category.ANALYTICS,
        ("analytics", "athena", "emr", "kinesis", "quicksight", "glue", "opensearch", "msk"),
    ),
    (
        Category.SECURITY,
        ("security", "iam", "cognito", "kms", "waf", "guardduty", "secrets manager", "shield"),
    ),
    (
        Category.NETWORKING,
        (
            "vpc",
            "cloudfront",
            "route 53",
            "network",
            "networking",
            "direct connect",
            "transit gateway",
            "load balancer",
        ),
    ),
    (
        Category.DEVTOOLS,
        ("codecommit", "codebuild", "codedeploy", "codepipeline", "codeartifact", "x-ray"),
    ),
    (
        Category.CONTAINERS,
        ("ecs", "eks", "ecr", "container", "containers", "kubernetes", "docker", "app runner"),
    ),
    (
        Category.SERVERLESS,
        ("lambda", "serverless", "step functions", "eventbridge", "sns", "sqs"),
    ),
)


def _compile(keywords: tuple[str, ...]) -> re.Pattern[str]:
    alternation = "|".join(re.escape(k) for k in keywords)
    return re.compile(rf"\b(?:{alternation})\b")


_PATTERNS: tuple[tuple[Category, re.Pattern[str]], ...] = tuple(
    (category, _compile(keywords)) for category, keywords in CATEGORY_KEYWORDS
)


def classify(text: str) -> Category:
    """Return the first category whose keywords match ``text`` on word boundaries."""
    lowered = text.lower()
    for category, pattern in _PATTERNS:
        if pattern.search(lowered):
            return category
    return Category.OTHER


def classify_announcement(title: str, content: str) -> Category:
    return classify(f"{title} {content}")
