"""
Cross-account trust for the self-mutating pipeline.

When the pipeline updates itself it has to publish assets to, and deploy
into, every foreign account it releases to. Each target account is
bootstrapped with roles tagged ``aws-cdk:bootstrap-role``. The self-mutation
role is allowed to assume any role in a foreign account, but only if that
role carries a bootstrap tag of ``file-publishing`` or ``deploy``.
"""

from dataclasses import dataclass, field
from typing import Any

import structlog

from crossdeploy.core.pipeline import SealedPipeline
from crossdeploy.errors import DependencyOrderingError

logger = structlog.get_logger(__name__)

ASSUME_ROLE_ACTION = "sts:AssumeRole"
BOOTSTRAP_ROLE_TAG = "iam:ResourceTag/aws-cdk:bootstrap-role"
BOOTSTRAP_ROLE_KINDS = ("file-publishing", "deploy")


@dataclass(frozen=True)
class TrustGrant:
    """Permission for the pipeline to assume bootstrap roles in one foreign account."""

    account: str
    action: str = ASSUME_ROLE_ACTION
    allowed_role_kinds: tuple[str, ...] = BOOTSTRAP_ROLE_KINDS
    stages: tuple[str, ...] = field(default=(), compare=False)

    @property
    def resource(self) -> str:
        return f"arn:*:iam::{self.account}:role/*"

    @property
    def condition(self) -> dict[str, dict[str, list[str]]]:
        return {"ForAnyValue:StringEquals": {BOOTSTRAP_ROLE_TAG: list(self.allowed_role_kinds)}}

    def to_policy_statement(self) -> dict[str, Any]:
        """Render as an IAM policy statement."""
        return {
            "Effect": "Allow",
            "Action": [self.action],
            "Resource": [self.resource],
            "Condition": self.condition,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "account": self.account,
            "stages": list(self.stages),
            "statement": self.to_policy_statement(),
        }


class CrossAccountTrustManager:
    """
    Computes the minimal set of trust grants a sealed pipeline needs.

    One grant per distinct foreign account, in the order the accounts first
    appear among the stages. Stages in the pipeline's own account need none.

    Example:
        sealed = builder.finalize()
        grants = CrossAccountTrustManager().compute_grants(sealed)
    """

    def __init__(self, allowed_role_kinds: tuple[str, ...] = BOOTSTRAP_ROLE_KINDS):
        self.allowed_role_kinds = tuple(allowed_role_kinds)

    def compute_grants(self, pipeline: SealedPipeline) -> tuple[TrustGrant, ...]:
        """
        Compute grants without attaching them.

        Raises:
            DependencyOrderingError: If ``pipeline`` has not been finalized
        """
        if not isinstance(pipeline, SealedPipeline):
            raise DependencyOrderingError(
                "Trust grants can only be computed for a finalized pipeline; "
                "call PipelineBuilder.finalize() first"
            )

        stages_by_account: dict[str, list[str]] = {}
        for stage in pipeline.foreign_stages():
            stages_by_account.setdefault(stage.descriptor.account, []).append(stage.name)

        grants = tuple(
            TrustGrant(
                account=account,
                allowed_role_kinds=self.allowed_role_kinds,
                stages=tuple(stage_names),
            )
            for account, stage_names in stages_by_account.items()
        )
        logger.info(
            "trust_grants_computed",
            pipeline=pipeline.name,
            pipeline_account=pipeline.account,
            foreign_accounts=[grant.account for grant in grants],
        )
        return grants

    def attach(self, pipeline: SealedPipeline) -> tuple[TrustGrant, ...]:
        """
        Compute grants and attach them to the pipeline's self-mutation role,
        replacing any grants attached earlier.
        """
        grants = self.compute_grants(pipeline)
        pipeline._attach_grants(grants)
        logger.debug(
            "trust_grants_attached",
            role=pipeline.self_mutation_role.role_name,
            grants=len(grants),
        )
        return grants
