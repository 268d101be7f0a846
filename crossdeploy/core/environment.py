"""
Environment: an isolated deployment target identified by account and region.

Every stage deploys into exactly one Environment, and the pipeline itself
lives in one. Trust and reference resolution are computed by comparing
and formatting these two fields.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Environment:
    """
    An account/region pair.

    Example:
        toolchain = Environment(account="111111111111", region="ap-northeast-1")
        uat = Environment(account="222222222222", region="ap-northeast-1")

        toolchain.is_same_account(uat)  # False
    """

    account: str | None = None
    """Account ID that owns the resources"""

    region: str | None = None
    """Region the resources live in"""

    def missing_fields(self) -> list[str]:
        """Return the names of fields that are empty or unset."""
        missing = []
        if not self.account:
            missing.append("account")
        if not self.region:
            missing.append("region")
        return missing

    @property
    def is_resolved(self) -> bool:
        return not self.missing_fields()

    def is_same_account(self, other: "Environment") -> bool:
        return self.account == other.account

    def to_dict(self) -> dict[str, str | None]:
        return {"account": self.account, "region": self.region}

    def __str__(self):
        return f"{self.account}/{self.region}"
