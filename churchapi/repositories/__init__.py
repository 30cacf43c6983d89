"""Repository bundles, one statically typed bundle per module."""

from churchapi.db.modules import ModuleKey
from churchapi.repositories.attendance import AttendanceRepos
from churchapi.repositories.base import RepositoryBundle, TableRepository
from churchapi.repositories.content import ContentRepos
from churchapi.repositories.doing import DoingRepos
from churchapi.repositories.giving import GivingRepos
from churchapi.repositories.membership import MembershipRepos
from churchapi.repositories.messaging import MessagingRepos
from churchapi.repositories.reporting import ReportingRepos

# Keyed by the schema a module's database holds; aliases share their target's bundle.
BUNDLE_TYPES: dict[ModuleKey, type[RepositoryBundle]] = {
    ModuleKey.MEMBERSHIP: MembershipRepos,
    ModuleKey.ATTENDANCE: AttendanceRepos,
    ModuleKey.CONTENT: ContentRepos,
    ModuleKey.GIVING: GivingRepos,
    ModuleKey.MESSAGING: MessagingRepos,
    ModuleKey.DOING: DoingRepos,
    ModuleKey.REPORTING: ReportingRepos,
}


def bundle_type_for(module: ModuleKey) -> type[RepositoryBundle]:
    return BUNDLE_TYPES[module.target]


__all__ = [
    "AttendanceRepos",
    "BUNDLE_TYPES",
    "ContentRepos",
    "DoingRepos",
    "GivingRepos",
    "MembershipRepos",
    "MessagingRepos",
    "ReportingRepos",
    "RepositoryBundle",
    "TableRepository",
    "bundle_type_for",
]
