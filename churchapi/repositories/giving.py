"""Giving repositories."""

from __future__ import annotations

from dataclasses import dataclass

from churchapi.repositories.base import RepositoryBundle, TableRepository


class DonationRepository(TableRepository):
    table = "donations"


class FundRepository(TableRepository):
    table = "funds"


@dataclass(frozen=True)
class GivingRepos(RepositoryBundle):
    donation: DonationRepository
    fund: FundRepository
