"""SQLite-backed creator directory and campaign store.

Mirrors the other stores: accepts a sqlite3.Connection, uses parameterized
queries exclusively, and commits synchronously after writes.  Lookups that
miss raise :class:`RecordNotFoundError`; the capability adapters translate
that (and any database error) into typed failures.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from decimal import Decimal
from typing import Any

from campaign_automation.domain.models import (
    AnalyticsSnapshot,
    CampaignDetail,
    ContractRef,
    ContractTerms,
    Creator,
    CreatorMetrics,
    CreatorSearchCriteria,
)

# Campaign columns an UpdateCampaign patch may touch
UPDATABLE_CAMPAIGN_FIELDS = frozenset(
    {"name", "brand", "status", "description", "deliverables", "timeline", "automation_status"}
)


class RecordNotFoundError(LookupError):
    """Raised when a campaign or creator id does not exist in the directory."""

    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} '{record_id}' not found")


class CreatorDirectory:
    """Read campaigns and creators; write contracts, outreach records and campaign patches."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialize with an open database connection.

        Args:
            conn: An open sqlite3.Connection whose database already has the
                  directory tables (see ``init_directory_tables``).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def save_campaign(self, campaign: CampaignDetail) -> None:
        """Insert or replace a campaign record and its creator associations."""
        self._conn.execute(
            """
            INSERT OR REPLACE INTO campaigns (
                id, name, brand, status, description, deliverables,
                timeline, budget, user_id, settings_json
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                campaign.id,
                campaign.name,
                campaign.brand,
                campaign.status,
                campaign.description,
                campaign.deliverables,
                campaign.timeline,
                str(campaign.budget) if campaign.budget is not None else None,
                campaign.user_id,
                json.dumps(campaign.settings),
            ),
        )
        for creator_id in campaign.creator_ids:
            self._conn.execute(
                "INSERT OR IGNORE INTO campaign_creators (campaign_id, creator_id) VALUES (?, ?)",
                (campaign.id, creator_id),
            )
        self._conn.commit()

    def save_creator(
        self,
        creator: Creator,
        platform: str = "instagram",
        audience_fit_score: float = 0.0,
    ) -> None:
        """Insert or replace a creator profile."""
        self._conn.execute(
            """
            INSERT OR REPLACE INTO creators (
                id, name, email, phone, platform, followers,
                engagement_rate, relevance_score, audience_fit_score
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                creator.id,
                creator.name,
                creator.email,
                creator.phone,
                platform,
                creator.metrics.followers,
                creator.metrics.engagement_rate,
                creator.metrics.relevance_score,
                audience_fit_score,
            ),
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_campaign(self, campaign_id: str) -> CampaignDetail:
        """Load a campaign with the ids of its associated creators.

        Raises:
            RecordNotFoundError: If the campaign does not exist.
        """
        row = self._fetch_one("SELECT * FROM campaigns WHERE id = ?", (campaign_id,))
        if row is None:
            raise RecordNotFoundError("campaign", campaign_id)

        cursor = self._conn.execute(
            "SELECT creator_id FROM campaign_creators WHERE campaign_id = ? "
            "ORDER BY added_at, creator_id",
            (campaign_id,),
        )
        creator_ids = [r[0] for r in cursor.fetchall()]

        return CampaignDetail(
            id=row["id"],
            name=row["name"],
            brand=row["brand"],
            status=row["status"],
            description=row["description"],
            deliverables=row["deliverables"],
            timeline=row["timeline"],
            budget=Decimal(row["budget"]) if row["budget"] is not None else None,
            user_id=row["user_id"],
            settings=json.loads(row["settings_json"] or "{}"),
            creator_ids=creator_ids,
        )

    def get_creator(self, creator_id: str) -> Creator:
        """Load one creator projection.

        Raises:
            RecordNotFoundError: If the creator does not exist.
        """
        row = self._fetch_one("SELECT * FROM creators WHERE id = ?", (creator_id,))
        if row is None:
            raise RecordNotFoundError("creator", creator_id)
        return _row_to_creator(row)

    def search_creators(self, criteria: CreatorSearchCriteria) -> list[Creator]:
        """Return creators matching *criteria*.

        Explicit ``creator_ids`` are returned in the order given, and an id
        missing from the directory is an error.  Otherwise the platform,
        follower and engagement filters apply, ordered by follower count.

        Raises:
            RecordNotFoundError: If an explicit creator id does not exist.
        """
        if criteria.creator_ids:
            return [self.get_creator(creator_id) for creator_id in criteria.creator_ids]

        clauses = ["followers >= ?", "engagement_rate <= ?"]
        params: list[Any] = [criteria.min_followers, criteria.max_engagement_rate]
        if criteria.platform:
            clauses.append("platform = ?")
            params.append(criteria.platform)
        params.append(criteria.limit)

        rows = self._fetch_all(
            f"SELECT * FROM creators WHERE {' AND '.join(clauses)} "
            "ORDER BY followers DESC, id LIMIT ?",
            params,
        )
        return [_row_to_creator(row) for row in rows]

    def get_analytics(self, creator_id: str) -> AnalyticsSnapshot:
        """Return the creator's current performance metrics.

        Raises:
            RecordNotFoundError: If the creator does not exist.
        """
        row = self._fetch_one("SELECT * FROM creators WHERE id = ?", (creator_id,))
        if row is None:
            raise RecordNotFoundError("creator", creator_id)
        return AnalyticsSnapshot(
            creator_id=row["id"],
            followers=row["followers"],
            engagement_rate=row["engagement_rate"],
            audience_fit_score=row["audience_fit_score"],
            platform=row["platform"],
        )

    def list_contracts(self, campaign_id: str) -> list[ContractRef]:
        """Return the contracts drafted for a campaign, oldest first."""
        rows = self._fetch_all(
            "SELECT * FROM contracts WHERE campaign_id = ? ORDER BY created_at, rowid",
            [campaign_id],
        )
        return [
            ContractRef(
                id=row["id"],
                creator_id=row["creator_id"],
                campaign_id=row["campaign_id"],
                status=row["status"],
                terms=ContractTerms.model_validate_json(row["contract_data"]),
            )
            for row in rows
        ]

    def list_outreach(self, campaign_id: str) -> list[dict[str, Any]]:
        """Return the recorded outreach dispatches for a campaign, oldest first."""
        return self._fetch_all(
            "SELECT * FROM outreach_messages WHERE campaign_id = ? ORDER BY id",
            [campaign_id],
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def update_campaign(self, campaign_id: str, patch: dict[str, Any]) -> None:
        """Apply a partial update to a campaign record.

        Raises:
            ValueError: If *patch* is empty or names a field that may not be patched.
            RecordNotFoundError: If the campaign does not exist.
        """
        if not patch:
            raise ValueError("campaign patch is empty")
        unknown = set(patch) - UPDATABLE_CAMPAIGN_FIELDS
        if unknown:
            raise ValueError(f"campaign fields cannot be patched: {sorted(unknown)}")

        columns = sorted(patch)
        assignments = ", ".join(f"{column} = ?" for column in columns)
        params = [patch[column] for column in columns]
        cursor = self._conn.execute(
            f"UPDATE campaigns SET {assignments}, "  # noqa: S608
            "updated_at = strftime('%Y-%m-%dT%H:%M:%SZ', 'now') WHERE id = ?",
            [*params, campaign_id],
        )
        self._conn.commit()
        if cursor.rowcount == 0:
            raise RecordNotFoundError("campaign", campaign_id)

    def insert_contract(
        self, campaign_id: str, creator_id: str, terms: ContractTerms
    ) -> ContractRef:
        """Insert a DRAFT contract for a creator on a campaign.

        Raises:
            RecordNotFoundError: If the campaign or the creator does not exist.
        """
        self.get_campaign(campaign_id)
        self.get_creator(creator_id)

        contract = ContractRef(
            id=str(uuid.uuid4()),
            creator_id=creator_id,
            campaign_id=campaign_id,
            status="DRAFT",
            terms=terms,
        )
        self._conn.execute(
            "INSERT INTO contracts (id, campaign_id, creator_id, status, contract_data) "
            "VALUES (?, ?, ?, ?, ?)",
            (contract.id, campaign_id, creator_id, contract.status, terms.model_dump_json()),
        )
        self._conn.commit()
        return contract

    def record_outreach(
        self,
        campaign_id: str,
        creator_id: str,
        channel: str,
        message: str,
        contract_id: str | None = None,
        external_ref: str | None = None,
    ) -> int:
        """Record an accepted outreach dispatch.

        Returns:
            The row ID of the inserted record.
        """
        cursor = self._conn.execute(
            """
            INSERT INTO outreach_messages (
                campaign_id, creator_id, contract_id, channel, message, external_ref
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (campaign_id, creator_id, contract_id, channel, message, external_ref),
        )
        self._conn.commit()
        return cursor.lastrowid  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fetch_one(self, query: str, params: tuple[Any, ...]) -> dict[str, Any] | None:
        rows = self._fetch_all(query, list(params))
        return rows[0] if rows else None

    def _fetch_all(self, query: str, params: list[Any]) -> list[dict[str, Any]]:
        prev_factory = self._conn.row_factory
        self._conn.row_factory = sqlite3.Row
        try:
            rows = self._conn.execute(query, params).fetchall()
        finally:
            self._conn.row_factory = prev_factory
        return [dict(row) for row in rows]


def _row_to_creator(row: dict[str, Any]) -> Creator:
    return Creator(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        phone=row["phone"],
        metrics=CreatorMetrics(
            followers=row["followers"],
            engagement_rate=row["engagement_rate"],
            relevance_score=row["relevance_score"],
        ),
    )
