"""
Access Review Service Data Repository

Data access layer - PostgreSQL (Async)

Each campaign is stored as one JSONB document holding the whole aggregate
(subjects and their items included), next to a handful of columns copied
out of it for filtering and sorting. The revision column provides
optimistic concurrency: every write names the revision it was based on and
only succeeds if that is still the stored one.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from core.config import AppConfig, get_settings
from core.postgres_client import PostgresClientWrapper
from .models import AccessReviewCampaign, CampaignQueryRequest
from .protocols import CampaignNotFoundError, ConcurrencyConflictError

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "created_at": "created_at",
    "name": "name",
    "system_name": "system_name",
    "status": "status",
    "period_end": "period_end",
}


class AccessReviewRepository:
    """Access review campaign document store - PostgreSQL (Async)"""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        db: Optional[PostgresClientWrapper] = None,
    ):
        config = config or get_settings()
        self.db = db or PostgresClientWrapper(
            service_name=config.access_review.event_source,
            config=config.infrastructure,
        )
        self.schema = config.access_review.postgres_schema

        # Table names
        self.campaigns_table = "campaigns"

    @property
    def _table(self) -> str:
        return f"{self.schema}.{self.campaigns_table}"

    async def initialize(self):
        """Connect and make sure the schema exists"""
        await self.db.connect()
        await self.ensure_schema()
        logger.info("Access review repository initialized with PostgreSQL")

    async def close(self):
        """Close database connection"""
        await self.db.close()
        logger.info("Access review repository database connection closed")

    async def health_check(self) -> bool:
        """Check repository health"""
        return await self.db.health_check()

    async def ensure_schema(self) -> None:
        await self.db.execute(f"CREATE SCHEMA IF NOT EXISTS {self.schema}")
        await self.db.execute(f'''
            CREATE TABLE IF NOT EXISTS {self._table} (
                campaign_id TEXT PRIMARY KEY,
                tenant_id TEXT NOT NULL,
                name TEXT NOT NULL,
                description TEXT,
                system_name TEXT NOT NULL,
                environment TEXT NOT NULL,
                review_type TEXT NOT NULL,
                status TEXT NOT NULL,
                assigned_reviewer_id TEXT,
                period_end TIMESTAMPTZ NOT NULL,
                document JSONB NOT NULL,
                revision INTEGER NOT NULL,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL
            )
        ''')
        await self.db.execute(
            f"CREATE INDEX IF NOT EXISTS idx_{self.campaigns_table}_tenant_status "
            f"ON {self._table} (tenant_id, status)"
        )
        await self.db.execute(
            f"CREATE INDEX IF NOT EXISTS idx_{self.campaigns_table}_tenant_created "
            f"ON {self._table} (tenant_id, created_at DESC)"
        )

    # ====================
    # Campaign CRUD
    # ====================

    @staticmethod
    def _columns(campaign: AccessReviewCampaign) -> List[Any]:
        return [
            campaign.name,
            campaign.description,
            campaign.system_name,
            campaign.environment.value,
            campaign.review_type.value,
            campaign.status.value,
            campaign.assigned_reviewer_id,
            campaign.period_end,
            campaign.model_dump(mode="json", exclude={"revision"}),
        ]

    @staticmethod
    def _row_to_campaign(row: Dict[str, Any]) -> AccessReviewCampaign:
        return AccessReviewCampaign.model_validate({**row["document"], "revision": row["revision"]})

    async def save_campaign(self, campaign: AccessReviewCampaign) -> AccessReviewCampaign:
        """Insert a new campaign at revision 1"""
        try:
            stored = campaign.model_copy(update={"revision": 1})
            query = f'''
                INSERT INTO {self._table} (
                    name, description, system_name, environment, review_type,
                    status, assigned_reviewer_id, period_end, document,
                    campaign_id, tenant_id, revision, created_at, updated_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, 1, $12, $13)
            '''
            await self.db.execute(query, self._columns(stored) + [
                stored.campaign_id,
                stored.tenant_id,
                stored.created_at,
                stored.updated_at,
            ])
            logger.debug(f"Inserted campaign {stored.campaign_id}")
            return stored

        except Exception as e:
            logger.error(f"Error saving campaign: {e}")
            raise

    async def get_campaign(
        self, tenant_id: str, campaign_id: str
    ) -> Optional[AccessReviewCampaign]:
        """Get campaign by tenant and ID"""
        try:
            row = await self.db.query_row(
                f"SELECT document, revision FROM {self._table} "
                f"WHERE tenant_id = $1 AND campaign_id = $2",
                [tenant_id, campaign_id],
            )
            return self._row_to_campaign(row) if row else None

        except Exception as e:
            logger.error(f"Error getting campaign {campaign_id}: {e}")
            raise

    async def _current_revision(self, tenant_id: str, campaign_id: str) -> Optional[int]:
        return await self.db.query_value(
            f"SELECT revision FROM {self._table} WHERE tenant_id = $1 AND campaign_id = $2",
            [tenant_id, campaign_id],
        )

    async def _raise_write_miss(
        self, tenant_id: str, campaign_id: str, expected_revision: int
    ) -> None:
        actual = await self._current_revision(tenant_id, campaign_id)
        if actual is None:
            raise CampaignNotFoundError(f"Campaign not found: {campaign_id}")
        raise ConcurrencyConflictError(
            f"Campaign {campaign_id} was modified concurrently "
            f"(expected revision {expected_revision}, found {actual})",
            expected_revision=expected_revision,
            actual_revision=actual,
        )

    async def update_campaign(
        self, campaign: AccessReviewCampaign, expected_revision: int
    ) -> AccessReviewCampaign:
        """Replace the stored aggregate if its revision still matches"""
        stored = campaign.model_copy(update={"revision": expected_revision + 1})
        query = f'''
            UPDATE {self._table} SET
                name = $1, description = $2, system_name = $3, environment = $4,
                review_type = $5, status = $6, assigned_reviewer_id = $7,
                period_end = $8, document = $9,
                revision = revision + 1, updated_at = $10
            WHERE tenant_id = $11 AND campaign_id = $12 AND revision = $13
            RETURNING revision
        '''
        params = self._columns(stored) + [
            stored.updated_at or datetime.now(timezone.utc),
            stored.tenant_id,
            stored.campaign_id,
            expected_revision,
        ]
        try:
            row = await self.db.query_row(query, params)
        except Exception as e:
            logger.error(f"Error updating campaign {campaign.campaign_id}: {e}")
            raise

        if row is None:
            await self._raise_write_miss(stored.tenant_id, stored.campaign_id, expected_revision)
        return stored

    async def delete_campaign(
        self, tenant_id: str, campaign_id: str, expected_revision: int
    ) -> bool:
        """Hard delete a campaign if its revision still matches"""
        try:
            status = await self.db.execute(
                f"DELETE FROM {self._table} "
                f"WHERE tenant_id = $1 AND campaign_id = $2 AND revision = $3",
                [tenant_id, campaign_id, expected_revision],
            )
        except Exception as e:
            logger.error(f"Error deleting campaign {campaign_id}: {e}")
            raise

        if status.endswith(" 0"):
            await self._raise_write_miss(tenant_id, campaign_id, expected_revision)
        return True

    async def list_campaigns(
        self, tenant_id: str, query: CampaignQueryRequest
    ) -> Tuple[List[AccessReviewCampaign], int]:
        """List campaigns with filters"""
        try:
            conditions = ["tenant_id = $1"]
            params: List[Any] = [tenant_id]
            param_count = 1

            if query.status:
                param_count += 1
                conditions.append(f"status = ${param_count}")
                params.append(query.status.value)

            if query.system_name:
                param_count += 1
                conditions.append(f"system_name ILIKE ${param_count}")
                params.append(f"%{query.system_name}%")

            if query.environment:
                param_count += 1
                conditions.append(f"environment = ${param_count}")
                params.append(query.environment.value)

            if query.review_type:
                param_count += 1
                conditions.append(f"review_type = ${param_count}")
                params.append(query.review_type.value)

            if query.assigned_reviewer_id:
                param_count += 1
                conditions.append(f"assigned_reviewer_id = ${param_count}")
                params.append(query.assigned_reviewer_id)

            if query.period_end_from:
                param_count += 1
                conditions.append(f"period_end >= ${param_count}")
                params.append(query.period_end_from)

            if query.period_end_to:
                param_count += 1
                conditions.append(f"period_end <= ${param_count}")
                params.append(query.period_end_to)

            if query.search:
                param_count += 1
                conditions.append(
                    f"(name ILIKE ${param_count} OR system_name ILIKE ${param_count} "
                    f"OR description ILIKE ${param_count})"
                )
                params.append(f"%{query.search}%")

            where_clause = " AND ".join(conditions)
            sort_column = SORT_COLUMNS[query.sort_by]
            order_direction = "DESC" if query.sort_order == "desc" else "ASC"

            total = await self.db.query_value(
                f"SELECT COUNT(*) FROM {self._table} WHERE {where_clause}", params
            )

            rows = await self.db.query(
                f'''
                SELECT document, revision FROM {self._table}
                WHERE {where_clause}
                ORDER BY {sort_column} {order_direction}, campaign_id
                LIMIT ${param_count + 1} OFFSET ${param_count + 2}
                ''',
                params + [query.limit, query.offset],
            )

            return [self._row_to_campaign(row) for row in rows], int(total or 0)

        except Exception as e:
            logger.error(f"Error listing campaigns: {e}")
            raise


__all__ = ["AccessReviewRepository"]
