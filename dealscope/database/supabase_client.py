from typing import Any, Dict, List, Optional, Sequence
import logging

from supabase import create_client, Client

from ..config import (
    CUSTOMER_CONFIG_TABLE,
    FETCH_PAGE_SIZE,
    LICENSES_TABLE,
    RECORDED_DEALS_TABLE,
)
from ..core.errors import ModelPackageError
from ..core.models import DealStatus, ModelPackage, RecordedDeal
from .credential_cache import CredentialCache

logger = logging.getLogger(__name__)

CLOSED_STATUSES = [DealStatus.WON.value, DealStatus.LOST.value]


class SupabaseClient:
    """Supabase access for tenant configuration, licenses and recorded deals"""

    def __init__(
        self,
        client: Optional[Client] = None,
        credential_cache: Optional[CredentialCache] = None,
    ):
        """Initialize Supabase client; an existing client may be injected"""
        self.credentials = credential_cache or CredentialCache()
        if client is None:
            url = self.credentials.get("SUPABASE_URL")
            key = self.credentials.get("SUPABASE_SERVICE_KEY")  # Service key for admin operations
            if not url or not key:
                raise ValueError("Supabase URL and key must be set in environment variables")
            client = create_client(url, key)
            logger.info("Supabase client initialized")
        self.client = client

    # ------------------------------------------------------------------
    # Licenses
    # ------------------------------------------------------------------
    def get_org_ids(self, customer_id: str) -> List[str]:
        """Org ids behind the customer's active licenses"""
        result = self.client.table(LICENSES_TABLE)\
            .select('org_id')\
            .eq('customer_id', customer_id)\
            .eq('status', 'active')\
            .execute()
        org_ids = []
        for row in result.data or []:
            org_id = row.get('org_id')
            if org_id and org_id not in org_ids:
                org_ids.append(org_id)
        return org_ids

    def list_licensed_customers(self) -> List[str]:
        """Customers holding at least one active license with an org id"""
        result = self.client.table(LICENSES_TABLE)\
            .select('customer_id, org_id')\
            .eq('status', 'active')\
            .execute()
        customers = []
        for row in result.data or []:
            customer_id = row.get('customer_id')
            if customer_id and row.get('org_id') and customer_id not in customers:
                customers.append(customer_id)
        return customers

    def get_customer_id_for_org(self, org_id: str) -> Optional[str]:
        result = self.client.table(LICENSES_TABLE)\
            .select('customer_id')\
            .eq('org_id', org_id)\
            .eq('status', 'active')\
            .limit(1)\
            .execute()
        if result.data:
            return result.data[0].get('customer_id')
        return None

    # ------------------------------------------------------------------
    # Recorded deals
    # ------------------------------------------------------------------
    def fetch_recorded_deals(
        self,
        org_ids: Sequence[str],
        closed_only: bool = False,
        columns: str = '*',
    ) -> List[RecordedDeal]:
        """Fetch all recorded deals for the given orgs, paging past the response cap"""
        if not org_ids:
            return []

        deals: List[RecordedDeal] = []
        offset = 0
        while True:
            query = self.client.table(RECORDED_DEALS_TABLE)\
                .select(columns)\
                .in_('org_id', list(org_ids))
            if closed_only:
                query = query.in_('status', CLOSED_STATUSES)
            result = query.range(offset, offset + FETCH_PAGE_SIZE - 1).execute()
            rows = result.data or []
            deals.extend(RecordedDeal.model_validate(row) for row in rows)
            if len(rows) < FETCH_PAGE_SIZE:
                break
            offset += FETCH_PAGE_SIZE

        logger.debug("Fetched %s recorded deals for %s orgs", len(deals), len(org_ids))
        return deals

    # ------------------------------------------------------------------
    # Customer config
    # ------------------------------------------------------------------
    def _get_config_value(self, customer_id: str, column: str) -> Any:
        result = self.client.table(CUSTOMER_CONFIG_TABLE)\
            .select(column)\
            .eq('customer_id', customer_id)\
            .limit(1)\
            .execute()
        if not result.data:
            return None
        return result.data[0].get(column)

    def get_algorithm_phase(self, customer_id: str) -> Optional[int]:
        value = self._get_config_value(customer_id, 'algorithm_phase')
        return None if value is None else int(value)

    def upsert_algorithm_phase(self, customer_id: str, phase: int) -> Dict:
        result = self.client.table(CUSTOMER_CONFIG_TABLE).upsert(
            {'customer_id': customer_id, 'algorithm_phase': phase},
            on_conflict='customer_id'
        ).execute()
        return {"success": True, "count": len(result.data or [])}

    def get_ml_model(self, customer_id: str) -> Optional[ModelPackage]:
        """Stored model package, or None when the tenant has never been trained"""
        document = self._get_config_value(customer_id, 'ml_model')
        if document is None:
            return None
        return ModelPackage.model_validate(document)

    def upsert_ml_model(self, customer_id: str, package: ModelPackage) -> Dict:
        """Write the whole package document in a single upsert"""
        weights = package.model.get("weights") or []
        if len(weights) != len(package.feature_names):
            raise ModelPackageError(
                f"featureNames length ({len(package.feature_names)}) != "
                f"model weights length ({len(weights)})"
            )
        result = self.client.table(CUSTOMER_CONFIG_TABLE).upsert(
            {'customer_id': customer_id, 'ml_model': package.to_document()},
            on_conflict='customer_id'
        ).execute()
        return {"success": True, "count": len(result.data or [])}
