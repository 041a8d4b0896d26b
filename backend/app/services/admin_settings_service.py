"""
Admin Settings Service
Platform configuration edited from the admin panel: payment gateways,
app settings, pricing plans, service offerings, page content and staff roles
"""
import json
import logging
from typing import Any, Dict, List, Optional

from app.core.errors import InvalidRequestError, ResourceNotFoundError
from app.domain.catalog import (
    PAYMENT_GATEWAY_KEY_PREFIX,
    AppSetting,
    PageContent,
    PageContentUpsert,
    PaymentGatewaySettings,
    PricingPlan,
    PricingPlanUpsert,
    ServiceOffering,
    ServiceOfferingUpsert,
    StaffMember,
)
from app.repositories import CatalogRepository, ProfileRepository
from app.services.notification_service import NOTIFICATION_KEY_PREFIX

logger = logging.getLogger(__name__)

MASK_PREFIX = "****"

# Keys managed through their own endpoints
RESERVED_SETTING_PREFIXES = (PAYMENT_GATEWAY_KEY_PREFIX, NOTIFICATION_KEY_PREFIX)


def is_reserved_setting(key: str) -> bool:
    return key.startswith(RESERVED_SETTING_PREFIXES)


class AdminSettingsService:

    def __init__(self):
        self.catalog_repo = CatalogRepository()
        self.profile_repo = ProfileRepository()

    # ========================================
    # Payment gateways
    # ========================================

    def _stored_gateway(self, gateway: str) -> Optional[PaymentGatewaySettings]:
        raw = self.catalog_repo.get_setting(f"{PAYMENT_GATEWAY_KEY_PREFIX}{gateway}")
        if not raw:
            return None
        return PaymentGatewaySettings.model_validate_json(raw)

    def get_payment_settings(self) -> List[PaymentGatewaySettings]:
        """Every configured gateway, secrets masked"""
        gateways = []
        for setting in self.catalog_repo.list_settings(prefix=PAYMENT_GATEWAY_KEY_PREFIX):
            if setting.value:
                gateways.append(PaymentGatewaySettings.model_validate_json(setting.value).masked())
        return gateways

    def update_payment_settings(self, admin_id: str, update: PaymentGatewaySettings) -> PaymentGatewaySettings:
        """
        Save one gateway's settings

        Values still carrying the mask (unchanged secrets echoed back by the
        admin form) keep their stored value.
        """
        stored = self._stored_gateway(update.gateway)
        merged = dict(update.settings)
        if stored:
            for key, value in update.settings.items():
                if isinstance(value, str) and value.startswith(MASK_PREFIX) and key in stored.settings:
                    merged[key] = stored.settings[key]

        to_save = update.model_copy(update={"settings": merged})
        self.catalog_repo.set_setting(to_save.storage_key, to_save.model_dump_json())

        logger.info(
            f"Admin {admin_id} updated {update.gateway} payment settings "
            f"(enabled={update.enabled}, environment={update.environment}, keys={sorted(merged)})"
        )
        return to_save.masked()

    # ========================================
    # App settings
    # ========================================

    def list_settings(self) -> List[AppSetting]:
        return [s for s in self.catalog_repo.list_settings() if not is_reserved_setting(s.key)]

    def update_setting(self, admin_id: str, key: str, value: Optional[str]) -> AppSetting:
        if is_reserved_setting(key):
            raise InvalidRequestError(f"Setting {key} cannot be edited directly")
        setting = self.catalog_repo.set_setting(key, value)
        logger.info(f"Admin {admin_id} updated setting {key}")
        return setting

    # ========================================
    # Pricing plans and services
    # ========================================

    def list_plans(self, active_only: bool = False) -> List[PricingPlan]:
        return self.catalog_repo.list_plans(active_only=active_only)

    def save_plan(self, admin_id: str, data: PricingPlanUpsert, plan_id: Optional[str] = None) -> PricingPlan:
        plan = self.catalog_repo.upsert_plan(data, plan_id)
        if not plan:
            raise ResourceNotFoundError("Pricing plan", plan_id)
        logger.info(f"Admin {admin_id} saved pricing plan {plan.plan_key}")
        return plan

    def delete_plan(self, admin_id: str, plan_id: str) -> None:
        if not self.catalog_repo.delete_plan(plan_id):
            raise ResourceNotFoundError("Pricing plan", plan_id)
        logger.info(f"Admin {admin_id} deleted pricing plan {plan_id}")

    def list_services(self, active_only: bool = False) -> List[ServiceOffering]:
        return self.catalog_repo.list_services(active_only=active_only)

    def save_service(
        self,
        admin_id: str,
        data: ServiceOfferingUpsert,
        service_id: Optional[str] = None,
    ) -> ServiceOffering:
        service = self.catalog_repo.upsert_service(data, service_id)
        if not service:
            raise ResourceNotFoundError("Service", service_id)
        logger.info(f"Admin {admin_id} saved service {service.title}")
        return service

    def delete_service(self, admin_id: str, service_id: str) -> None:
        if not self.catalog_repo.delete_service(service_id):
            raise ResourceNotFoundError("Service", service_id)
        logger.info(f"Admin {admin_id} deleted service {service_id}")

    # ========================================
    # Page content
    # ========================================

    def page_content(self, page_name: Optional[str] = None, active_only: bool = False) -> List[PageContent]:
        return self.catalog_repo.list_page_content(page_name, active_only=active_only)

    def page_content_map(self, page_name: str) -> Dict[str, Any]:
        """Active blocks of one public page keyed by section; JSON blocks are decoded"""
        content: Dict[str, Any] = {}
        for block in self.catalog_repo.list_page_content(page_name, active_only=True):
            value: Any = block.content_value
            if block.content_type == "json" and value:
                try:
                    value = json.loads(value)
                except ValueError:
                    logger.warning(f"Invalid JSON in page content {page_name}/{block.section_key}")
            content[block.section_key] = value
        return content

    def save_page_content(self, admin_id: str, data: PageContentUpsert) -> PageContent:
        block = self.catalog_repo.upsert_page_content(data)
        logger.info(f"Admin {admin_id} saved page content {data.page_name}/{data.section_key}")
        return block

    def delete_page_content(self, admin_id: str, content_id: str) -> None:
        if not self.catalog_repo.delete_page_content(content_id):
            raise ResourceNotFoundError("Page content", content_id)
        logger.info(f"Admin {admin_id} deleted page content {content_id}")

    # ========================================
    # Staff roles
    # ========================================

    def list_staff(self) -> List[StaffMember]:
        return self.profile_repo.list_staff()

    def assign_role(self, admin_id: str, user_id: str, role: str) -> None:
        if user_id == admin_id and role != "admin":
            raise InvalidRequestError("You cannot remove your own admin role")
        self.profile_repo.set_role(user_id, role)
        logger.info(f"Admin {admin_id} set role of {user_id} to {role}")

    def remove_role(self, admin_id: str, user_id: str) -> None:
        if user_id == admin_id:
            raise InvalidRequestError("You cannot remove your own admin role")
        if not self.profile_repo.remove_role(user_id):
            raise ResourceNotFoundError("Role", user_id)
        logger.info(f"Admin {admin_id} removed role of {user_id}")
