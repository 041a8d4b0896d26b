"""
KRA Service
PIN verification, TCC status, nil returns and tax obligations through
the business's GavaConnect credentials
"""
import logging
from typing import Any, Dict, Optional

from app.connectors.errors import ConnectorAuthError, ConnectorUnavailableError
from app.connectors.kra_connector import KraConnector
from app.core.errors import (
    CredentialsNotConfiguredError,
    InvalidRequestError,
    ResourceNotFoundError,
    VendorAuthError,
    VendorUnavailableError,
)
from app.domain.profile import BusinessProfile
from app.repositories import ProfileRepository

logger = logging.getLogger(__name__)

MIN_PIN_LENGTH = 10
KRA_ACTIONS = ("verify_pin", "check_tcc", "nil_filing", "get_obligations")


class KraService:

    def __init__(self):
        self.profile_repo = ProfileRepository()

    def _load(self, user_id: str) -> BusinessProfile:
        profile = self.profile_repo.get_by_user_id(user_id)
        if not profile:
            raise ResourceNotFoundError("Profile", user_id)
        if not profile.has_kra_credentials:
            raise CredentialsNotConfiguredError(
                "KRA API credentials not configured",
                hint="Please add your KRA GavaConnect API key and secret in Settings",
            )
        return profile

    def _connector(self, profile: BusinessProfile) -> KraConnector:
        return KraConnector(profile.kra_api_key, profile.kra_api_secret)

    async def _token(self, connector: KraConnector) -> str:
        try:
            return await connector.get_access_token()
        except ConnectorAuthError:
            raise VendorAuthError(
                "Failed to authenticate with KRA",
                details={"message": "Invalid API credentials or KRA service unavailable"},
            )
        except ConnectorUnavailableError as e:
            raise VendorUnavailableError(e.message)

    @staticmethod
    def _pin_for(pin: Optional[str], profile: BusinessProfile, purpose: str) -> str:
        value = (pin or profile.kra_pin or "").strip()
        if not value:
            raise InvalidRequestError(f"No PIN provided for {purpose}")
        if len(value) < MIN_PIN_LENGTH:
            raise InvalidRequestError("Please enter a valid KRA PIN")
        return value.upper()

    async def verify_pin(self, user_id: str, pin: Optional[str] = None) -> Dict[str, Any]:
        profile = self._load(user_id)
        pin_to_verify = self._pin_for(pin, profile, "verification")
        connector = self._connector(profile)
        token = await self._token(connector)

        try:
            result = await connector.verify_pin(token, pin_to_verify)
        except ConnectorUnavailableError as e:
            raise VendorUnavailableError(e.message)
        return {"success": True, "data": result}

    async def check_tcc(self, user_id: str, pin: Optional[str] = None) -> Dict[str, Any]:
        profile = self._load(user_id)
        tcc_pin = self._pin_for(pin, profile, "TCC check")
        connector = self._connector(profile)
        token = await self._token(connector)

        try:
            result = await connector.check_tcc(token, tcc_pin)
        except ConnectorUnavailableError as e:
            raise VendorUnavailableError(e.message)
        return {"success": True, "data": result}

    async def file_nil_return(
        self,
        user_id: str,
        tax_period: Optional[str],
        obligation_type: Optional[str],
    ) -> Dict[str, Any]:
        profile = self._load(user_id)
        if not tax_period or not obligation_type:
            raise InvalidRequestError("Tax period and obligation type required for nil filing")

        connector = self._connector(profile)
        token = await self._token(connector)

        try:
            result = await connector.file_nil_return(
                token, profile.kra_pin, tax_period, obligation_type, profile.business_name
            )
        except ConnectorUnavailableError as e:
            raise VendorUnavailableError(e.message)
        return {"success": True, "data": result}

    async def get_obligations(self, user_id: str) -> Dict[str, Any]:
        profile = self._load(user_id)
        connector = self._connector(profile)
        token = await self._token(connector)

        try:
            result = await connector.get_obligations(token, profile.kra_pin)
        except ConnectorUnavailableError as e:
            raise VendorUnavailableError(e.message)
        return {"success": True, "data": result}

    async def run_action(
        self,
        user_id: str,
        action: str,
        pin: Optional[str] = None,
        tax_period: Optional[str] = None,
        obligation_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Dispatch one of the KRA actions by name"""
        logger.info(f"KRA API action: {action} for user: {user_id}")

        if action == "verify_pin":
            return await self.verify_pin(user_id, pin)
        if action == "check_tcc":
            return await self.check_tcc(user_id, pin)
        if action == "nil_filing":
            return await self.file_nil_return(user_id, tax_period, obligation_type)
        if action == "get_obligations":
            return await self.get_obligations(user_id)
        raise InvalidRequestError("Invalid action")
