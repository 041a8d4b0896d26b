"""
Centralised application settings

KRA Assist backend settings, loaded from environment / .env
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings"""

    # API Settings
    API_TITLE: str = "KRA Assist API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Point of sale, invoicing and KRA compliance API"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database / Supabase
    DATABASE_URL: str
    SUPABASE_URL: str
    SUPABASE_ANON_KEY: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str
    SUPABASE_JWT_SECRET: str

    # Public URLs: the SPA (redirect target after hosted checkout) and this API
    APP_PUBLIC_URL: str = "http://localhost:5173"
    API_PUBLIC_URL: str = "http://localhost:8000"

    # CORS - Can be string (comma-separated) or JSON array
    ALLOWED_ORIGINS: Optional[str] = "http://localhost:5173,http://localhost:3000"

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into list"""
        if not self.ALLOWED_ORIGINS:
            return ["http://localhost:5173"]

        import json
        try:
            origins = json.loads(self.ALLOWED_ORIGINS)
            if isinstance(origins, list):
                return origins
        except (json.JSONDecodeError, ValueError):
            pass

        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # M-Pesa Daraja (per-user credentials live in profiles)
    MPESA_BASE_URL: str = "https://sandbox.safaricom.co.ke"
    MPESA_CALLBACK_URL: str = ""

    # KRA GavaConnect / eTIMS
    KRA_API_BASE_URL: str = "https://api.kra.go.ke/v1"
    ETIMS_API_BASE_URL: str = "https://etims.kra.go.ke/api/v1"

    # Paystack / Stripe
    PAYSTACK_API_URL: str = "https://api.paystack.co"
    PAYSTACK_CALLBACK_URL: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""

    # Transactional email (Resend)
    RESEND_API_KEY: str = ""
    RESEND_API_URL: str = "https://api.resend.com"
    EMAIL_FROM: str = "KRA Assist <onboarding@resend.dev>"

    # AI image generation gateway
    AI_GATEWAY_URL: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    AI_GATEWAY_API_KEY: str = ""
    AI_IMAGE_MODEL: str = "google/gemini-2.5-flash-image-preview"
    PRODUCT_IMAGE_BUCKET: str = "products"

    def mpesa_callback_url(self) -> str:
        """Callback URL handed to Daraja on STK push"""
        if self.MPESA_CALLBACK_URL:
            return self.MPESA_CALLBACK_URL
        return f"{self.API_PUBLIC_URL.rstrip('/')}/api/v1/payments/mpesa/callback"

    def paystack_callback_url(self) -> str:
        """Default Paystack redirect callback"""
        if self.PAYSTACK_CALLBACK_URL:
            return self.PAYSTACK_CALLBACK_URL
        return f"{self.API_PUBLIC_URL.rstrip('/')}/api/v1/payments/paystack/callback"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
