import os
import logging
from dotenv import load_dotenv
from botocore.client import Config as BotoConfig
import boto3

# Load .env from project root
try:
    load_dotenv(dotenv_path=os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".env")))
except Exception:
    try:
        load_dotenv()
    except Exception:
        pass


def _env_list(name: str) -> list[str]:
    raw = os.getenv(name, "") or ""
    return [e.strip().lower() for e in raw.split(",") if e.strip()]


# Object storage (Cloudflare R2, S3 compatible)
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID", "")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID", "")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY", "")
R2_BUCKET = os.getenv("R2_BUCKET", "")
R2_CUSTOM_DOMAIN = (os.getenv("R2_CUSTOM_DOMAIN", "") or "").strip().strip('"').strip("'").strip('`')

# Payments (Dodo)
DODO_API_BASE = os.getenv("DODO_API_BASE", "https://test.dodopayments.com").rstrip("/")
DODO_API_KEY = os.getenv("DODO_API_KEY") or os.getenv("DODO_PAYMENTS_API_KEY", "")
# Single pay-what-you-want product used to charge arbitrary cart totals
DODO_ADHOC_PRODUCT_ID = (os.getenv("DODO_ADHOC_PRODUCT_ID", "") or "").strip()
DODO_WEBHOOK_SECRET = (
    os.getenv("DODO_WEBHOOK_SECRET")
    or os.getenv("DODO_PAYMENTS_WEBHOOK_KEY")
    or ""
).strip()

# Auth provider (Firebase)
FIREBASE_WEB_API_KEY = (os.getenv("FIREBASE_WEB_API_KEY", "") or "").strip()
IDENTITY_TOOLKIT_BASE = os.getenv("IDENTITY_TOOLKIT_BASE", "https://identitytoolkit.googleapis.com/v1").rstrip("/")

# Mail
MAIL_FROM = os.getenv("MAIL_FROM", "Abaya Store <no-reply@your-domain.com>")
SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASS = os.getenv("SMTP_PASS", "")

FRONTEND_ORIGIN = (os.getenv("FRONTEND_ORIGIN", "http://localhost:3000").split(",")[0].strip() or "http://localhost:3000").rstrip("/")
STORE_CURRENCY = (os.getenv("STORE_CURRENCY", "USD") or "USD").strip().upper()

# Owner allow-list: every permission is implied for these principals
ADMIN_EMAILS = _env_list("ADMIN_EMAILS")

# Storefront rules
FREE_DELIVERY_THRESHOLD = int(os.getenv("FREE_DELIVERY_THRESHOLD", "3"))
SELLER_DOCUMENT_MAX_MB = int(os.getenv("SELLER_DOCUMENT_MAX_MB", "5"))
SELLER_DOCUMENT_MAX_BYTES = SELLER_DOCUMENT_MAX_MB * 1024 * 1024
SELLER_REGISTRATION_TIMEOUT_SEC = float(os.getenv("SELLER_REGISTRATION_TIMEOUT_SEC", "20"))
SELLER_EMAIL_DOMAIN = (os.getenv("SELLER_EMAIL_DOMAIN", "seller.local") or "seller.local").strip().lower()
SELLER_APPROVED_COOKIE = "seller_approved"

# Logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
logger = logging.getLogger("storefront")

# Local fallback for object storage when R2 is not configured
STATIC_DIR = os.getenv("STATIC_DIR") or os.path.join(os.path.dirname(__file__), "..", "static")
STATIC_DIR = os.path.abspath(STATIC_DIR)

# S3/R2 client for storage operations
s3 = None
s3_presign_client = None  # Separate client for presigned URLs with custom domain

if R2_ACCOUNT_ID and R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY:
    s3 = boto3.resource(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        config=BotoConfig(signature_version="s3v4"),
        region_name="auto",
    )

    # Normalize custom domain to remove protocol if mistakenly included
    _CUSTOM = R2_CUSTOM_DOMAIN.replace("https://", "").replace("http://", "") if R2_CUSTOM_DOMAIN else ""
    if _CUSTOM:
        s3_presign_client = boto3.client(
            "s3",
            endpoint_url=f"https://{_CUSTOM}",
            aws_access_key_id=R2_ACCESS_KEY_ID,
            aws_secret_access_key=R2_SECRET_ACCESS_KEY,
            config=BotoConfig(signature_version="s3v4"),
            region_name="auto",
        )
