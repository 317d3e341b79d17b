import asyncio
import os
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Request

from core.config import logger, FIREBASE_WEB_API_KEY, IDENTITY_TOOLKIT_BASE


firebase_enabled = False
try:
    import firebase_admin
    from firebase_admin import auth as fb_auth, credentials as fb_credentials

    FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID", "")
    FIREBASE_SERVICE_ACCOUNT_JSON = os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON", "")
    FIREBASE_SERVICE_ACCOUNT_JSON_PATH = (os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH", "") or "").strip().strip('"').strip("'")

    if not getattr(firebase_admin, "_apps", []):
        if FIREBASE_SERVICE_ACCOUNT_JSON:
            import json
            cred = fb_credentials.Certificate(json.loads(FIREBASE_SERVICE_ACCOUNT_JSON))
            firebase_admin.initialize_app(cred, {"projectId": FIREBASE_PROJECT_ID} if FIREBASE_PROJECT_ID else None)
        elif FIREBASE_SERVICE_ACCOUNT_JSON_PATH and os.path.isfile(FIREBASE_SERVICE_ACCOUNT_JSON_PATH):
            from os import environ
            if not os.getenv("GOOGLE_APPLICATION_CREDENTIALS"):
                environ["GOOGLE_APPLICATION_CREDENTIALS"] = FIREBASE_SERVICE_ACCOUNT_JSON_PATH
            cred = fb_credentials.Certificate(FIREBASE_SERVICE_ACCOUNT_JSON_PATH)
            firebase_admin.initialize_app(cred, {"projectId": FIREBASE_PROJECT_ID} if FIREBASE_PROJECT_ID else None)
        else:
            firebase_admin.initialize_app(options={"projectId": FIREBASE_PROJECT_ID} if FIREBASE_PROJECT_ID else None)
    firebase_enabled = True
    logger.info("Firebase Admin initialized")
except Exception as ex:
    logger.warning(f"Firebase Admin not initialized: {ex}")
    fb_auth = None  # type: ignore


class AuthProviderError(Exception):
    """Error raised at the auth provider boundary, carrying a provider code like 'auth/wrong-password'."""

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or code)
        self.code = code
        self.message = message or code


@dataclass
class Principal:
    uid: str
    email: str
    display_name: Optional[str] = None
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None


# Identity Toolkit REST error messages -> client SDK style codes
_REST_ERROR_CODES = {
    "EMAIL_EXISTS": "auth/email-already-in-use",
    "EMAIL_NOT_FOUND": "auth/user-not-found",
    "INVALID_PASSWORD": "auth/wrong-password",
    "INVALID_LOGIN_CREDENTIALS": "auth/invalid-credential",
    "INVALID_EMAIL": "auth/invalid-email",
    "USER_DISABLED": "auth/user-disabled",
    "WEAK_PASSWORD": "auth/weak-password",
    "OPERATION_NOT_ALLOWED": "auth/operation-not-allowed",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "auth/too-many-requests",
    "API_KEY_INVALID": "auth/invalid-api-key",
}


def _rest_error(resp: httpx.Response) -> AuthProviderError:
    try:
        raw = str(((resp.json() or {}).get("error") or {}).get("message") or "")
    except Exception:
        raw = (resp.text or "")[:500]
    # Messages look like "WEAK_PASSWORD : Password should be at least 6 characters"
    key = raw.split(":", 1)[0].strip().split(" ", 1)[0]
    if "API key not valid" in raw:
        key = "API_KEY_INVALID"
    return AuthProviderError(_REST_ERROR_CODES.get(key, f"auth/{key.lower().replace('_', '-')}" if key else "auth/internal-error"), raw)


class AuthProvider:
    """Boundary to the hosted auth provider. Components receive an instance instead of importing the SDK."""

    async def create_credential(self, email: str, password: str, display_name: Optional[str] = None) -> Principal:
        raise NotImplementedError

    async def authenticate(self, email: str, password: str) -> Principal:
        raise NotImplementedError

    async def send_password_reset(self, email: str) -> None:
        raise NotImplementedError

    async def sign_out(self, uid: str) -> None:
        raise NotImplementedError

    async def get_custom_claims(self, uid: str) -> dict:
        raise NotImplementedError

    def verify_request(self, request: Request) -> Optional[Principal]:
        raise NotImplementedError


class FirebaseAuthProvider(AuthProvider):
    """Firebase Admin SDK for credential management, Identity Toolkit REST for password sign-in."""

    def _require_admin_sdk(self):
        if not firebase_enabled or not fb_auth:
            raise AuthProviderError("auth/internal-error", "auth unavailable")

    async def create_credential(self, email: str, password: str, display_name: Optional[str] = None) -> Principal:
        self._require_admin_sdk()
        try:
            user = await asyncio.to_thread(fb_auth.create_user, email=email, password=password, display_name=display_name)
        except fb_auth.EmailAlreadyExistsError as ex:
            raise AuthProviderError("auth/email-already-in-use", str(ex))
        except ValueError as ex:
            msg = str(ex)
            code = "auth/weak-password" if "password" in msg.lower() else "auth/invalid-email"
            raise AuthProviderError(code, msg)
        except Exception as ex:
            logger.warning(f"[auth] create_user failed for {email}: {ex}")
            raise AuthProviderError(getattr(ex, "code", None) or "auth/internal-error", str(ex))
        return Principal(uid=user.uid, email=(user.email or email).lower(), display_name=user.display_name)

    async def authenticate(self, email: str, password: str) -> Principal:
        if not FIREBASE_WEB_API_KEY:
            raise AuthProviderError("auth/invalid-api-key", "FIREBASE_WEB_API_KEY is not configured")
        url = f"{IDENTITY_TOOLKIT_BASE}/accounts:signInWithPassword?key={FIREBASE_WEB_API_KEY}"
        try:
            async with httpx.AsyncClient(timeout=15.0) as client:
                resp = await client.post(url, json={"email": email, "password": password, "returnSecureToken": True})
        except httpx.HTTPError as ex:
            raise AuthProviderError("auth/network-request-failed", str(ex))
        if resp.status_code >= 300:
            raise _rest_error(resp)
        data = resp.json()
        return Principal(
            uid=data.get("localId") or "",
            email=(data.get("email") or email).lower(),
            display_name=data.get("displayName") or None,
            id_token=data.get("idToken"),
            refresh_token=data.get("refreshToken"),
        )

    async def send_password_reset(self, email: str) -> None:
        if not FIREBASE_WEB_API_KEY:
            raise AuthProviderError("auth/invalid-api-key", "FIREBASE_WEB_API_KEY is not configured")
        url = f"{IDENTITY_TOOLKIT_BASE}/accounts:sendOobCode?key={FIREBASE_WEB_API_KEY}"
        try:
            async with httpx.AsyncClient(timeout=15.0) as client:
                resp = await client.post(url, json={"requestType": "PASSWORD_RESET", "email": email})
        except httpx.HTTPError as ex:
            raise AuthProviderError("auth/network-request-failed", str(ex))
        if resp.status_code >= 300:
            raise _rest_error(resp)

    async def sign_out(self, uid: str) -> None:
        if not firebase_enabled or not fb_auth or not uid:
            return
        try:
            await asyncio.to_thread(fb_auth.revoke_refresh_tokens, uid)
        except Exception as ex:
            logger.warning(f"[auth] revoke_refresh_tokens failed for {uid}: {ex}")

    async def get_custom_claims(self, uid: str) -> dict:
        self._require_admin_sdk()
        user = await asyncio.to_thread(fb_auth.get_user, uid)
        return dict(getattr(user, "custom_claims", None) or {})

    def verify_request(self, request: Request) -> Optional[Principal]:
        auth_header = request.headers.get("authorization") or request.headers.get("Authorization")
        if not auth_header or not auth_header.lower().startswith("bearer "):
            return None
        token = auth_header.split(" ", 1)[1].strip()
        if not token:
            return None
        if not firebase_enabled or not fb_auth:
            return None
        try:
            # check_revoked so a forced sign-out ends the session immediately
            decoded = fb_auth.verify_id_token(token, check_revoked=True)
        except Exception as ex:
            logger.warning(f"Token verification failed: {ex}")
            return None
        return Principal(
            uid=decoded.get("uid") or "",
            email=(decoded.get("email") or "").lower(),
            display_name=decoded.get("name"),
            id_token=token,
        )


_provider: AuthProvider = FirebaseAuthProvider()


def get_auth_provider() -> AuthProvider:
    """FastAPI dependency; tests override it through app.dependency_overrides."""
    return _provider


async def get_principal(request: Request, provider: AuthProvider) -> Optional[Principal]:
    try:
        # verify_id_token may call out to check revocation
        return await asyncio.to_thread(provider.verify_request, request)
    except Exception as ex:
        logger.warning(f"get_principal failed: {ex}")
        return None
