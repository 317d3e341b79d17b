"""
Auth provider error codes -> user-facing text (English and Arabic).
Unknown codes fall back to the provider's raw message, then to a generic message.
"""
from typing import Optional

_MESSAGES = {
    "en": {
        "auth/invalid-credential": "Invalid credentials. Check your email and password.",
        "auth/user-not-found": "No account found with this email.",
        "auth/wrong-password": "Incorrect password.",
        "auth/invalid-email": "Invalid email address.",
        "auth/email-already-in-use": "This email is already registered.",
        "auth/weak-password": "Password is too weak.",
        "auth/operation-not-allowed": "Email/password sign-in is disabled.",
        "auth/network-request-failed": "Network error. Please try again.",
        "auth/invalid-api-key": "Auth API key is invalid or missing.",
        "auth/too-many-requests": "Too many attempts. Please try again later.",
        "auth/user-disabled": "This account has been disabled.",
    },
    "ar": {
        "auth/invalid-credential": "بيانات الدخول غير صحيحة. تحققي من البريد وكلمة المرور.",
        "auth/user-not-found": "لا يوجد حساب بهذا البريد.",
        "auth/wrong-password": "كلمة المرور غير صحيحة.",
        "auth/invalid-email": "صيغة البريد غير صحيحة.",
        "auth/email-already-in-use": "البريد مستخدم بالفعل.",
        "auth/weak-password": "كلمة المرور ضعيفة.",
        "auth/operation-not-allowed": "تسجيل الدخول بالبريد غير مفعّل.",
        "auth/network-request-failed": "مشكلة في الشبكة. حاولي مرة أخرى.",
        "auth/invalid-api-key": "مفتاح المصادقة غير صحيح أو غير موجود.",
        "auth/too-many-requests": "محاولات كثيرة. حاولي لاحقاً.",
        "auth/user-disabled": "تم تعطيل هذا الحساب.",
    },
}

_GENERIC = {"en": "Something went wrong", "ar": "حدث خطأ"}


def pick_lang(accept_language: Optional[str]) -> str:
    return "ar" if (accept_language or "").strip().lower().startswith("ar") else "en"


def auth_error_message(code: Optional[str], raw_message: Optional[str] = None, lang: str = "en") -> str:
    table = _MESSAGES.get(lang) or _MESSAGES["en"]
    text = table.get((code or "").strip())
    if text:
        return text
    if raw_message and raw_message.strip():
        return raw_message.strip()
    return _GENERIC.get(lang, _GENERIC["en"])
