"""
core/messages.py -- Localized message catalog for problem details and field errors.

Every user-visible message is looked up by key. Problem `title` values are
fixed English reason phrases and never pass through this module; only the
`detail` text and per-field error messages are localized.

Locale is chosen from the Accept-Language header: the first listed language
whose primary tag has a catalog entry wins, otherwise the configured default.
"""

from __future__ import annotations

SUPPORTED_LOCALES: tuple[str, ...] = ("en", "ja")

MESSAGES: dict[str, dict[str, str]] = {
    # Problem details
    "error.bad_request": {
        "en": "Invalid request content.",
        "ja": "リクエストの内容が不正です。",
    },
    "error.unauthorized": {
        "en": "Login is required to perform this request.",
        "ja": "リクエストを実行するにはログインが必要です",
    },
    "error.bad_credentials": {
        "en": "Invalid username or password.",
        "ja": "ユーザー名またはパスワードが正しくありません",
    },
    "error.csrf_invalid": {
        "en": "CSRF token is invalid",
        "ja": "CSRFトークンが不正です",
    },
    "error.access_denied": {
        "en": "Access to the resource was denied.",
        "ja": "リソースへのアクセスが拒否されました",
    },
    "error.not_found": {
        "en": "The resource was not found.",
        "ja": "リソースが見つかりません",
    },
    # Field-level messages
    "missing": {
        "en": "This field is required.",
        "ja": "必須項目です。",
    },
    "invalid": {
        "en": "This value is invalid.",
        "ja": "値が不正です。",
    },
    "user_form.username": {
        "en": "Username must be 3 to 32 characters of lowercase letters, digits, '-', '_' or '.', "
        "starting and ending with a letter or digit.",
        "ja": "ユーザー名は3文字以上32文字以内の英小文字・数字・記号(-_.)で入力してください。",
    },
    "user_form.password": {
        "en": "Password must be between 10 and 255 characters.",
        "ja": "パスワードは10文字以上255文字以内で入力してください。",
    },
    "duplicate.user_form.username": {
        "en": "This username is already taken.",
        "ja": "ユーザー名は既に使用されています。",
    },
    "article_form.title": {
        "en": "Title must be between 1 and 255 characters.",
        "ja": "タイトルは1文字以上255文字以内で入力してください。",
    },
    "article_form.body": {
        "en": "Body is required.",
        "ja": "本文は必須です。",
    },
    "article_comment_form.body": {
        "en": "Comment body is required.",
        "ja": "コメント本文は必須です。",
    },
}


def resolve_locale(accept_language: str | None, default: str = "en") -> str:
    """Pick the first supported locale named in an Accept-Language header.

    Quality values are ignored; browsers already list languages in preference
    order. "ja-JP;q=0.9" resolves to "ja".
    """
    if accept_language:
        for part in accept_language.split(","):
            tag = part.split(";", 1)[0].strip().lower()
            primary = tag.split("-", 1)[0]
            if primary in SUPPORTED_LOCALES:
                return primary
    return default if default in SUPPORTED_LOCALES else "en"


def get_message(key: str, locale: str = "en") -> str:
    """Return the message for key in locale, falling back to English, then the key itself."""
    entry = MESSAGES.get(key)
    if entry is None:
        return key
    return entry.get(locale) or entry["en"]
