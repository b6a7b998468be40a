# podbridge/security/signatures.py
# ────────────────────────────────────────────
# Webhook signature checks for both inbound sources
#   Scheme A: Shopify, single base64 HMAC-SHA256
#   Scheme B: Printful, tolerant multi-token header
# ────────────────────────────────────────────

import base64
import hashlib
import hmac
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

SHOPIFY_HMAC_HEADER = "x-shopify-hmac-sha256"
PRINTFUL_SIGNATURE_HEADER = "x-pf-signature"

_TOKEN_SPLIT_RE = re.compile(r"[,\s]+")
_PREFIXED_RE = re.compile(r"^(?:sha1|sha256|v1)=(.+)$", re.IGNORECASE)


@dataclass
class VerificationResult:
    ok: bool
    reason: str
    meta: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.ok


def _header(headers: Mapping[str, str], name: str) -> str:
    # Starlette headers are case-insensitive already; plain dicts are not
    value = headers.get(name)
    if value is None:
        for k, v in headers.items():
            if k.lower() == name:
                value = v
                break
    return str(value or "").strip()


def _secure_equal(a: str, b: str) -> bool:
    if not a or not b or len(a) != len(b):
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


# ======================================
# ✅ Scheme A: Shopify
# ======================================
def shopify_digest(body: bytes, secret: str) -> str:
    return base64.b64encode(hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()).decode("ascii")


def verify_shopify(body: bytes, headers: Mapping[str, str], secret: str) -> VerificationResult:
    """
    Shopify signs the raw body with HMAC-SHA256 and sends it base64-encoded in
    X-Shopify-Hmac-SHA256. Missing header or missing secret fails closed.
    """
    provided = _header(headers, SHOPIFY_HMAC_HEADER)
    if not provided or not secret:
        return VerificationResult(
            False,
            "missing_header_or_secret",
            {"hasHmacHeader": bool(provided), "hasSecret": bool(secret)},
        )
    ok = _secure_equal(shopify_digest(body, secret), provided)
    return VerificationResult(ok, "matched" if ok else "mismatch", {"bodyLength": len(body)})


# ======================================
# ✅ Scheme B: Printful
# ======================================
def split_signature_tokens(header_value: str) -> List[str]:
    """
    Break a signature header into candidate digests.
    Accepts `sha256=abc, sha1=def`, `v1=abc`, bare values, quoted values.
    Order is kept, duplicates dropped.
    """
    tokens: List[str] = []
    for raw in _TOKEN_SPLIT_RE.split((header_value or "").strip()):
        t = raw.strip().strip('"')
        if not t:
            continue
        m = _PREFIXED_RE.match(t)
        if m:
            t = m.group(1).strip('"')
        if t and t not in tokens:
            tokens.append(t)
    return tokens


def printful_candidates(body: bytes, secret: str) -> List[str]:
    key = secret.encode("utf-8")
    sha256 = hmac.new(key, body, hashlib.sha256)
    return [
        sha256.hexdigest(),
        base64.b64encode(sha256.digest()).decode("ascii"),
        hmac.new(key, body, hashlib.sha1).hexdigest(),
    ]


def verify_printful(body: bytes, headers: Mapping[str, str], secret: str) -> VerificationResult:
    sig_header = _header(headers, PRINTFUL_SIGNATURE_HEADER)
    if not sig_header or not secret:
        return VerificationResult(
            False,
            "missing_header_or_secret",
            {"hasSigHeader": bool(sig_header), "hasSecret": bool(secret)},
        )

    provided = split_signature_tokens(sig_header)
    expected = printful_candidates(body, secret)
    ok = any(_secure_equal(p, e) for p in provided for e in expected)

    return VerificationResult(
        ok,
        "matched" if ok else "mismatch",
        {
            "headerPreview": sig_header[:24],
            "providedCount": len(provided),
            "providedLens": [len(p) for p in provided],
            "expectedLens": [len(e) for e in expected],
            "bodyLength": len(body),
        },
    )


# ======================================
# ✅ Diagnostic bypass
# ======================================
def bypass_token_matches(token: Optional[str], debug_token: str, allowed: bool) -> bool:
    """
    Operators may pass ?token=<DEBUG_TOKEN> on non-production deployments.
    Never matches when no token is configured.
    """
    if not allowed or not debug_token or not token:
        return False
    return _secure_equal(token, debug_token)


def verify_request(
    scheme: str,
    body: bytes,
    headers: Mapping[str, str],
    secret: str,
    *,
    query_token: Optional[str] = None,
    debug_token: str = "",
    bypass_allowed: bool = False,
) -> VerificationResult:
    if bypass_token_matches(query_token, debug_token, bypass_allowed):
        logger.warning("[signatures] %s signature check bypassed with diagnostic token", scheme)
        return VerificationResult(True, "debug_bypass")

    if scheme == "shopify":
        return verify_shopify(body, headers, secret)
    if scheme == "printful":
        return verify_printful(body, headers, secret)
    raise ValueError(f"Unknown signature scheme {scheme!r}")
