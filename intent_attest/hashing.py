"""
Content digests for artifacts and proofs.

All digests are SHA-256 over UTF-8 bytes with lowercase hexadecimal output.
Proof digests carry a 0x prefix so they can be referenced on-chain as bytes32.
"""

import hashlib
import hmac
import json
from typing import Any, Iterable, Optional


def sha256_hex(data: str) -> str:
    """Compute the lowercase hex SHA-256 of a UTF-8 string."""
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def canonical_json(value: Any) -> str:
    """Serialize to JSON with sorted keys and no insignificant whitespace."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def caption_hash(caption: str) -> str:
    """Content-addressed digest of a caption."""
    return sha256_hex(caption)


def artifact_hash(caption: str, image_ref: Optional[str]) -> str:
    """Digest of the frozen artifact content: caption | image."""
    return sha256_hex(f"{caption}|{image_ref or ''}")


def campaign_hash(campaign_id: str, user_address: str, caption_digest: str) -> str:
    """Bind an artifact's caption hash to a specific claiming wallet."""
    return "0x" + sha256_hex(f"{campaign_id}|{user_address.lower()}|{caption_digest}")


def intent_fingerprint(
    category: int, target_dapps: Iterable[str], action_order: Iterable[str]
) -> str:
    """Digest of a declared intent.

    Target dApps are sorted so selection order does not matter; action order
    is kept as given because sequencing is meaningful.
    """
    payload = {
        "category": int(category),
        "dapps": sorted(target_dapps),
        "actions": list(action_order),
    }
    return "0x" + sha256_hex(canonical_json(payload))


def digests_match(expected: str, provided: str) -> bool:
    """Constant-time comparison of two hex digests."""
    return hmac.compare_digest(
        expected.lower().encode("utf-8"), provided.strip().lower().encode("utf-8")
    )
