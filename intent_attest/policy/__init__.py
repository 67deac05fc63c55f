from .content_gate import (
    ContentPolicy,
    ContentPolicyConfig,
    ContentValidationResult,
    build_policy_config,
    get_content_policy,
)

__all__ = [
    "ContentPolicy",
    "ContentPolicyConfig",
    "ContentValidationResult",
    "build_policy_config",
    "get_content_policy",
]
