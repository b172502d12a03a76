from scriptwright.prompts.manager import (
    MISCONFIGURED_PROMPT,
    PromptManager,
    seed_default_prompts,
)

__all__ = ["MISCONFIGURED_PROMPT", "PromptManager", "seed_default_prompts"]
