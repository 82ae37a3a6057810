"""Per-resource policy operations (rulesets, settings, actions, security, ...)."""
