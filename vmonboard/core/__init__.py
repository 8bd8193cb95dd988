"""Core onboarding building blocks that do not depend on the CLI layer."""
