"""Domain logic independent of Flask: prompts and document renderers."""
