"""ai_shell package: turn natural-language requests into shell commands with a streamed LLM.

This package exposes submodules directly; keep __all__ empty to avoid static checks
that expect module-level symbols.
"""

__all__: list[str] = []
