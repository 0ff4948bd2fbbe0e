"""VeloKit -- high-velocity Discord bot and API project scaffolder.

Resolves a small set of user choices into a materialised project tree by
overlaying template directories, filling ``{{key}}`` placeholders, and
running post-processors (env files, git files, readme, tests, CI).
"""

__version__ = "1.0.1"

__all__ = ["__version__"]
