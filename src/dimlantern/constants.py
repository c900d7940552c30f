"""Project-wide named constants.

Constants defined here replace inline magic numbers across the codebase.
"""

# Extract, Summarize, Refine
PHASE_COUNT: int = 3

# Trimmed responses shorter than this are rejected as truncated or
# accidentally pasted fragments.
MIN_RESPONSE_LENGTH: int = 100

# Separator placed between Markdown blocks contributed by different sessions
# when an entity is merged.
BLOCK_DELIMITER: str = "\n\n---\n\n"

DEFAULT_DB_PATH: str = "data/dimlantern.db"
