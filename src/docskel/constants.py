"""
Centralized constants for the docskel package.

This module contains:
- Document model schema version and file names
- Skeleton syntax tokens and markers
- Search and path-resolution defaults
- Skelebuild state-file location and defaults
"""

# =============================================================================
# Document Model Constants
# =============================================================================

# The one document model schema version this package understands
DOC_MODEL_FORMAT_VERSION = 1

# File names tried when a package entry point is a directory
DOC_MODEL_FILENAMES: tuple[str, ...] = (
    "docmodel.json",
    ".docskel/docmodel.json",
)

# Path segment separator in item paths and path specs
PATH_SEPARATOR = "::"

# Language used for fenced code blocks when the model does not declare one
DEFAULT_MODEL_LANGUAGE = "rust"

# =============================================================================
# Rendering Constants
# =============================================================================

# Marker standing in for elided sibling declarations
ELISION_MARKER = "// ..."

# Prefix of the comment line that labels the source file of what follows
SOURCE_LABEL_PREFIX = "// docskel:source: "

DOC_COMMENT_PREFIX = "///"
INNER_DOC_COMMENT_PREFIX = "//!"

# Container and body syntax of the skeleton output
BLOCK_OPEN = " {"
BLOCK_CLOSE = "}"
EMPTY_BODY = " {}"
DECLARATION_TERMINATOR = ";"
INDENT = "    "

# Markdown headings emitted for source labels and raw excerpts
MARKDOWN_SOURCE_HEADING = "### Source: {path}"
MARKDOWN_RAW_SOURCE_HEADING = "### Raw source: {summary}"

# Default language for code blocks of unknown files
DEFAULT_CODE_BLOCK_LANGUAGE = "text"

# Map file extensions to fenced code block languages
LANGUAGE_EXTENSION_MAP: dict[str, str] = {
    '.py': 'python',
    '.pyi': 'python',
    '.js': 'javascript',
    '.mjs': 'javascript',
    '.cjs': 'javascript',
    '.jsx': 'javascript',
    '.ts': 'typescript',
    '.tsx': 'typescript',
    '.go': 'go',
    '.rs': 'rust',
    '.java': 'java',
    '.php': 'php',
    '.rb': 'ruby',
    '.toml': 'toml',
    '.json': 'json',
    '.md': 'markdown',
}

# =============================================================================
# Search & Resolution Constants
# =============================================================================

# Maximum number of "did you mean" suggestions attached to NoMatch
MAX_SUGGESTIONS = 5

# Fuzzy matching threshold for finding similar names
FUZZY_MATCH_CUTOFF = 0.6

# Kind ranks used to order otherwise equal path matches (lower wins)
KIND_RANK_PRIMARY = 0     # Types, functions, members
KIND_RANK_MODULE = 1      # Modules and the package root
KIND_RANK_OTHER = 2

# Console script name used in suggested commands
COMMAND_NAME = "docskel"

# =============================================================================
# Skelebuild Constants
# =============================================================================

STATE_FILE_VERSION = 1

# State file lives in the per-user state directory of this app
STATE_APP_NAME = "docskel"
STATE_FILE_NAME = "skelebuild.json"

# Environment override for the state file
ENV_STATE_FILE = "DOCSKEL_STATE_FILE"

DEFAULT_OUTPUT_PATH = "skelebuild.md"

# Keys accepted by `inject --after` to insert at the very beginning
START_MARKERS: frozenset[str] = frozenset({"START", "TOP", "BEGIN"})

# Number of known keys listed by InvalidEntryReference
MAX_LISTED_KEYS = 10

# Injection summaries in `status` are cut to this many characters
STATUS_SUMMARY_WIDTH = 80

WARNING_BLOCK_HEADER = "> [!WARNING]"
INCOMPLETE_BUILD_NOTICE = "Completed with errors; output may be incomplete."
