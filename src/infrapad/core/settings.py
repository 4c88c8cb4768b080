"""
Project-wide constants that are unlikely to change at runtime.
"""

# Top-level keys of an exported project document, in environment order
DEVELOPMENT_KEY = "development_environment"
STAGING_KEY = "staging_environment"
UAT_KEY = "uat_environment"
PROD_KEY = "prod_environment"

# Marker written in place of a project note / POI already exported for an
# earlier environment
SHARED_MARKER_KEY = "shared_with_other_environments"

PROJECT_ICON_FILENAME = "icon.svg"
ARCHIVE_EXTENSION = ".7z"
TEMP_FOLDER_PREFIX = "infrapad"
