from typing import Final

# Document format
ROOT_ELEMENT_NAME: Final[str] = "root"
CONTEXT_ELEMENT_NAME: Final[str] = "context"
DOCUMENT_EXTENSION: Final[str] = "xml"
PATH_SEPARATOR: Final[str] = ","

# Attribute names on <context> elements
ATTR_TITLE: Final[str] = "title"
ATTR_IDENTIFIER_PATH: Final[str] = "identifierPath"
ATTR_TYPE: Final[str] = "type"
ATTR_TOPIC: Final[str] = "topic"
ATTR_DISPLAY_ORDER: Final[str] = "displayOrder"

# Defaults
DEFAULT_RESOURCE_NAME: Final[str] = "contexts"
DEFAULT_RESOURCE_DIR: Final[str] = "."
DEFAULT_DISPLAY_ORDER: Final[int] = 0

# Characters kept verbatim when percent-encoding a deep-link path
URL_PATH_SAFE_CHARS: Final[str] = "/!$&'()*+,;=:@"

# Response prefixes
RESPONSE_PREFIX_OK: Final[str] = "ContextKit:"
RESPONSE_PREFIX_ERROR: Final[str] = "ContextKit Error:"

# Error messages shared by the session and the bridge
MSG_NO_ACTIVE_CONTEXT: Final[str] = (
    "Could not get active context. Please call beginActivity(identifierPath) first"
)
MSG_NO_ACTIVITY: Final[str] = "Could not get active context's activity"
MSG_ACTIVITY_NOT_STARTED: Final[str] = (
    "Activity is not started, call beginActivity(identifierPath) first"
)
MSG_NO_ELEMENTS: Final[str] = "No elements found"
