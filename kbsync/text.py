"""Centralized user-facing text for kbsync."""

from __future__ import annotations

class Styles:
    ERROR = "red"
    WARNING = "yellow"
    SUCCESS = "green"
    INFO = "dim"
    TITLE = "bold cyan"
    TABLE_HEADER = "bold magenta"


class Messages:
    APP_HELP = "kbsync - keep a knowledge-base index in step with a directory tree."
    HELP_VERBOSE = "Log reconciliation and fetch activity to stderr."
    HELP_ROOT = "Directory whose index is shown or updated."
    HELP_TREE_EXPAND = "Folder path to expand (repeatable)."
    HELP_TREE_ALL = "Expand every folder."
    HELP_SELECT_PATHS = "Files or folders that make up the new index."
    HELP_REMOVE_PATH = "File or folder to remove from the index."
    HELP_SHOW_CONFIG = "Show current configuration."
    HELP_SET_POLL_INTERVAL = "Seconds between status refreshes of processing folders."
    HELP_SET_SUPPRESSION_WINDOW = "Seconds after a rebuild during which server status is ignored."
    HELP_SET_GRACE_PERIOD = "Seconds after a rebuild before pending markers are dropped."
    HELP_SET_DIRECTORY_TTL = "Seconds a directory listing stays cached."
    HELP_SET_FETCH_CONCURRENCY = "Maximum number of concurrent listing fetches."
    HELP_SET_MAX_RETRIES = "Retries for transient collaborator failures."
    HELP_SET_INCLUDE_HIDDEN = "Show hidden files and folders (true/false)."

    ERROR_STATUS_INVALID = "Unknown index status: {value!r}."
    ERROR_KIND_INVALID = "Unknown resource type: {value!r}."
    ERROR_PAYLOAD_FIELD = "Resource payload is missing a valid '{field}' field."
    ERROR_PAYLOAD_INVALID = "Resource payload must be a JSON object."
    ERROR_PATH_NOT_FOUND = "Path not found: {path}"
    ERROR_RESOURCE_NOT_FOUND = "Resource not found: {resource_id}"
    ERROR_ROOT_NOT_DIRECTORY = "Not a directory: {path}"
    ERROR_MANIFEST_INVALID = "Index manifest at {path} is not valid."
    ERROR_INDEX_NOT_FOUND = "Index not found: {index_id}"
    ERROR_NO_INDEX = "No index exists yet for this root."
    ERROR_REBUILD_NOT_FILE = "Only files can be indexed: {path}"
    ERROR_REBUILD_IN_FLIGHT = "A rebuild is already in progress."
    ERROR_DELETE_FAILED = "Removing {path} from the index failed ({reason})."
    ERROR_DELETE_NOT_INDEXED = "{path} is not indexed."
    ERROR_DELETE_IN_EDIT_MODE = "Leave edit mode before removing items from the index."
    ERROR_NOT_IN_EDIT_MODE = "Enter edit mode before changing the selection."
    ERROR_SIBLINGS_MISSING_TARGET = "Sibling list does not contain {path}."
    ERROR_PARENT_MISMATCH = "{parent} is not the parent of {path}."
    ERROR_SIBLINGS_MISSING = "Child list for {path} is required to change the selection."
    ERROR_SELECTION_NOT_CANONICAL = "Selection is not canonical: {paths}"
    ERROR_FOLDER_NOT_LOADED = "Folder {path} has not been loaded yet."
    ERROR_CONFIG_JSON_INVALID = "Config JSON must be an object."
    ERROR_CONFIG_VALUE_INVALID = "Config value for '{field}' is invalid."
    ERROR_BOOLEAN_INVALID = "Expected true or false, got {value!r}."

    INFO_TREE_TITLE = "Index status for {root}"
    INFO_TREE_FOLDER_ERROR = "Could not load {path}: {reason}"
    INFO_INDEX_EMPTY = "Nothing is indexed under {root}."
    INFO_REBUILD_SUBMITTED = "Index {index_id} now covers {count} file(s)."
    INFO_REMOVED = "Removed {path} from the index."
    INFO_CONFIG_SET = "{field} set to {value}."
    INFO_CONFIG_SUMMARY = (
        "Poll interval: {poll_interval}s\n"
        "Suppression window: {suppression_window}s\n"
        "Grace period: {grace_period}s\n"
        "Directory cache TTL: {directory_ttl}s\n"
        "Fetch concurrency: {fetch_concurrency}\n"
        "Max retries: {max_retries}\n"
        "Include hidden: {include_hidden}"
    )

    TABLE_HEADER_INDEX = "#"
    TABLE_HEADER_PATH = "Path"
    TABLE_HEADER_STATUS = "Status"
