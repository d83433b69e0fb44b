from enum import Enum


class ProgressStage(str, Enum):
    BLOCK_RANGE = "BLOCK_RANGE"
    TOKEN_META = "TOKEN_META"
    FETCH = "FETCH"
    TIMESTAMPS = "TIMESTAMPS"
    NORMALIZE = "NORMALIZE"
    DONE = "DONE"


class ProgressLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
