class FilesysDbError(Exception):
    pass


class NotFoundError(FilesysDbError):
    def __init__(self, path: str) -> None:
        super().__init__(f"no file at path: {path}")
        self.path = path


class AlreadyExistsError(FilesysDbError):
    def __init__(self, path: str) -> None:
        super().__init__(f"file already exists at path: {path}")
        self.path = path


class InvalidArgumentError(FilesysDbError, ValueError):
    pass


class InvalidEncodingError(FilesysDbError):
    def __init__(self, path: str) -> None:
        super().__init__(f"content at {path} is not valid UTF-8")
        self.path = path


class MoveFailedError(FilesysDbError):
    """Raised after the move transaction was rolled back."""

    def __init__(self, source_path: str, dest_path: str, cause: BaseException) -> None:
        super().__init__(f"move {source_path} -> {dest_path} failed: {cause}")
        self.source_path = source_path
        self.dest_path = dest_path
        self.cause = cause


class BackendError(FilesysDbError):
    pass


class DatabaseBusyError(BackendError):
    pass
