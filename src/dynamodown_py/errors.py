from __future__ import annotations


class DynamodownPyError(Exception):
    pass


class NotFoundError(DynamodownPyError):
    pass


class ResourceNotFoundError(NotFoundError):
    pass


class ValidationError(DynamodownPyError):
    pass


class UnsupportedTypeError(ValidationError):
    def __init__(self, type_name: str) -> None:
        super().__init__(f"cannot serialize {type_name}")
        self.type_name = type_name


class DecodeError(ValidationError):
    def __init__(self, tag: str) -> None:
        super().__init__(f"cannot parse {tag}")
        self.tag = tag


class TableExistsError(DynamodownPyError):
    def __init__(self, table_name: str) -> None:
        super().__init__(f"table already exists: {table_name}")
        self.table_name = table_name


class BatchRetryExceededError(DynamodownPyError):
    def __init__(self, *, operation: str, unprocessed_count: int) -> None:
        super().__init__(f"{operation}: retry limit exceeded (unprocessed={unprocessed_count})")
        self.operation = operation
        self.unprocessed_count = unprocessed_count


class AwsError(DynamodownPyError):
    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
