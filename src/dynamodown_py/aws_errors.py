from __future__ import annotations

from botocore.exceptions import ClientError

from .errors import AwsError, ResourceNotFoundError, ValidationError


def error_code(err: ClientError) -> str:
    return str(err.response.get("Error", {}).get("Code", ""))


def map_client_error(err: ClientError) -> Exception:
    code = error_code(err)
    message = str(err.response.get("Error", {}).get("Message", ""))

    if code == "ValidationException":
        return ValidationError(message)
    if code == "ResourceNotFoundException":
        return ResourceNotFoundError(message or "resource not found")

    return AwsError(code=code or "UnknownError", message=message or str(err))
