from fastapi import HTTPException, status


class AppError(HTTPException):
    pass


def bad_request(code: str, message: str):
    raise AppError(status_code=status.HTTP_400_BAD_REQUEST, detail={"code": code, "message": message})


def unauthorized(message: str = "Unauthorized"):
    raise AppError(status_code=status.HTTP_401_UNAUTHORIZED, detail={"code": "UNAUTHORIZED", "message": message})


def unprocessable(code: str, message: str):
    raise AppError(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail={"code": code, "message": message})


# ------------------------------------------------------------
# Store-Fehler: "konnte nicht entschieden werden" statt "abgelehnt"
# ------------------------------------------------------------
class StoreError(Exception):
    """Code-Store nicht erreichbar oder Schema passt nicht."""


class SchemaMismatchError(StoreError):
    """Optionale Spalten (Policy / Usage-Tracking) fehlen in der Tabelle."""


class DuplicateCodeError(StoreError):
    """Unique-Constraint auf access_codes.code verletzt."""


class CodeGenerationError(StoreError):
    pass
