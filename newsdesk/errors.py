"""
Taxonomia de erros do newsdesk.

- Fatais para a operação: GenerationConfigError, GenerationError, MalformedResponseError,
  ContentUnavailableError, StorageError.
- Recuperáveis por unidade: FetchError, ExtractionError, ImageError, ObjectStoreError
  (quem chama decide se a unidade é descartada).
- Duplicidade esperada: UniqueConstraintError (absorvida pelos contadores / loop de slug).
"""

from typing import Optional


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class UniqueConstraintError(ConflictError):
    def __init__(self, table: str, field: str, value):
        super().__init__(f"Já existe um registro em '{table}' com {field}={value!r}")
        self.table = table
        self.field = field
        self.value = value


class StorageError(AppError):
    status_code = 500


class FetchError(AppError):
    status_code = 502


class ContentUnavailableError(AppError):
    status_code = 400


class GenerationConfigError(AppError):
    status_code = 500


class GenerationError(AppError):
    status_code = 502


class MalformedResponseError(GenerationError):
    pass


class ExtractionError(GenerationError):
    pass


class ImageError(AppError):
    status_code = 502


class ObjectStoreError(ImageError):
    pass
