from fastapi import status


class AppError(Exception):
    """
    서비스 공통 예외의 부모

    - error_code: 응답 body의 "error" 필드 (예: USER_ALREADY_EXISTS)
    - status_code: 경계(exception handler)에서 변환될 HTTP 상태코드
    - context: 로깅용 부가 정보
    """

    default_code = "APPLICATION_ERROR"
    default_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, error_code: str | None = None,
                 status_code: int | None = None, context=None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.status_code = status_code or self.default_status
        self.context = context


class ValidationError(AppError):
    default_code = "VALIDATION_ERROR"
    default_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field_errors: dict[str, str] | None = None,
                 error_code: str | None = None):
        super().__init__(message, error_code, context=field_errors)
        self.field_errors = field_errors

    @classmethod
    def for_field(cls, field: str, error: str) -> "ValidationError":
        return cls(
            f"Validation failed for field '{field}': {error}",
            {field: error},
            "FIELD_VALIDATION_ERROR",
        )

    @classmethod
    def for_fields(cls, field_errors: dict[str, str]) -> "ValidationError":
        return cls("Validation failed for multiple fields", field_errors, "MULTIPLE_FIELD_VALIDATION_ERROR")


class ResourceNotFoundError(AppError):
    default_code = "RESOURCE_NOT_FOUND"
    default_status = status.HTTP_404_NOT_FOUND

    @classmethod
    def for_resource(cls, resource_type: str, resource_id) -> "ResourceNotFoundError":
        return cls(
            f"{resource_type} not found with ID: {resource_id}",
            f"{resource_type.upper()}_NOT_FOUND",
            context=resource_id,
        )

    @classmethod
    def for_resource_field(cls, resource_type: str, field: str, value) -> "ResourceNotFoundError":
        return cls(
            f"{resource_type} not found with {field}: {value}",
            f"{resource_type.upper()}_NOT_FOUND",
            context=f"{field}={value}",
        )


class BusinessError(AppError):
    """도메인 규칙 위반 (중복 가입, 비활성 계정, 업로드 실패 등)"""
    default_code = "BUSINESS_ERROR"
    default_status = status.HTTP_400_BAD_REQUEST


class AuthenticationError(AppError):
    default_code = "AUTHENTICATION_FAILED"
    default_status = status.HTTP_401_UNAUTHORIZED


class AccessDeniedError(AppError):
    default_code = "ACCESS_DENIED"
    default_status = status.HTTP_403_FORBIDDEN


class ImageHostError(Exception):
    """외부 이미지 호스트(Imgur/Dropbox) 호출 실패"""

    def __init__(self, host: str, message: str):
        super().__init__(f"{host}: {message}")
        self.host = host
        self.message = message
