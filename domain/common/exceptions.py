"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional, Sequence
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------


class ArtifactNotFoundError(BusinessException):
    def __init__(self, name: str, *, path: Optional[str] = None):
        details = {"name": name}
        if path is not None:
            details["path"] = path
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message=f"File not found: {path or name}",
            error_type="NotFound",
            details=details,
        )


class ArtifactIOError(BusinessException):
    """Filesystem access failure (directory creation, read, write, listing)."""

    def __init__(self, action: str, path: str, reason: str):
        super().__init__(
            code=BusinessCode.STORAGE_ERROR,
            message=f"Error {action} {path}: {reason}",
            error_type="IOError",
            details={"action": action, "path": path, "reason": reason},
        )
        self.path = path


class InvalidArtifactNameError(DomainValidationException):
    def __init__(self, name: str):
        super().__init__(
            f"Invalid file name: {name!r}",
            field="filename",
            details={"name": name},
        )


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


class ToolNotFoundError(BusinessException):
    """Compiler or required plugin could not be located."""

    def __init__(self, tool: str, searched: Sequence[str], guidance: str):
        searched = list(searched)
        super().__init__(
            code=BusinessCode.TOOL_NOT_FOUND,
            message=f"{tool} not found (searched: {', '.join(searched) or 'nothing'})",
            error_type="ToolNotFound",
            details={"tool": tool, "searched": searched, "guidance": guidance},
        )
        self.tool = tool
        self.searched = searched
        self.guidance = guidance


class GenerationFailure(BusinessException):
    """Every invocation strategy was attempted and none succeeded."""

    def __init__(self, attempts: int, last_error: Optional[str] = None):
        super().__init__(
            code=BusinessCode.GENERATION_FAILED,
            message=f"Code generation failed after {attempts} attempt(s)",
            error_type="GenerationFailure",
            details={"attempts": attempts, "last_error": last_error},
        )


class MissingOutputsError(BusinessException):
    """The compiler exited successfully but the expected generated files are absent."""

    def __init__(self, missing: Sequence[str], output_dir: str):
        missing = list(missing)
        target = ", ".join(missing) if missing else "any file"
        super().__init__(
            code=BusinessCode.GENERATION_FAILED,
            message=f"No outputs produced: {target} missing from {output_dir}",
            error_type="GenerationFailure",
            details={"missing": missing, "output_dir": output_dir},
        )


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class UserNotFoundException(BusinessException):
    def __init__(self, user_id: Optional[str] = None):
        details = {"user_id": user_id} if user_id else None
        super().__init__(
            code=BusinessCode.USER_NOT_FOUND,
            message="User not found",
            error_type="UserNotFound",
            details=details,
        )


class UserAlreadyExistsException(BusinessException):
    def __init__(self, email: str):
        super().__init__(
            code=BusinessCode.USER_ALREADY_EXISTS,
            message="Email already exists",
            error_type="UserAlreadyExists",
            details={"email": email},
            field="email",
        )


class UsernameAlreadyExistsException(BusinessException):
    def __init__(self, username: str):
        super().__init__(
            code=BusinessCode.USER_ALREADY_EXISTS,
            message="Username already exists",
            error_type="UsernameAlreadyExists",
            details={"username": username},
            field="username",
        )


class PasswordErrorException(BusinessException):
    def __init__(self):
        super().__init__(
            code=BusinessCode.PASSWORD_ERROR,
            message="Invalid username or password",
            error_type="PasswordError",
        )
