"""
用户API路由 - FastAPI表现层
"""
from fastapi import APIRouter, Depends

from api.dependencies import get_account_service, get_current_user, get_token
from application.dto import LoginDTO, MessageDTO, SessionDTO, UserCreateDTO, UserResponseDTO
from application.services.account_service import AccountService
from core.response import Response as ApiResponse, success_response

router = APIRouter(
    prefix="/users",
    tags=["用户管理"],
)


@router.post("/register", summary="用户注册", response_model=ApiResponse[SessionDTO])
async def register(
    user_data: UserCreateDTO,
    service: AccountService = Depends(get_account_service),
):
    """
    注册新用户，成功后直接返回会话

    - **username**: 用户名（3-20个字符，只能包含字母、数字和下划线）
    - **email**: 邮箱地址
    - **password**: 密码（至少8位）
    """
    session = await service.register(user_data.username, user_data.email, user_data.password)
    return success_response(data=session, message="Registered successfully")


@router.post("/login", summary="用户登录", response_model=ApiResponse[SessionDTO])
async def login(
    login_data: LoginDTO,
    service: AccountService = Depends(get_account_service),
):
    session = await service.login(login_data.username, login_data.password)
    return success_response(data=session, message="Logged in successfully")


@router.get("/me", summary="获取当前用户信息", response_model=ApiResponse[UserResponseDTO])
async def get_me(current_user: UserResponseDTO = Depends(get_current_user)):
    return success_response(data=current_user)


@router.post("/logout", summary="用户注销", response_model=ApiResponse[MessageDTO])
async def logout(
    token: str = Depends(get_token),
    service: AccountService = Depends(get_account_service),
):
    await service.logout(token)
    return success_response(data=MessageDTO(message="Logged out"))
