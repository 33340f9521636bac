"""认证工具：回合控制接口的管理令牌校验"""

import hmac

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from config import Settings, get_settings

# Bearer Token 提取
bearer_scheme = HTTPBearer(auto_error=False)


def verify_admin_token(token: str, expected: str) -> bool:
    """常量时间比较令牌"""
    return hmac.compare_digest(token.encode(), expected.encode())


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> None:
    """FastAPI 依赖注入：校验 Authorization header 中的管理令牌"""
    if not settings.admin_token:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="回合控制接口未启用",
        )

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="未提供认证信息",
        )

    if not verify_admin_token(credentials.credentials, settings.admin_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="令牌无效",
        )
